"""Tolerant parsing of RSS and Atom documents into preview articles."""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup, FeatureNotFound
from bs4.element import Tag

from .models import PreviewArticle

logger = logging.getLogger(__name__)

MAX_PREVIEW_ARTICLES = 10

_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["'][^>]*>""", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")

# Applied in order, after tags are stripped.
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("&#x2F;", "/"),
)

ImageExtractor = Callable[[Tag], Optional[str]]


def sanitize_text(text: Optional[str]) -> str:
    """Strip markup, unescape common entities and collapse whitespace.

    Entities are unescaped after tags are removed, so ``&lt;b&gt;`` comes
    back as a literal ``<b>``. The result is display text, not markup.
    """
    if not text:
        return ""
    value = _TAG_RE.sub("", text)
    for entity, replacement in _ENTITIES:
        value = value.replace(entity, replacement)
    return _WHITESPACE_RE.sub(" ", value).strip()


def _child_text(parent: Tag, name: str) -> str:
    node = parent.find(name)
    if node is None:
        return ""
    return node.get_text().strip()


def _inline_image(item: Tag) -> Optional[str]:
    content = item.find("content:encoded")
    html = content.get_text() if content is not None else ""
    if not html:
        html = _child_text(item, "description")
    match = _IMG_SRC_RE.search(html)
    return match.group(1) if match else None


def _media_content_image(item: Tag) -> Optional[str]:
    media = item.find("media:content")
    if media is None:
        return None
    return media.get("url") or None


def _enclosure_image(item: Tag) -> Optional[str]:
    enclosure = item.find("enclosure", attrs={"type": re.compile(r"^image")})
    if enclosure is None:
        return None
    return enclosure.get("url") or None


IMAGE_EXTRACTORS: Tuple[ImageExtractor, ...] = (
    _inline_image,
    _media_content_image,
    _enclosure_image,
)


def discover_image(
    item: Tag, extractors: Sequence[ImageExtractor] = IMAGE_EXTRACTORS
) -> Optional[str]:
    """Return the first image URL any extractor finds, in priority order."""
    for extractor in extractors:
        image = extractor(item)
        if image:
            return image
    return None


def _rss_article(item: Tag) -> PreviewArticle:
    author = _child_text(item, "author") or _child_text(item, "dc:creator")
    return PreviewArticle(
        title=_child_text(item, "title"),
        link=_child_text(item, "link"),
        description=sanitize_text(_child_text(item, "description")),
        pub_date=_child_text(item, "pubDate"),
        author=author or None,
        image=discover_image(item),
    )


def _atom_article(entry: Tag) -> PreviewArticle:
    link = entry.find("link")
    summary = _child_text(entry, "summary") or _child_text(entry, "content")
    published = _child_text(entry, "published") or _child_text(entry, "updated")
    author = ""
    author_node = entry.find("author")
    if author_node is not None:
        author = _child_text(author_node, "name")
    return PreviewArticle(
        title=_child_text(entry, "title"),
        link=(link.get("href") or "").strip() if link is not None else "",
        description=sanitize_text(summary),
        pub_date=published,
        author=author or None,
    )


# Checked in order; the first element name present decides the dialect.
DIALECTS: Tuple[Tuple[str, Callable[[Tag], PreviewArticle]], ...] = (
    ("item", _rss_article),
    ("entry", _atom_article),
)


def parse_feed_document(
    document: Union[str, bytes], limit: int = MAX_PREVIEW_ARTICLES
) -> List[PreviewArticle]:
    """Extract up to ``limit`` articles from an RSS or Atom document.

    Returns an empty list when the document has neither ``item`` nor
    ``entry`` elements, or cannot be parsed at all.
    """
    try:
        soup = BeautifulSoup(document, "xml")
        for element_name, convert in DIALECTS:
            nodes = soup.find_all(element_name, limit=limit)
            if nodes:
                articles = [convert(node) for node in nodes]
                logger.debug(
                    "Parsed %d preview articles from <%s> elements",
                    len(articles),
                    element_name,
                )
                return articles
    except FeatureNotFound:
        raise
    except Exception as exc:  # noqa: BLE001 - untrusted documents
        logger.warning("Failed to parse feed document: %s", exc)
        return []

    logger.info("Feed document contains no items or entries")
    return []
