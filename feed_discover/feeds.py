"""Fetching live feed documents for previews."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import requests

from .models import PreviewArticle
from .preview import parse_feed_document

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "feed-discover/0.1 (+https://github.com/feed-discover)"
DEFAULT_TIMEOUT = 10.0

ACCEPT_HEADER = (
    "application/rss+xml, application/atom+xml, application/xml, "
    "text/xml;q=0.9, */*;q=0.8"
)


class FeedFetchError(RuntimeError):
    """Raised when a feed document cannot be retrieved."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


def fetch_feed_document(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: Optional[str] = None,
) -> str:
    """Download the raw XML text of a feed."""
    logger.info("Fetching feed document %s", url)
    headers = {"User-Agent": user_agent or DEFAULT_USER_AGENT, "Accept": ACCEPT_HEADER}
    try:
        response = requests.get(url, timeout=timeout, headers=headers)
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch feed %s: %s", url, exc)
        raise FeedFetchError(url, str(exc)) from exc
    return response.text


def preview_feed(
    url: str,
    retries: int = 0,
    fetcher: Callable[[str], str] = fetch_feed_document,
) -> List[PreviewArticle]:
    """Fetch then parse a feed, re-running both up to ``retries`` extra times.

    Raises :class:`FeedFetchError` once every attempt has failed. Parse
    problems never raise; they yield an empty list.
    """
    attempts = max(retries, 0) + 1
    attempt = 1
    while True:
        try:
            document = fetcher(url)
            break
        except FeedFetchError:
            if attempt >= attempts:
                raise
            attempt += 1
            logger.info("Retrying %s (attempt %d of %d)", url, attempt, attempts)

    articles = parse_feed_document(document)
    logger.info("Collected %d preview articles from %s", len(articles), url)
    return articles
