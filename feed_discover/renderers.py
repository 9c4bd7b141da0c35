"""Rendering helpers for browse, facet and preview output."""

from __future__ import annotations

from typing import Dict, List, Optional

from .catalog import CategoryIndex
from .filtering import SORT_LABELS, SortKey
from .models import FeedRecord, FilterState, PreviewArticle, ResultView
from .templating import get_environment

DESCRIPTION_LIMIT = 150


def truncate_text(value: str, limit: int = DESCRIPTION_LIMIT) -> str:
    """Limit text length to the given number of characters."""
    if len(value) <= limit:
        return value
    return value[:limit] + "..."


def build_results_text(view: ResultView, state: FilterState, sort: SortKey) -> str:
    """Render one page of browse results as plain text."""
    template = get_environment().get_template("results.txt.j2")
    return template.render(
        view=view, state=state, sort_label=SORT_LABELS[SortKey(sort)]
    )


def build_results_html(view: ResultView, state: FilterState, sort: SortKey) -> str:
    """Render one page of browse results as a standalone HTML document."""
    template = get_environment().get_template("results.html.j2")
    return template.render(
        view=view, state=state, sort_label=SORT_LABELS[SortKey(sort)]
    )


def build_facets_text(
    counts: Dict[str, Dict[str, int]],
    index: CategoryIndex,
    level_counts: Dict[str, Dict[str, int]],
) -> str:
    """Render facet values with catalog-wide counts and the category tree."""
    template = get_environment().get_template("facets.txt.j2")
    return template.render(counts=counts, index=index, level_counts=level_counts)


def build_preview_text(
    articles: List[PreviewArticle],
    feed: Optional[FeedRecord] = None,
    url: Optional[str] = None,
    error: Optional[str] = None,
) -> str:
    """Render a feed preview, truncating descriptions for display."""
    template = get_environment().get_template("preview.txt.j2")
    return template.render(
        articles=[
            (article, truncate_text(article.description)) for article in articles
        ],
        feed=feed,
        url=url or (feed.url if feed else ""),
        error=error,
    )
