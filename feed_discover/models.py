"""Shared data models for feed_discover."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

CATEGORY_LEVELS = ("domain", "subdomain", "area", "topic")


class FeedType(str, Enum):
    """Kinds of feed a catalog entry can describe."""

    BLOG = "Blog"
    NEWS = "News"
    PODCAST = "Podcast"
    NEWSLETTER = "Newsletter"
    JOURNAL = "Journal"
    MAGAZINE = "Magazine"
    YOUTUBE = "YouTube"
    WEBCOMIC = "Webcomic"
    VIDEO_SERIES = "Video Series"
    DOCUMENTATION = "Documentation"
    RELEASE_NOTES = "Release Notes"
    WHITEPAPER = "Whitepaper"
    PREPRINT_SERVER = "Preprint Server"
    CONFERENCE = "Conference"
    ALERT_FEED = "Alert Feed"
    FUNDING_UPDATES = "Funding Updates"
    JOB_BOARD = "Job Board"
    FORUM = "Forum"
    TUTORIAL_SERIES = "Tutorial Series"
    BOOK_RELEASES = "Book Releases"
    EVENT_LISTING = "Event Listing"
    OPEN_ACCESS_FEED = "Open Access Feed"
    RESEARCH_DIGEST = "Research Digest"
    DEVELOPER_DIARY = "Developer Diary"
    OPINION_COLUMN = "Opinion Column"
    INTERVIEW_SERIES = "Interview Series"
    VLOG = "Vlog"
    MOOC = "MOOC"
    DATASET_FEED = "Dataset Feed"
    API_UPDATES = "API Updates"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FeedRecord:
    """One catalog entry describing a discoverable feed."""

    id: str
    title: str
    url: str
    type: FeedType
    image_url: Optional[str] = None
    domain: Tuple[str, ...] = ()
    subdomain: Tuple[str, ...] = ()
    area: Tuple[str, ...] = ()
    topic: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None
    summary: Optional[str] = None
    rating: Optional[float] = None

    def categories(self, level: str) -> Tuple[str, ...]:
        """Return the record's labels for one taxonomy level."""
        if level not in CATEGORY_LEVELS:
            raise ValueError(f"Unknown category level: {level}")
        return getattr(self, level)


@dataclass(frozen=True)
class CategoryPath:
    """Sparse selector over the four-level taxonomy.

    Unset levels are ``None``. Dataclass equality compares all four fields,
    so two selectors naming the same levels with the same values are one
    selection.
    """

    domain: Optional[str] = None
    subdomain: Optional[str] = None
    area: Optional[str] = None
    topic: Optional[str] = None

    @classmethod
    def from_level(cls, level: str, value: str) -> "CategoryPath":
        """Build a selector populating a single taxonomy level."""
        if level not in CATEGORY_LEVELS:
            raise ValueError(f"Unknown category level: {level}")
        return cls(**{level: value})

    @classmethod
    def parse(cls, text: str) -> "CategoryPath":
        """Parse ``domain>subdomain>area>topic``; empty segments stay unset."""
        parts = [part.strip() for part in text.split(">")]
        if len(parts) > len(CATEGORY_LEVELS):
            raise ValueError(f"Category path has more than four levels: {text!r}")
        values = {
            level: (part or None) for level, part in zip(CATEGORY_LEVELS, parts)
        }
        return cls(**values)

    def populated(self) -> List[Tuple[str, str]]:
        """Return ``(level, value)`` pairs for the levels this path names."""
        return [
            (level, getattr(self, level))
            for level in CATEGORY_LEVELS
            if getattr(self, level)
        ]

    def matches(self, record: FeedRecord) -> bool:
        """True when every populated level is among the record's labels."""
        return all(
            value in record.categories(level) for level, value in self.populated()
        )

    def label(self) -> str:
        return " > ".join(value for _, value in self.populated())

    def to_dict(self) -> Dict[str, str]:
        return {level: value for level, value in self.populated()}


@dataclass
class FilterState:
    """Current facet selections.

    Selections keep the order in which they were made and never hold
    duplicates; use the ``toggle_*`` helpers rather than mutating the lists.
    """

    query: str = ""
    selected_types: List[FeedType] = field(default_factory=list)
    selected_paths: List[CategoryPath] = field(default_factory=list)
    selected_tags: List[str] = field(default_factory=list)

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.query
            or self.selected_types
            or self.selected_paths
            or self.selected_tags
        )

    def toggle_type(self, feed_type: FeedType) -> bool:
        return _toggle(self.selected_types, feed_type)

    def toggle_path(self, path: CategoryPath) -> bool:
        return _toggle(self.selected_paths, path)

    def toggle_tag(self, tag: str) -> bool:
        return _toggle(self.selected_tags, tag)


def _toggle(selection: list, value: Any) -> bool:
    """Add ``value`` if absent, otherwise remove it. Returns True when added."""
    if value in selection:
        selection.remove(value)
        return False
    selection.append(value)
    return True


@dataclass
class ResultView:
    """One page of the filtered and sorted catalog."""

    records: List[FeedRecord]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.page_size))


@dataclass
class PreviewArticle:
    """Normalized article extracted from a live feed document."""

    title: str
    link: str
    description: str
    pub_date: str
    author: Optional[str] = None
    image: Optional[str] = None


def filter_state_to_dict(state: FilterState) -> Dict[str, Any]:
    """Serialise filter selections using the persisted JSON field names."""
    return {
        "query": state.query,
        "selectedTypes": [feed_type.value for feed_type in state.selected_types],
        "selectedPaths": [path.to_dict() for path in state.selected_paths],
        "selectedTags": list(state.selected_tags),
    }


def merge_filter_state(stored: Any) -> FilterState:
    """Merge a stored JSON payload field by field over the empty state.

    Missing or unreadable fields keep their defaults; unknown keys are
    ignored.
    """
    state = FilterState()
    if not isinstance(stored, dict):
        if stored is not None:
            logger.warning(
                "Ignoring stored filter state of type %s", type(stored).__name__
            )
        return state

    query = stored.get("query")
    if isinstance(query, str):
        state.query = query
    elif query is not None:
        logger.warning("Ignoring unreadable stored query: %r", query)

    for raw_type in _stored_list(stored, "selectedTypes"):
        try:
            feed_type = FeedType(raw_type)
        except ValueError:
            logger.warning("Ignoring unknown stored feed type: %r", raw_type)
            continue
        if feed_type not in state.selected_types:
            state.selected_types.append(feed_type)

    for raw_path in _stored_list(stored, "selectedPaths"):
        path = _path_from_stored(raw_path)
        if path is None:
            logger.warning("Ignoring unreadable stored category path: %r", raw_path)
            continue
        if path not in state.selected_paths:
            state.selected_paths.append(path)

    for raw_tag in _stored_list(stored, "selectedTags"):
        if isinstance(raw_tag, str) and raw_tag not in state.selected_tags:
            state.selected_tags.append(raw_tag)

    return state


def _stored_list(stored: Dict[str, Any], key: str) -> list:
    value = stored.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring stored %s: expected a list", key)
        return []
    return value


def _path_from_stored(raw: Any) -> Optional[CategoryPath]:
    if not isinstance(raw, dict):
        return None
    values = {}
    for level in CATEGORY_LEVELS:
        value = raw.get(level)
        # Stored paths may mark unset levels with "".
        if value in (None, ""):
            continue
        if not isinstance(value, str):
            return None
        values[level] = value
    if not values:
        return None
    return CategoryPath(**values)
