"""Faceted filtering, ranking and pagination over the feed catalog."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .catalog import FACET_KINDS, build_category_index, facet_values
from .models import (
    CATEGORY_LEVELS,
    CategoryPath,
    FeedRecord,
    FeedType,
    FilterState,
    ResultView,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
PAGE_SIZE_PRESETS = (10, 20, 50, 100)


class SortKey(str, Enum):
    TITLE_ASC = "title-asc"
    TITLE_DESC = "title-desc"
    TYPE_ASC = "type-asc"
    TYPE_DESC = "type-desc"
    RATING_DESC = "rating-desc"
    RATING_ASC = "rating-asc"
    CREATED_DESC = "created-desc"
    CREATED_ASC = "created-asc"
    TAGS_DESC = "tags-desc"
    TAGS_ASC = "tags-asc"
    CATEGORY_ASC = "category-asc"
    TAG_NAME_ASC = "tag-name-asc"

    def __str__(self) -> str:
        return self.value


SORT_LABELS: Dict[SortKey, str] = {
    SortKey.TITLE_ASC: "Title (A to Z)",
    SortKey.TITLE_DESC: "Title (Z to A)",
    SortKey.TYPE_ASC: "Type (A to Z)",
    SortKey.TYPE_DESC: "Type (Z to A)",
    SortKey.RATING_DESC: "Rating (high to low)",
    SortKey.RATING_ASC: "Rating (low to high)",
    SortKey.CREATED_DESC: "Created time (new to old)",
    SortKey.CREATED_ASC: "Created time (old to new)",
    SortKey.TAGS_DESC: "Tags number (most to least)",
    SortKey.TAGS_ASC: "Tags number (least to most)",
    SortKey.CATEGORY_ASC: "Category (A to Z)",
    SortKey.TAG_NAME_ASC: "First tag (A to Z)",
}


def _text_key(value: str) -> Tuple[str, str]:
    return (value.casefold(), value)


def _title(record: FeedRecord) -> Tuple[str, str]:
    return _text_key(record.title)


def _type(record: FeedRecord) -> Tuple[str, str]:
    return _text_key(record.type.value)


def _rating(record: FeedRecord) -> float:
    return record.rating or 0.0


def _created(record: FeedRecord) -> float:
    return record.created_at.timestamp() if record.created_at else 0.0


def _tag_count(record: FeedRecord) -> int:
    return len(record.tags)


def _first_domain(record: FeedRecord) -> Tuple[str, str]:
    return _text_key(record.domain[0] if record.domain else "")


def _first_tag(record: FeedRecord) -> Tuple[str, str]:
    return _text_key(record.tags[0] if record.tags else "")


# (key function, descending)
_SORT_SPECS: Dict[SortKey, Tuple[Callable[[FeedRecord], object], bool]] = {
    SortKey.TITLE_ASC: (_title, False),
    SortKey.TITLE_DESC: (_title, True),
    SortKey.TYPE_ASC: (_type, False),
    SortKey.TYPE_DESC: (_type, True),
    SortKey.RATING_DESC: (_rating, True),
    SortKey.RATING_ASC: (_rating, False),
    SortKey.CREATED_DESC: (_created, True),
    SortKey.CREATED_ASC: (_created, False),
    SortKey.TAGS_DESC: (_tag_count, True),
    SortKey.TAGS_ASC: (_tag_count, False),
    SortKey.CATEGORY_ASC: (_first_domain, False),
    SortKey.TAG_NAME_ASC: (_first_tag, False),
}


def matches_query(record: FeedRecord, query: str) -> bool:
    if not query:
        return True
    searchable = " ".join(
        [
            record.title,
            record.url,
            *record.domain,
            *record.subdomain,
            *record.area,
            *record.topic,
            *record.tags,
        ]
    )
    return query.lower() in searchable.lower()


def matches_types(record: FeedRecord, selected: Sequence[FeedType]) -> bool:
    return not selected or record.type in selected


def matches_paths(record: FeedRecord, selected: Sequence[CategoryPath]) -> bool:
    return not selected or any(path.matches(record) for path in selected)


def matches_tags(record: FeedRecord, selected: Sequence[str]) -> bool:
    return not selected or any(tag in record.tags for tag in selected)


def record_matches(record: FeedRecord, state: FilterState) -> bool:
    """Apply every facet clause; clauses are AND'd, values within one are OR'd."""
    return (
        matches_query(record, state.query)
        and matches_types(record, state.selected_types)
        and matches_paths(record, state.selected_paths)
        and matches_tags(record, state.selected_tags)
    )


def filter_records(
    records: Iterable[FeedRecord], state: FilterState
) -> List[FeedRecord]:
    """Return the records passing ``state`` in catalog order."""
    return [record for record in records if record_matches(record, state)]


def sort_records(
    records: Iterable[FeedRecord], key: Union[SortKey, str]
) -> List[FeedRecord]:
    """Stable sort; records that compare equal keep their incoming order."""
    key_func, descending = _SORT_SPECS[SortKey(key)]
    return sorted(records, key=key_func, reverse=descending)


def paginate(records: Sequence[FeedRecord], page: int, page_size: int) -> ResultView:
    """Slice one page out of ``records``.

    Pages past the end, or below 1, produce an empty slice rather than an
    error.
    """
    total = len(records)
    if page < 1:
        window: List[FeedRecord] = []
    else:
        start = (page - 1) * page_size
        end = min(start + page_size, total)
        window = list(records[start:end])
    return ResultView(records=window, page=page, page_size=page_size, total=total)


def count_for(records: Iterable[FeedRecord], kind: str, value: str) -> int:
    """Count records matching a single facet value."""
    if kind == "type":
        return sum(1 for record in records if record.type == value)
    if kind == "tag":
        return sum(1 for record in records if value in record.tags)
    if kind in CATEGORY_LEVELS:
        return sum(1 for record in records if value in record.categories(kind))
    raise ValueError(f"Unknown facet kind: {kind}")


class DiscoverEngine:
    """Owns the browsing state for one catalog and evaluates views over it.

    Filter mutations drop the cached membership and return to page 1.
    Changing the sort only reorders the cached membership.
    """

    def __init__(
        self,
        records: Iterable[FeedRecord],
        state: Optional[FilterState] = None,
        sort: Union[SortKey, str] = SortKey.TITLE_ASC,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.records: Tuple[FeedRecord, ...] = tuple(records)
        self.index = build_category_index(self.records)
        self.state = state if state is not None else FilterState()
        self.sort = SortKey(sort)
        self.page = 1
        self.page_size = _check_page_size(page_size)
        self._matched: Optional[List[FeedRecord]] = None
        self._ordered: Optional[List[FeedRecord]] = None

    def _invalidate(self) -> None:
        self._matched = None
        self._ordered = None
        self.page = 1

    def set_query(self, text: str) -> None:
        self.state.query = text
        self._invalidate()

    def toggle_type(self, feed_type: Union[FeedType, str]) -> bool:
        added = self.state.toggle_type(FeedType(feed_type))
        self._invalidate()
        return added

    def toggle_path(self, path: CategoryPath) -> bool:
        added = self.state.toggle_path(path)
        self._invalidate()
        return added

    def toggle_tag(self, tag: str) -> bool:
        added = self.state.toggle_tag(tag)
        self._invalidate()
        return added

    def clear_all(self) -> None:
        self.state = FilterState()
        self._invalidate()

    def set_sort(self, key: Union[SortKey, str]) -> None:
        self.sort = SortKey(key)
        self._ordered = None

    def set_page(self, page: int) -> None:
        self.page = page

    def set_page_size(self, page_size: int) -> None:
        self.page_size = _check_page_size(page_size)
        self.page = 1

    def matched(self) -> List[FeedRecord]:
        """Return the full filtered and sorted result set."""
        if self._matched is None:
            self._matched = filter_records(self.records, self.state)
            logger.debug(
                "Filter matched %d of %d records",
                len(self._matched),
                len(self.records),
            )
        if self._ordered is None:
            self._ordered = sort_records(self._matched, self.sort)
        return self._ordered

    def evaluate(self) -> ResultView:
        return paginate(self.matched(), self.page, self.page_size)

    def count_for(self, kind: str, value: str) -> int:
        """Count over the whole catalog, ignoring the active filters."""
        return count_for(self.records, kind, value)

    def facet_counts(self, kind: str) -> Dict[str, int]:
        if kind not in FACET_KINDS:
            raise ValueError(f"Unknown facet kind: {kind}")
        return {
            value: count_for(self.records, kind, value)
            for value in facet_values(self.records, kind)
        }

    def is_category_selected(self, level: str, value: str) -> bool:
        if level not in CATEGORY_LEVELS:
            raise ValueError(f"Unknown category level: {level}")
        return any(
            getattr(path, level) == value for path in self.state.selected_paths
        )


def _check_page_size(page_size: int) -> int:
    if page_size < 1:
        raise ValueError(f"Page size must be positive, got {page_size}")
    return page_size
