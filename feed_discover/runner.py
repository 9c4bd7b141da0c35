"""High-level orchestration for the feed_discover commands."""

from __future__ import annotations

import concurrent.futures
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, List, Optional, Tuple

from . import db
from .catalog import load_catalog, record_to_dict
from .feeds import (
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    FeedFetchError,
    fetch_feed_document,
    preview_feed,
)
from .filtering import DEFAULT_PAGE_SIZE, DiscoverEngine, SortKey
from .models import (
    CATEGORY_LEVELS,
    CategoryPath,
    FeedRecord,
    FeedType,
    FilterState,
    PreviewArticle,
    filter_state_to_dict,
)
from .renderers import (
    build_facets_text,
    build_preview_text,
    build_results_html,
    build_results_text,
)

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "html", "json")


@dataclass
class RunConfig:
    """Runtime options for executing a command."""

    catalog_file: Optional[str] = None
    query: Optional[str] = None
    types: List[str] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    sort: SortKey = SortKey.TITLE_ASC
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    output_format: str = "text"
    clear: bool = False
    save_state: bool = True
    database_enabled: bool = False
    database_connection_string: Optional[str] = None
    preview_targets: List[str] = field(default_factory=list)
    preview_timeout: float = DEFAULT_TIMEOUT
    preview_retries: int = 1
    preview_concurrency: int = 4
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class RunResult:
    """Returned data after executing a command."""

    output_text: str
    payload: Any
    failures: int = 0


def _session_factory(config: RunConfig):
    if not config.database_enabled:
        return None
    if not config.database_connection_string:
        logger.warning(
            "Database enabled but no connection string provided. "
            "Filter state will not be persisted."
        )
        return None
    engine = db.init_engine(config.database_connection_string)
    return db.get_session_factory(engine) if engine else None


def _restore_state(config: RunConfig, session_factory) -> FilterState:
    if config.clear or session_factory is None:
        return FilterState()
    with session_factory() as session:
        state = db.load_filter_state(session)
    logger.info("Restored filter state: %s", filter_state_to_dict(state))
    return state


def _apply_selections(engine: DiscoverEngine, config: RunConfig) -> None:
    """Select the facets named on the command line, keeping existing ones."""
    if config.query is not None:
        engine.set_query(config.query)
    for raw_type in config.types:
        if FeedType(raw_type) not in engine.state.selected_types:
            engine.toggle_type(raw_type)
    for raw_path in config.paths:
        path = CategoryPath.parse(raw_path)
        if not path.populated():
            raise ValueError(f"Empty category path: {raw_path!r}")
        if path not in engine.state.selected_paths:
            engine.toggle_path(path)
    for tag in config.tags:
        if tag not in engine.state.selected_tags:
            engine.toggle_tag(tag)


def build_engine(
    config: RunConfig, state: Optional[FilterState] = None
) -> DiscoverEngine:
    records = load_catalog(config.catalog_file)
    return DiscoverEngine(
        records, state=state, sort=config.sort, page_size=config.page_size
    )


def run_browse(config: RunConfig) -> RunResult:
    """Filter, sort and page the catalog, then render the requested page."""
    if config.output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {config.output_format}")

    session_factory = _session_factory(config)
    engine = build_engine(config, _restore_state(config, session_factory))
    _apply_selections(engine, config)
    engine.set_page(config.page)

    view = engine.evaluate()
    logger.info(
        "Showing page %d of %d (%d matching feeds)",
        view.page,
        view.total_pages,
        view.total,
    )

    if session_factory is not None and config.save_state:
        with session_factory() as session:
            db.save_filter_state(session, engine.state)

    payload = {
        "total": view.total,
        "page": view.page,
        "pageSize": view.page_size,
        "totalPages": view.total_pages,
        "sort": engine.sort.value,
        "filters": filter_state_to_dict(engine.state),
        "feeds": [record_to_dict(record) for record in view.records],
    }

    if config.output_format == "json":
        output_text = json.dumps(payload, indent=2, ensure_ascii=False)
    elif config.output_format == "html":
        output_text = build_results_html(view, engine.state, engine.sort)
    else:
        output_text = build_results_text(view, engine.state, engine.sort)

    return RunResult(output_text=output_text, payload=payload)


def run_facets(config: RunConfig) -> RunResult:
    """List every facet value with its catalog-wide count."""
    engine = build_engine(config)
    counts = {kind: engine.facet_counts(kind) for kind in ("type", "tag")}
    level_counts = {level: engine.facet_counts(level) for level in CATEGORY_LEVELS}
    payload = {**counts, **level_counts}

    if config.output_format == "json":
        output_text = json.dumps(payload, indent=2, ensure_ascii=False)
    else:
        output_text = build_facets_text(counts, engine.index, level_counts)
    return RunResult(output_text=output_text, payload=payload)


def _resolve_target(
    target: str, records: Tuple[FeedRecord, ...]
) -> Tuple[str, Optional[FeedRecord]]:
    for record in records:
        if record.id == target or record.url == target:
            return record.url, record
    if target.startswith(("http://", "https://")):
        return target, None
    raise ValueError(f"Unknown feed id: {target}")


def run_preview(config: RunConfig) -> RunResult:
    """Fetch and parse the requested feeds in parallel."""
    if not config.preview_targets:
        raise ValueError("No feeds given to preview.")

    records = load_catalog(config.catalog_file)
    targets = [_resolve_target(target, records) for target in config.preview_targets]
    fetcher = partial(
        fetch_feed_document,
        timeout=config.preview_timeout,
        user_agent=config.user_agent,
    )

    def process_target(url: str) -> Tuple[List[PreviewArticle], Optional[str]]:
        try:
            articles = preview_feed(
                url, retries=config.preview_retries, fetcher=fetcher
            )
        except FeedFetchError as exc:
            logger.error("%s", exc)
            return [], exc.reason
        return articles, None

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=config.preview_concurrency
    ) as executor:
        results = list(executor.map(process_target, [url for url, _ in targets]))

    failures = sum(1 for _, error in results if error is not None)
    payload = [
        {
            "url": url,
            "feed": record.id if record else None,
            "error": error,
            "articles": [dataclasses.asdict(article) for article in articles],
        }
        for (url, record), (articles, error) in zip(targets, results)
    ]

    if config.output_format == "json":
        output_text = json.dumps(payload, indent=2, ensure_ascii=False)
    else:
        output_text = "\n".join(
            build_preview_text(articles, feed=record, url=url, error=error)
            for (url, record), (articles, error) in zip(targets, results)
        )

    return RunResult(output_text=output_text, payload=payload, failures=failures)
