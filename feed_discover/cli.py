"""Command-line interface for the feed_discover application."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pprint
from pathlib import Path
from typing import List, Optional

from .catalog import CatalogError
from .config import AppConfig, parse_app_config
from .filtering import SortKey
from .runner import OUTPUT_FORMATS, RunConfig, run_browse, run_facets, run_preview

logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Browse a catalog of RSS and Atom feeds and preview them."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the main configuration XML file (defaults are used if omitted).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    parser.add_argument(
        "--catalog",
        default=None,
        help="Path to a catalog JSON file. Overrides config.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    browse = subparsers.add_parser("browse", help="Filter and page the catalog.")
    browse.add_argument("--query", default=None, help="Free-text search.")
    browse.add_argument(
        "--type",
        dest="types",
        action="append",
        default=[],
        help="Select a feed type (repeatable).",
    )
    browse.add_argument(
        "--path",
        dest="paths",
        action="append",
        default=[],
        metavar="DOMAIN>SUBDOMAIN>AREA>TOPIC",
        help="Select a category path; leave segments empty to skip levels (repeatable).",
    )
    browse.add_argument(
        "--tag",
        dest="tags",
        action="append",
        default=[],
        help="Select a tag (repeatable).",
    )
    browse.add_argument(
        "--sort",
        choices=[key.value for key in SortKey],
        default=None,
        help="Sort order. Overrides config.",
    )
    browse.add_argument("--page", type=int, default=1)
    browse.add_argument(
        "--page-size", type=int, default=None, help="Overrides config."
    )
    browse.add_argument("--format", choices=OUTPUT_FORMATS, default="text")
    browse.add_argument(
        "--clear",
        action="store_true",
        help="Start from empty filters instead of the saved ones.",
    )
    browse.add_argument(
        "--no-save",
        action="store_true",
        help="Do not persist the resulting filters.",
    )

    facets = subparsers.add_parser(
        "facets", help="List facet values with catalog-wide counts."
    )
    facets.add_argument("--format", choices=("text", "json"), default="text")

    preview = subparsers.add_parser(
        "preview", help="Show the latest articles of one or more feeds."
    )
    preview.add_argument(
        "targets", nargs="+", metavar="FEED", help="Catalog feed id or feed URL."
    )
    preview.add_argument("--format", choices=("text", "json"), default="text")
    preview.add_argument(
        "--retries", type=int, default=None, help="Overrides config."
    )

    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def build_run_config(args: argparse.Namespace, app_config: AppConfig) -> RunConfig:
    """Merge parsed arguments over the file configuration."""
    config = RunConfig(
        catalog_file=args.catalog or app_config.catalog_file,
        sort=app_config.sort,
        page_size=app_config.page_size,
        output_format=args.format,
        database_enabled=app_config.database.enabled,
        database_connection_string=app_config.database.connection_string,
        preview_timeout=app_config.preview.timeout,
        preview_retries=app_config.preview.retries,
        preview_concurrency=app_config.preview.concurrency,
        user_agent=app_config.preview.user_agent,
    )

    if args.command == "browse":
        config.query = args.query
        config.types = list(args.types)
        config.paths = list(args.paths)
        config.tags = list(args.tags)
        config.page = args.page
        config.clear = args.clear
        config.save_state = not args.no_save
        if args.sort:
            config.sort = SortKey(args.sort)
        if args.page_size is not None:
            if args.page_size < 1:
                raise ValueError("--page-size must be positive.")
            config.page_size = args.page_size
    elif args.command == "preview":
        config.preview_targets = list(args.targets)
        if args.retries is not None:
            if args.retries < 0:
                raise ValueError("--retries must not be negative.")
            config.preview_retries = args.retries

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        # Determine logging settings (CLI overrides Config)
        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file

        configure_logging(log_level, log_file)

        config = build_run_config(args, app_config)

        config_dict = dataclasses.asdict(config)
        if config_dict.get("database_connection_string"):
            config_dict["database_connection_string"] = "***MASKED***"

        logger.debug("Active Configuration:\n%s", pprint.pformat(config_dict))

        if args.command == "browse":
            result = run_browse(config)
        elif args.command == "facets":
            result = run_facets(config)
        else:
            result = run_preview(config)
    except CatalogError as exc:
        logger.error("%s", exc)
        return 1
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    print(result.output_text)
    if args.command == "preview" and result.failures == len(config.preview_targets):
        return 1
    return 0
