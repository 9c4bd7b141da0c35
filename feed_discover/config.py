"""Configuration loading for feed_discover."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from xml.etree import ElementTree as ET

from .feeds import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .filtering import DEFAULT_PAGE_SIZE, SortKey

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class DatabaseConfig:
    enabled: bool = False
    connection_string: Optional[str] = None


@dataclass
class PreviewConfig:
    timeout: float = DEFAULT_TIMEOUT
    retries: int = 1
    concurrency: int = 4
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class AppConfig:
    catalog_file: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    sort: SortKey = SortKey.TITLE_ASC
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _resolve_connection_string(base_path: Path, value: str) -> str:
    """Anchor relative SQLite file paths to the config file's directory."""
    prefix = "sqlite:///"
    if not value.startswith(prefix):
        return value
    target = value[len(prefix):]
    if not target or target == ":memory:" or target.startswith("/"):
        return value
    return prefix + _resolve_path(base_path, target)


def _bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() == "true"


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    catalog_file = root.findtext("catalog")
    if catalog_file and catalog_file.strip():
        catalog_file = _resolve_path(config_path, catalog_file.strip())
    else:
        catalog_file = None

    page_size = int(root.findtext("page-size", str(DEFAULT_PAGE_SIZE)))
    if page_size < 1:
        raise ValueError(f"<page-size> must be positive, got {page_size}")

    sort_text = root.findtext("sort", SortKey.TITLE_ASC.value).strip()
    try:
        sort = SortKey(sort_text)
    except ValueError:
        raise ValueError(f"Unknown <sort> value: {sort_text}")

    # Logging
    log_node = root.find("logging")
    logging_config = LoggingConfig()
    if log_node is not None:
        logging_config.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            logging_config.file = _resolve_path(config_path, log_file)

    # Database
    db_node = root.find("database")
    db_config = DatabaseConfig()
    if db_node is not None:
        db_config.enabled = _bool(db_node.findtext("enabled"))
        connection_string = db_node.findtext("connection-string")
        if connection_string:
            db_config.connection_string = _resolve_connection_string(
                config_path, connection_string.strip()
            )

    # Preview
    preview_node = root.find("preview")
    preview = PreviewConfig()
    if preview_node is not None:
        preview.timeout = float(
            preview_node.findtext("timeout", str(DEFAULT_TIMEOUT))
        )
        preview.retries = int(preview_node.findtext("retries", "1"))
        preview.concurrency = int(preview_node.findtext("concurrency", "4"))
        user_agent = preview_node.findtext("user-agent")
        if user_agent:
            preview.user_agent = user_agent.strip()
        if preview.retries < 0:
            raise ValueError("<retries> must not be negative.")
        if preview.concurrency < 1:
            raise ValueError("<concurrency> must be positive.")

    return AppConfig(
        catalog_file=catalog_file,
        page_size=page_size,
        sort=sort,
        logging=logging_config,
        database=db_config,
        preview=preview,
    )
