"""Persistence of browsing state in a small key/value table."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .models import FilterState, filter_state_to_dict, merge_filter_state

logger = logging.getLogger(__name__)

STORAGE_KEY = "rss-discover-filters"


class Base(DeclarativeBase):
    pass


class StateModel(Base):
    """One stored JSON blob per key."""

    __tablename__ = "ui_state"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    engine = create_engine(connection_string)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def get_value(session: Session, key: str) -> Optional[str]:
    stmt = select(StateModel).where(StateModel.key == key)
    row = session.execute(stmt).scalar_one_or_none()
    return row.value if row else None


def set_value(session: Session, key: str, value: str) -> None:
    """Insert or replace the blob stored under ``key``."""
    stmt = select(StateModel).where(StateModel.key == key)
    existing = session.execute(stmt).scalar_one_or_none()

    if existing:
        existing.value = value
        existing.updated_at = datetime.now(timezone.utc)
    else:
        session.add(
            StateModel(key=key, value=value, updated_at=datetime.now(timezone.utc))
        )

    try:
        session.commit()
    except Exception:
        session.rollback()
        raise


def load_filter_state(session: Session, key: str = STORAGE_KEY) -> FilterState:
    """Restore filter selections, falling back to defaults for unreadable data."""
    raw = get_value(session, key)
    if raw is None:
        return FilterState()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Stored filter state under %r is not valid JSON: %s", key, exc)
        return FilterState()
    return merge_filter_state(payload)


def save_filter_state(
    session: Session, state: FilterState, key: str = STORAGE_KEY
) -> None:
    set_value(session, key, json.dumps(filter_state_to_dict(state)))
    logger.debug("Saved filter state under %r", key)
