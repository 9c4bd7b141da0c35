import logging
from datetime import datetime, timezone

import pytest

from feed_discover.models import FeedRecord, FeedType


def make_record(record_id, **overrides):
    values = {
        "id": record_id,
        "title": record_id.title(),
        "url": f"https://{record_id}.example.com/feed.xml",
        "type": FeedType.BLOG,
    }
    values.update(overrides)
    for level in ("domain", "subdomain", "area", "topic", "tags"):
        if level in values:
            values[level] = tuple(values[level])
    return FeedRecord(**values)


@pytest.fixture
def records():
    """Small catalog covering every facet."""
    return (
        make_record(
            "alpha",
            title="Alpha Weekly",
            type=FeedType.NEWSLETTER,
            domain=["Technology"],
            subdomain=["Software Engineering"],
            area=["Programming Languages"],
            topic=["Python"],
            tags=["python", "weekly"],
            rating=4.0,
            created_at=datetime(2024, 3, 1, tzinfo=timezone.utc),
        ),
        make_record(
            "bravo",
            title="bravo security",
            type=FeedType.BLOG,
            domain=["Technology"],
            subdomain=["Security"],
            area=["Cybercrime"],
            topic=["Investigations"],
            tags=["security"],
            rating=4.5,
            created_at=datetime(2023, 1, 1, tzinfo=timezone.utc),
        ),
        make_record(
            "charlie",
            title="Charlie Science",
            type=FeedType.JOURNAL,
            domain=["Science"],
            subdomain=["Physics"],
            area=["Optics"],
            topic=["Lasers"],
            tags=["science", "research", "weekly"],
        ),
        make_record(
            "delta",
            title="Delta Podcast",
            type=FeedType.PODCAST,
            domain=["Technology", "Science"],
            subdomain=["Software Engineering", "Physics"],
            area=["Programming Languages"],
            topic=["Python", "Simulation"],
            tags=["python"],
            rating=3.0,
            created_at=datetime(2024, 6, 1, tzinfo=timezone.utc),
        ),
    )


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    try:
        yield root
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in original_handlers:
            root.addHandler(handler)
        root.setLevel(original_level)


@pytest.fixture
def record_factory():
    return make_record
