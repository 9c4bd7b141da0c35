"""Catalog loading and the derived category index."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .models import CATEGORY_LEVELS, CategoryPath, FeedRecord, FeedType

logger = logging.getLogger(__name__)

BUNDLED_CATALOG = Path(__file__).resolve().parent / "data" / "feeds.json"

FACET_KINDS = ("type", "tag") + CATEGORY_LEVELS


class CatalogError(ValueError):
    """Raised when the catalog dataset cannot be loaded."""


@dataclass
class AreaNode:
    name: str
    topics: List[str] = field(default_factory=list)


@dataclass
class SubdomainNode:
    name: str
    areas: Dict[str, AreaNode] = field(default_factory=dict)


@dataclass
class DomainNode:
    name: str
    subdomains: Dict[str, SubdomainNode] = field(default_factory=dict)


@dataclass
class CategoryIndex:
    """Four-level taxonomy tree: domain -> subdomain -> area -> topics."""

    domains: Dict[str, DomainNode] = field(default_factory=dict)

    def add(self, domain: str, subdomain: str, area: str, topic: str) -> None:
        domain_node = self.domains.setdefault(domain, DomainNode(domain))
        sub_node = domain_node.subdomains.setdefault(
            subdomain, SubdomainNode(subdomain)
        )
        area_node = sub_node.areas.setdefault(area, AreaNode(area))
        if topic not in area_node.topics:
            area_node.topics.append(topic)

    def topics(self, domain: str, subdomain: str, area: str) -> List[str]:
        """Return the topics under a triple, or an empty list if unknown."""
        try:
            return list(self.domains[domain].subdomains[subdomain].areas[area].topics)
        except KeyError:
            return []

    def paths(self) -> Iterator[CategoryPath]:
        """Yield every full four-level path held by the index."""
        for domain_node in self.domains.values():
            for sub_node in domain_node.subdomains.values():
                for area_node in sub_node.areas.values():
                    for topic in area_node.topics:
                        yield CategoryPath(
                            domain_node.name, sub_node.name, area_node.name, topic
                        )


def build_category_index(records: Iterable[FeedRecord]) -> CategoryIndex:
    """Fold every record's category labels into a :class:`CategoryIndex`.

    Each record contributes the Cartesian product of its own domain,
    subdomain, area and topic labels, so a record with two domains and two
    subdomains yields four index branches. The index does not remember which
    record produced which branch.
    """
    index = CategoryIndex()
    count = 0
    for record in records:
        count += 1
        for domain in record.domain:
            for subdomain in record.subdomain:
                for area in record.area:
                    for topic in record.topic:
                        index.add(domain, subdomain, area, topic)
    logger.info(
        "Built category index with %d domains from %d records",
        len(index.domains),
        count,
    )
    return index


def facet_values(records: Iterable[FeedRecord], kind: str) -> List[str]:
    """Return the sorted distinct values a facet takes across ``records``."""
    values = set()
    for record in records:
        values.update(_record_facet_values(record, kind))
    return sorted(values)


def _record_facet_values(record: FeedRecord, kind: str) -> Tuple[str, ...]:
    if kind == "type":
        return (record.type.value,)
    if kind == "tag":
        return record.tags
    if kind in CATEGORY_LEVELS:
        return record.categories(kind)
    raise ValueError(f"Unknown facet kind: {kind}")


def load_catalog(path: Optional[str] = None) -> Tuple[FeedRecord, ...]:
    """Load the feed catalog from JSON, defaulting to the bundled dataset."""
    location = Path(path) if path else BUNDLED_CATALOG
    logger.info("Loading feed catalog from %s", location)
    try:
        payload = json.loads(location.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CatalogError(f"Catalog file not found: {location}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Catalog is not valid JSON: {location}") from exc

    if not isinstance(payload, list):
        raise CatalogError("Catalog must contain a JSON array.")

    records = tuple(record_from_dict(item) for item in payload)
    logger.info("Loaded %d catalog records", len(records))
    return records


def record_from_dict(data: Any) -> FeedRecord:
    """Convert one catalog JSON object into a :class:`FeedRecord`."""
    if not isinstance(data, dict):
        raise CatalogError("Catalog must contain objects only.")

    record_id = str(data.get("id") or "")
    for key in ("id", "title", "url", "type"):
        if not data.get(key):
            raise CatalogError(f"Catalog record {record_id!r} is missing '{key}'.")

    try:
        feed_type = FeedType(data["type"])
    except ValueError as exc:
        raise CatalogError(
            f"Catalog record {record_id!r} has unknown type {data['type']!r}."
        ) from exc

    return FeedRecord(
        id=record_id,
        title=str(data["title"]),
        url=str(data["url"]),
        type=feed_type,
        image_url=data.get("imageUrl") or None,
        domain=_string_tuple(data.get("domain")),
        subdomain=_string_tuple(data.get("subdomain")),
        area=_string_tuple(data.get("area")),
        topic=_string_tuple(data.get("topic")),
        tags=_string_tuple(data.get("tags")),
        created_at=_parse_timestamp(data.get("createdAt"), record_id),
        summary=data.get("summary") or None,
        rating=_parse_rating(data.get("rating"), record_id),
    )


def _string_tuple(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(item) for item in value)


def _parse_timestamp(value: Any, record_id: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable createdAt %r on %s", value, record_id)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_rating(value: Any, record_id: str) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric rating %r on %s", value, record_id)
        return None
    if not 0.0 <= rating <= 5.0:
        logger.warning("Clamping out-of-range rating %s on %s", rating, record_id)
        rating = min(max(rating, 0.0), 5.0)
    return rating


def record_to_dict(record: FeedRecord) -> Dict[str, Any]:
    """Serialise a record back to the catalog's JSON field names."""
    return {
        "id": record.id,
        "title": record.title,
        "url": record.url,
        "imageUrl": record.image_url or "",
        "domain": list(record.domain),
        "subdomain": list(record.subdomain),
        "area": list(record.area),
        "topic": list(record.topic),
        "tags": list(record.tags),
        "type": record.type.value,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "summary": record.summary,
        "rating": record.rating,
    }
