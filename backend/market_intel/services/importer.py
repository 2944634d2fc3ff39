"""
Raw importer: scraper export (JSON array) -> raw import tables.

Imports always append; a later import of the same listing supersedes the
earlier one until the deduplicator prunes it.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
import json
import logging

from sqlalchemy.orm import Session

from market_intel.db.repositories import RawActivityRepository
from market_intel.services.parsers import clean_tags

logger = logging.getLogger(__name__)

# export key -> raw column. The first key present wins for each column.
FIELD_MAP = {
    "activity_name": ("activity_name", "activityName", "title", "name"),
    "provider_name": ("provider_name", "providerName", "provider", "supplier"),
    "location": ("location",),
    "city": ("city",),
    "country": ("country",),
    "region": ("region",),
    "price_text": ("price", "price_text", "priceText"),
    "rating_text": ("rating", "rating_text", "ratingText"),
    "review_count_text": ("review_count", "review_count_text", "reviewCountText", "reviews"),
    "duration": ("duration",),
    "description": ("description",),
    "category": ("category",),
    "activity_type": ("activity_type", "activityType"),
    "url": ("url", "activity_url", "activityUrl"),
}


@dataclass
class ImportStats:
    source: str
    imported: int = 0
    skipped: int = 0


def _first(record: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if value is not None and str(value).strip() != "":
            return str(value).strip()
    return None


def map_record(record: Dict[str, Any], imported_at: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
    """One export record as raw column values, or None when it has no name."""
    row = {column: _first(record, keys) for column, keys in FIELD_MAP.items()}
    if not row["activity_name"]:
        return None
    row["provider_name"] = row["provider_name"] or ""
    original_id = record.get("id", record.get("original_id"))
    row["original_id"] = str(original_id) if original_id is not None else None
    row["tags"] = clean_tags(record.get("tags"))
    row["imported_at"] = imported_at or datetime.now(timezone.utc)
    return row


def import_raw_activities(db: Session, records: Iterable[Dict[str, Any]], source: str) -> ImportStats:
    """Append export records to the raw table for source."""
    repo = RawActivityRepository(db, source)
    stats = ImportStats(source=source)
    imported_at = datetime.now(timezone.utc)

    rows: List[Dict[str, Any]] = []
    for record in records:
        row = map_record(record, imported_at)
        if row is None:
            stats.skipped += 1
            continue
        rows.append(row)

    stats.imported = repo.add_many(rows)
    logger.info(f"[{source}] imported {stats.imported} raw activities ({stats.skipped} skipped)")
    return stats


def load_export(path: str) -> List[Dict[str, Any]]:
    """Read a JSON array export file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("activities", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON array of activities")
    return data
