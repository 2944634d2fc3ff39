"""
Cleaning orchestrator: raw import rows -> cleaned_activities.

Each surviving raw row becomes exactly one CleanedActivity, upserted on
(original_id, original_source) so re-runs overwrite instead of piling up.
A full rebuild (delete everything first) is still available as an explicit
mode. Per-record failures are logged and counted; the batch keeps going.
"""

from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from sqlalchemy.orm import Session

from market_intel.core.config import CleaningConfig
from market_intel.core.monitoring import track_performance
from market_intel.db.repositories import CleanedActivityRepository, RawActivityRepository
from market_intel.services.city_resolver import (
    UNKNOWN_CITY,
    default_currency,
    infer_region,
    reclassify_city,
    resolve_activity_city,
)
from market_intel.services.parsers import (
    UNKNOWN,
    ParsedPrice,
    ParsedRating,
    ParsedReviewCount,
    clean_tags,
    parse_duration,
    parse_location,
    parse_price,
    parse_rating,
    parse_review_count,
    review_count_from_rating,
)
from market_intel.services.quality import score_activity

logger = logging.getLogger(__name__)

SOURCES: Tuple[str, ...] = ("gyg", "viator")


@dataclass
class CleaningStats:
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    high_quality: int = 0
    rebuilt_deleted: int = 0
    failed_records: List[Tuple[str, Any]] = field(default_factory=list)
    per_source: Dict[str, int] = field(default_factory=dict)


@dataclass
class ReclassifyStats:
    checked: int = 0
    changed: int = 0
    failed: int = 0
    moves: Counter = field(default_factory=Counter)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def derive_region(city: str, country: Optional[str], location: Optional[str]) -> Optional[str]:
    """Market region implied by the resolved city, country or location."""
    known_city = city if city != UNKNOWN_CITY else None
    return infer_region(known_city, country, parse_location(location).city)


def _reject_outliers(
    price: ParsedPrice,
    currency: Optional[str],
    rating: ParsedRating,
    reviews: ParsedReviewCount,
    config: CleaningConfig,
) -> Tuple[ParsedPrice, Optional[str], ParsedRating, ParsedReviewCount]:
    """Out-of-bounds values become unknown, text included, so they re-parse to None."""
    max_price = config.max_price_by_currency.get(currency) if currency else None
    if price.numeric_value is not None and max_price is not None and price.numeric_value > max_price:
        logger.debug(f"Dropping outlier price {price.display_text!r} (max {currency}{max_price:g})")
        price, currency = ParsedPrice(UNKNOWN, None, None), None

    if rating.numeric_value is not None and rating.numeric_value < config.rating_min:
        logger.debug(f"Dropping outlier rating {rating.display_text!r}")
        rating = ParsedRating(UNKNOWN, None)

    if reviews.numeric_value is not None and reviews.numeric_value > config.max_review_count:
        logger.debug(f"Dropping outlier review count {reviews.display_text!r}")
        reviews = ParsedReviewCount(UNKNOWN, None)

    return price, currency, rating, reviews


def clean_record(
    raw: Any,
    source: str,
    config: Optional[CleaningConfig] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Column values for the CleanedActivity derived from one raw row."""
    config = config or CleaningConfig()
    now = now or datetime.now(timezone.utc)

    activity_name = (raw.activity_name or "").strip()
    provider_name = (raw.provider_name or "").strip()

    price = parse_price(raw.price_text)
    rating = parse_rating(raw.rating_text)
    reviews = parse_review_count(raw.review_count_text)
    if reviews.numeric_value is None and _text(raw.review_count_text) is None:
        reviews = review_count_from_rating(raw.rating_text)
    duration = parse_duration(raw.duration)

    location = _text(raw.location) or _text(raw.city)
    parsed_location = parse_location(location)
    raw_region = _text(raw.region)
    city = resolve_activity_city(activity_name, raw_region, location)
    country = _text(raw.country) or parsed_location.country

    region = raw_region
    region_inferred = False
    if region is None:
        region = derive_region(city, country, location)
        region_inferred = region is not None

    currency = price.currency
    if currency is None and price.numeric_value is not None:
        currency = default_currency(region)

    price, currency, rating, reviews = _reject_outliers(price, currency, rating, reviews, config)

    values: Dict[str, Any] = {
        "original_id": str(raw.id),
        "original_source": source,
        "platform": source,
        "activity_name": activity_name,
        "provider_name": provider_name,
        "location": location,
        "city": city,
        "country": country,
        "region": region,
        "region_inferred": region_inferred,
        "venue": parsed_location.venue,
        "price_text": price.display_text,
        "price_numeric": price.numeric_value,
        "price_currency": currency,
        "rating_text": rating.display_text,
        "rating_numeric": rating.numeric_value,
        "review_count_text": reviews.display_text,
        "review_count_numeric": reviews.numeric_value,
        "duration": duration.display_text,
        "duration_hours": duration.hours,
        "duration_days": duration.days,
        "description": _text(raw.description),
        "category": _text(getattr(raw, "category", None)),
        "activity_type": _text(getattr(raw, "activity_type", None)),
        "url": _text(raw.url),
        "tags": clean_tags(raw.tags),
        "cleaned_at": now,
    }
    values["quality_score"] = score_activity(values, config.quality_weights)
    return values


class CleaningPipeline:
    """
    Sequential batch over the raw tables. One statement and one commit per
    record; a crash mid-run leaves earlier rows in place and a re-run
    simply upserts over them.
    """

    def __init__(self, db: Session, config: CleaningConfig):
        self.db = db
        self.config = config
        self.cleaned = CleanedActivityRepository(db)

    @track_performance("Cleaning pipeline")
    def run(self, sources: Sequence[str] = SOURCES, full_rebuild: bool = False) -> CleaningStats:
        stats = CleaningStats()

        if full_rebuild:
            stats.rebuilt_deleted = self.cleaned.delete_all()
            logger.info(f"Full rebuild: removed {stats.rebuilt_deleted} existing cleaned activities")

        for source in sources:
            self._clean_source(source, stats)

        logger.info(
            f"Cleaning done: processed {stats.processed}, created {stats.created}, "
            f"updated {stats.updated}, failed {stats.failed}, "
            f"high quality (>= {self.config.quality_threshold}) {stats.high_quality}"
        )
        return stats

    def _clean_source(self, source: str, stats: CleaningStats) -> None:
        rows = RawActivityRepository(self.db, source).list_all()
        total = len(rows)
        logger.info(f"[{source}] {total} raw activities to clean")

        done = 0
        for raw in rows:
            raw_id = raw.id
            try:
                values = clean_record(raw, source, self.config)
                _, created = self.cleaned.upsert(values)
            except Exception as e:
                logger.error(f"[{source}] failed to clean activity {raw_id}: {e}")
                stats.failed += 1
                stats.failed_records.append((source, raw_id))
            else:
                if created:
                    stats.created += 1
                else:
                    stats.updated += 1
                if values["quality_score"] >= self.config.quality_threshold:
                    stats.high_quality += 1

            done += 1
            stats.processed += 1
            if done % self.config.progress_every == 0:
                logger.info(f"[{source}] processed {done}/{total} activities...")

        stats.per_source[source] = done


@track_performance("City reclassification")
def reclassify_cities(db: Session, config: CleaningConfig) -> ReclassifyStats:
    """
    Re-run city resolution over every cleaned row and fix the ones that
    differ. Convergent: a second run right after the first changes nothing.
    """
    repo = CleanedActivityRepository(db)
    stats = ReclassifyStats()
    rows = repo.list_all()
    total = len(rows)
    logger.info(f"Reclassifying cities for {total} cleaned activities")

    for row in rows:
        stats.checked += 1
        row_id = row.id
        try:
            # an inferred region came from the old city, so it is no hint
            region_hint = None if row.region_inferred else row.region
            new_city = reclassify_city(row.city, row.activity_name, region_hint, row.location)
            new_region = row.region
            if row.region_inferred or row.region is None:
                new_region = derive_region(new_city, row.country, row.location)

            if new_city != row.city or new_region != row.region:
                old_city = row.city
                repo.update_fields(
                    row,
                    city=new_city,
                    region=new_region,
                    region_inferred=new_region is not None and (row.region_inferred or row.region is None),
                )
                stats.changed += 1
                stats.moves[(old_city, new_city)] += 1
        except Exception as e:
            logger.error(f"Failed to reclassify cleaned activity {row_id}: {e}")
            stats.failed += 1

        if stats.checked % config.progress_every == 0:
            logger.info(f"Checked {stats.checked}/{total} activities...")

    for (old, new), count in stats.moves.most_common():
        if old != new:
            logger.info(f"  {old} -> {new}: {count}")
    logger.info(f"Reclassification done: {stats.changed} of {stats.checked} changed")
    return stats
