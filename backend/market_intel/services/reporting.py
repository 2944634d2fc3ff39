"""
Market summaries and data-quality monitoring over cleaned_activities.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging

from sqlalchemy.orm import Session

from market_intel.core.config import CleaningConfig
from market_intel.db.repositories import CleanedActivityRepository

logger = logging.getLogger(__name__)

QUALITY_BUCKETS = ["90-100", "80-89", "70-79", "60-69", "50-59", "40-49", "30-39", "20-29", "10-19", "0-9"]

# coverage metric -> human label used in issues / recommendations
COVERAGE_LABELS = {
    "price_coverage": ("price", "Re-scrape listings without a parsable price"),
    "rating_coverage": ("rating", "Backfill ratings from listing detail pages"),
    "review_coverage": ("review count", "Capture review counts alongside ratings"),
    "duration_coverage": ("duration", "Extend duration parsing or scrape detail pages"),
    "description_coverage": ("description", "Import descriptions for listings that lack them"),
    "city_coverage": ("city", "Add landmark patterns for unresolved listings, then reclassify"),
}


def _round2(value: float) -> float:
    return round(value * 100) / 100


def _bucket(score: int) -> str:
    if score >= 90:
        return "90-100"
    low = max(0, (score // 10) * 10)
    return f"{low}-{low + 9}"


def summarize_activities(
    rows: Sequence[Any],
    city: Optional[str] = None,
    platform: Optional[str] = None,
    region: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Summary block of the market endpoint. Averages only count rows with a
    positive value; breakdowns bucket missing values as "Unknown".
    """
    with_prices = [r.price_numeric for r in rows if r.price_numeric and r.price_numeric > 0]
    with_ratings = [r.rating_numeric for r in rows if r.rating_numeric and r.rating_numeric > 0]
    with_reviews = [r.review_count_numeric for r in rows if r.review_count_numeric and r.review_count_numeric > 0]

    currency_breakdown: Dict[str, int] = {}
    region_breakdown: Dict[str, int] = {}
    for r in rows:
        currency = r.price_currency or "Unknown"
        currency_breakdown[currency] = currency_breakdown.get(currency, 0) + 1
        reg = r.region or "Unknown"
        region_breakdown[reg] = region_breakdown.get(reg, 0) + 1

    total = len(rows)
    return {
        "total_activities": total,
        "gyg_activities": sum(1 for r in rows if r.platform == "gyg"),
        "viator_activities": sum(1 for r in rows if r.platform == "viator"),
        "activities_with_prices": len(with_prices),
        "activities_with_ratings": len(with_ratings),
        "activities_with_reviews": len(with_reviews),
        "average_price": _round2(sum(with_prices) / len(with_prices)) if with_prices else 0,
        "average_rating": _round2(sum(with_ratings) / len(with_ratings)) if with_ratings else 0,
        "total_reviews": sum(with_reviews),
        "city": city or "All",
        "platform": platform or "All",
        "region": region or "All",
        "currency_breakdown": currency_breakdown,
        "region_breakdown": region_breakdown,
        "average_quality_score": round(sum(r.quality_score or 0 for r in rows) / total) if total else 0,
    }


@dataclass
class QualityMetrics:
    total_activities: int = 0
    price_coverage: float = 0.0
    rating_coverage: float = 0.0
    review_coverage: float = 0.0
    duration_coverage: float = 0.0
    description_coverage: float = 0.0
    city_coverage: float = 0.0
    average_quality_score: float = 0.0
    high_quality_activities: int = 0
    quality_distribution: Dict[str, int] = field(default_factory=lambda: {b: 0 for b in QUALITY_BUCKETS})
    top_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def quality_metrics(db: Session, config: CleaningConfig) -> QualityMetrics:
    """Coverage, score distribution and follow-up hints for the cleaned table."""
    repo = CleanedActivityRepository(db)
    metrics = QualityMetrics()
    total = repo.count()
    metrics.total_activities = total
    if total == 0:
        metrics.top_issues.append("No cleaned activities found")
        metrics.recommendations.append("Run the cleaning pipeline")
        return metrics

    def pct(count: int) -> float:
        return round(count / total * 100, 1)

    metrics.price_coverage = pct(repo.count_where_not_null("price_numeric"))
    metrics.rating_coverage = pct(repo.count_where_not_null("rating_numeric"))
    metrics.review_coverage = pct(repo.count_where_not_null("review_count_numeric"))
    metrics.duration_coverage = pct(repo.count_with_duration())
    metrics.description_coverage = pct(repo.count_with_description())
    metrics.city_coverage = pct(repo.count_known_city())

    scores = repo.quality_scores()
    metrics.average_quality_score = round(sum(scores) / total, 1)
    metrics.high_quality_activities = sum(1 for s in scores if s >= config.quality_threshold)
    for score in scores:
        metrics.quality_distribution[_bucket(score)] += 1

    for attr, (label, recommendation) in COVERAGE_LABELS.items():
        coverage = getattr(metrics, attr)
        if coverage < 50:
            metrics.top_issues.append(f"Low {label} coverage ({coverage}%)")
            metrics.recommendations.append(recommendation)

    if metrics.average_quality_score < config.quality_threshold:
        metrics.top_issues.append(
            f"Average quality score {metrics.average_quality_score} below threshold {config.quality_threshold}"
        )
    return metrics


def distributions(db: Session, top_cities: int = 15) -> Dict[str, List[Dict[str, Any]]]:
    """groupBy counts for platform, city, currency and region."""
    repo = CleanedActivityRepository(db)

    def as_list(pairs):
        return [{"value": value if value is not None else "Unknown", "count": count} for value, count in pairs]

    return {
        "platform": as_list(repo.count_by("platform")),
        "city": as_list(repo.count_by("city", limit=top_cities)),
        "currency": as_list(repo.count_by("price_currency")),
        "region": as_list(repo.count_by("region")),
    }


def log_quality_report(metrics: QualityMetrics) -> None:
    logger.info(f"Total activities: {metrics.total_activities}")
    logger.info(f"Price coverage: {metrics.price_coverage}%")
    logger.info(f"Rating coverage: {metrics.rating_coverage}%")
    logger.info(f"Review coverage: {metrics.review_coverage}%")
    logger.info(f"Duration coverage: {metrics.duration_coverage}%")
    logger.info(f"Description coverage: {metrics.description_coverage}%")
    logger.info(f"City coverage: {metrics.city_coverage}%")
    logger.info(f"Average quality score: {metrics.average_quality_score}/100")
    for bucket, count in metrics.quality_distribution.items():
        logger.info(f"  {bucket}: {count}")
    for issue in metrics.top_issues:
        logger.warning(f"Issue: {issue}")
    for rec in metrics.recommendations:
        logger.info(f"Recommendation: {rec}")
