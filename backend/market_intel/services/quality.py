"""
Completeness score (0-100) for a cleaned activity.

Each tracked field contributes its weight when it holds a valid value, so
filling in a missing field can only raise the score and 100 needs all of
them. Default weights: price 25, rating 20, reviews 20, description 20,
duration 15.
"""

from typing import Any, Dict, Mapping, Optional

from market_intel.core.config import DEFAULT_QUALITY_WEIGHTS


def _has_text(value: Any) -> bool:
    return value is not None and bool(str(value).strip())


def field_presence(fields: Mapping[str, Any]) -> Dict[str, bool]:
    """Which tracked fields hold a valid value."""
    price = fields.get("price_numeric")
    rating = fields.get("rating_numeric")
    reviews = fields.get("review_count_numeric")
    return {
        "price": price is not None and price >= 0,
        "rating": rating is not None and 0 <= rating <= 5,
        "reviews": reviews is not None and reviews >= 0,
        "description": _has_text(fields.get("description")),
        "duration": (
            fields.get("duration_hours") is not None
            or fields.get("duration_days") is not None
            or _has_text(fields.get("duration"))
        ),
    }


def score_activity(
    fields: Mapping[str, Any],
    weights: Optional[Mapping[str, int]] = None,
) -> int:
    """Sum of the weights of every present field, clamped to 0..100."""
    weights = weights or DEFAULT_QUALITY_WEIGHTS
    present = field_presence(fields)
    score = sum(weights[name] for name, ok in present.items() if ok)
    return max(0, min(100, int(score)))
