"""
Free-text field parsers for scraped activity listings.

Every parser is total: it never raises, and input it cannot make sense of
comes back with a None numeric value and the original text preserved, so
the cleaning loop can run them without per-field error handling.

Data format in the raw tables (from the scraper exports):
  - price:        "€43", "From €45", "€33-45", "45€-60€", "£1,250.00", "45", "Unknown"
  - rating:       "4.4", "4.4 (63,652)", "4.4 (63,652 reviews)", "4.6/5"
  - review count: "1,234 reviews", "(1,234)", "1234", "1.2k reviews"
  - duration:     "3 hours", "2-3 hours", "1 day", "45 minutes", "1 hour 30 minutes"
  - location:     "Madrid, Community of Madrid, Spain"
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional
import re

UNKNOWN = "Unknown"

CURRENCY_SYMBOLS = "€£$"

# "1,234.50" | "1234.50" | "43"
_NUM = r"(?:\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_SYM = rf"[{CURRENCY_SYMBOLS}]"

_PRICE_RANGE_RE = re.compile(rf"({_SYM})\s*({_NUM})\s*[-–]\s*{_SYM}?\s*({_NUM})")
_PRICE_RANGE_SYMBOL_LAST_RE = re.compile(rf"({_NUM})\s*{_SYM}?\s*[-–]\s*({_NUM})\s*({_SYM})")
_PRICE_SYMBOL_FIRST_RE = re.compile(rf"({_SYM})\s*({_NUM})")
_PRICE_SYMBOL_LAST_RE = re.compile(rf"({_NUM})\s*({_SYM})")
_PRICE_BARE_RE = re.compile(rf"^(?:from\s+)?({_NUM})$", re.IGNORECASE)

_RATING_RE = re.compile(r"\d+(?:\.\d+)?")

_REVIEWS_LABELLED_RE = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+)\s*reviews?\b", re.IGNORECASE)
_REVIEWS_PAREN_RE = re.compile(r"\(\s*(\d{1,3}(?:,\d{3})+|\d+)\s*(?:reviews?)?\s*\)", re.IGNORECASE)
_REVIEWS_THOUSANDS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*[kK]\b")
_REVIEWS_RE = re.compile(r"\d{1,3}(?:,\d{3})+|\d+")

_SPAN = r"(\d+(?:\.\d+)?)(?:\s*[-–]\s*(\d+(?:\.\d+)?))?"
_HOURS_RE = re.compile(rf"{_SPAN}\s*(?:hours?|hrs?|h)\b", re.IGNORECASE)
_MINUTES_RE = re.compile(rf"{_SPAN}\s*(?:minutes?|mins?)\b", re.IGNORECASE)
_DAYS_RE = re.compile(rf"{_SPAN}\s*days?\b", re.IGNORECASE)

_TAG_SPLIT_RE = re.compile(r"[,;|]")


@dataclass(frozen=True)
class ParsedPrice:
    display_text: str
    numeric_value: Optional[float]
    currency: Optional[str]


@dataclass(frozen=True)
class ParsedRating:
    display_text: str
    numeric_value: Optional[float]


@dataclass(frozen=True)
class ParsedReviewCount:
    display_text: str
    numeric_value: Optional[int]


@dataclass(frozen=True)
class ParsedDuration:
    display_text: Optional[str]
    hours: Optional[float]
    days: Optional[float]


@dataclass(frozen=True)
class ParsedLocation:
    city: Optional[str]
    country: Optional[str]
    venue: Optional[str]


def _normalize(text: Any) -> Optional[str]:
    """Strip the value; None for missing, blank or 'unknown'."""
    if text is None:
        return None
    cleaned = str(text).strip()
    if not cleaned or cleaned.lower() == "unknown":
        return None
    return cleaned


def _to_float(number: str) -> float:
    return float(number.replace(",", ""))


def _upper(match: re.Match) -> float:
    """Upper bound of a "2-3" style span, or the single value."""
    return float(match.group(2) or match.group(1))


def parse_price(text: Any) -> ParsedPrice:
    """
    Price text -> display text, numeric value and currency symbol.
    Ranges ("€33-45") resolve to the mean of both ends; a leading "From"
    is ignored.
    """
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedPrice(UNKNOWN, None, None)

    m = _PRICE_RANGE_RE.search(cleaned)
    if m:
        low, high = _to_float(m.group(2)), _to_float(m.group(3))
        return ParsedPrice(cleaned, (low + high) / 2, m.group(1))

    m = _PRICE_RANGE_SYMBOL_LAST_RE.search(cleaned)
    if m:
        low, high = _to_float(m.group(1)), _to_float(m.group(2))
        return ParsedPrice(cleaned, (low + high) / 2, m.group(3))

    m = _PRICE_SYMBOL_FIRST_RE.search(cleaned)
    if m:
        return ParsedPrice(cleaned, _to_float(m.group(2)), m.group(1))

    m = _PRICE_SYMBOL_LAST_RE.search(cleaned)
    if m:
        return ParsedPrice(cleaned, _to_float(m.group(1)), m.group(2))

    m = _PRICE_BARE_RE.match(cleaned)
    if m:
        return ParsedPrice(cleaned, _to_float(m.group(1)), None)

    return ParsedPrice(cleaned, None, None)


def parse_rating(text: Any) -> ParsedRating:
    """
    Rating text -> display text and a numeric rating in [0, 5].
    A trailing "(63,652)" review count is ignored here; out-of-range
    numbers keep their display text but get no numeric value.
    """
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedRating(UNKNOWN, None)

    m = _RATING_RE.search(cleaned)
    if not m:
        return ParsedRating(cleaned, None)

    value = float(m.group(0))
    if not 0 <= value <= 5:
        return ParsedRating(m.group(0), None)
    return ParsedRating(m.group(0), value)


def parse_review_count(text: Any) -> ParsedReviewCount:
    """Review count text -> display text and a non-negative integer."""
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedReviewCount(UNKNOWN, None)

    m = _REVIEWS_LABELLED_RE.search(cleaned)
    if m:
        return ParsedReviewCount(cleaned, int(m.group(1).replace(",", "")))

    # "4.4 (63,652)" carries the count in parentheses
    m = _REVIEWS_PAREN_RE.search(cleaned)
    if m:
        return ParsedReviewCount(cleaned, int(m.group(1).replace(",", "")))

    m = _REVIEWS_THOUSANDS_RE.search(cleaned)
    if m:
        return ParsedReviewCount(cleaned, int(round(float(m.group(1)) * 1000)))

    m = _REVIEWS_RE.search(cleaned)
    if m:
        return ParsedReviewCount(cleaned, int(m.group(0).replace(",", "")))

    return ParsedReviewCount(cleaned, None)


def review_count_from_rating(text: Any) -> ParsedReviewCount:
    """The "(63,652)" part of a combined rating string, if there is one."""
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedReviewCount(UNKNOWN, None)
    m = _REVIEWS_PAREN_RE.search(cleaned)
    if not m:
        return ParsedReviewCount(UNKNOWN, None)
    return ParsedReviewCount(cleaned, int(m.group(1).replace(",", "")))


def parse_duration(text: Any) -> ParsedDuration:
    """
    Duration text -> hours and days. Spans take the upper bound and
    minutes fold into hours ("1 hour 30 minutes" -> 1.5).
    """
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedDuration(None, None, None)

    hours = None
    m = _HOURS_RE.search(cleaned)
    if m:
        hours = _upper(m)
    m = _MINUTES_RE.search(cleaned)
    if m:
        hours = round((hours or 0.0) + _upper(m) / 60, 2)

    days = None
    m = _DAYS_RE.search(cleaned)
    if m:
        days = _upper(m)

    return ParsedDuration(cleaned, hours, days)


def parse_location(text: Any) -> ParsedLocation:
    """'City, Venue..., Country' -> its parts. Single values are a city."""
    cleaned = _normalize(text)
    if cleaned is None:
        return ParsedLocation(None, None, None)

    parts = [p.strip() for p in cleaned.split(",") if p.strip()]
    if not parts:
        return ParsedLocation(None, None, None)
    if len(parts) == 1:
        return ParsedLocation(parts[0], None, None)
    venue = ", ".join(parts[1:-1]) or None
    return ParsedLocation(parts[0], parts[-1], venue)


def clean_tags(value: Any) -> List[str]:
    """Tags arrive as a list or a ',', ';' or '|' delimited string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v) for v in value if v is not None]
    else:
        items = _TAG_SPLIT_RE.split(str(value))
    return [t.strip() for t in items if t.strip()]
