"""
City resolution for activity listings.

Scraped listings rarely carry a usable city, so the market city is inferred
from the activity name. The pattern table below is plain data: an ordered
tuple of (city, landmarks, generic) entries. Resolution order:

  1. region "UK"             -> London (all UK listings are London market data)
  2. landmark patterns        -> most specific (longest) match wins
  3. generic city variants    -> most specific match wins
  4. "from X" / "to X" tokens -> table city contained in the token
  5. otherwise                -> "Unknown"

Ties between equally long patterns go to the one that appears first in the
name, then to table order.
"""

from __future__ import annotations
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Tuple
import logging
import re

logger = logging.getLogger(__name__)

UNKNOWN_CITY = "Unknown"


@dataclass(frozen=True)
class CityPatterns:
    city: str
    landmarks: Tuple[str, ...]
    generic: Tuple[str, ...]


# Landmarks never contain the city name itself; anything that does
# ("tower of london") is a generic variant.
CITY_TABLE: Tuple[CityPatterns, ...] = (
    CityPatterns(
        "London",
        landmarks=(
            "buckingham", "westminster", "stonehenge", "windsor", "bath", "oxford",
            "cotswolds", "downton abbey", "hampton court", "big ben", "thames",
            "chelsea", "arsenal", "emirates stadium", "stamford bridge", "paddington",
        ),
        generic=("london", "londres", "londra", "london eye", "tower of london"),
    ),
    CityPatterns(
        "Madrid",
        landmarks=(
            "prado", "retiro", "alcazar", "toledo", "segovia", "guadarrama",
            "santiago bernabeu", "reina sofia", "thyssen", "salamanca", "avila",
            "cordoba", "granada", "valencia", "bilbao", "seville", "andalucia",
            "andalusia",
        ),
        generic=("madrid",),
    ),
    CityPatterns(
        "Vienna",
        landmarks=(
            "schönbrunn", "schonbrunn", "belvedere", "st stephan", "hofburg",
            "salzburg", "hallstatt", "innsbruck",
        ),
        generic=("vienna", "wien", "austria"),
    ),
    CityPatterns(
        "Rome",
        landmarks=(
            "colosseum", "vatican", "sistine", "pantheon", "trevi", "borghese",
            "trastevere", "florence", "venice", "milan",
        ),
        generic=("rome", "roma", "italy"),
    ),
    CityPatterns(
        "Amsterdam",
        landmarks=(
            "rijksmuseum", "van gogh", "anne frank", "keukenhof", "rotterdam",
            "the hague", "utrecht",
        ),
        generic=("amsterdam", "netherlands", "holland"),
    ),
    CityPatterns(
        "Paris",
        landmarks=(
            "eiffel", "louvre", "notre dame", "champs elysees", "arc de triomphe",
            "versailles", "montmartre", "seine",
        ),
        generic=("paris", "france"),
    ),
    CityPatterns(
        "Barcelona",
        landmarks=(
            "sagrada familia", "park guell", "gothic quarter", "ramblas", "montjuic",
        ),
        generic=("barcelona", "catalonia", "catalunya"),
    ),
    CityPatterns(
        "Berlin",
        landmarks=(
            "brandenburg gate", "reichstag", "checkpoint charlie", "museum island",
            "munich", "hamburg",
        ),
        generic=("berlin", "germany"),
    ),
    CityPatterns(
        "Prague",
        landmarks=("charles bridge", "old town square"),
        generic=("prague", "prag", "prague castle", "czech republic", "czech"),
    ),
    CityPatterns(
        "Budapest",
        landmarks=("chain bridge", "buda castle", "thermal baths", "danube"),
        generic=("budapest", "hungary"),
    ),
)

# ---- Region / currency lookup (city or country -> market region) ----
REGION_MAPPING = {
    "london": "UK", "uk": "UK", "united kingdom": "UK", "england": "UK",
    "scotland": "UK", "wales": "UK", "northern ireland": "UK",
    "manchester": "UK", "birmingham": "UK", "liverpool": "UK",
    "edinburgh": "UK", "glasgow": "UK", "cardiff": "UK", "belfast": "UK",
    "madrid": "Europe", "barcelona": "Europe", "spain": "Europe",
    "vienna": "Europe", "austria": "Europe", "rome": "Europe", "italy": "Europe",
    "amsterdam": "Europe", "netherlands": "Europe", "paris": "Europe",
    "france": "Europe", "berlin": "Europe", "germany": "Europe",
    "prague": "Europe", "czech republic": "Europe", "budapest": "Europe",
    "hungary": "Europe",
}

REGION_CURRENCY = {
    "UK": "£",
    "Europe": "€",
}

_FROM_TO_RE = re.compile(r"\b(?:from|to)\s+([^\W\d_]+)")


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern:
    # word-bounded so "bath" does not fire on "bathroom"
    return re.compile(rf"(?<!\w){re.escape(pattern.casefold())}(?!\w)")


def _best_match(
    text: str,
    table: Sequence[CityPatterns],
    kind: str,
) -> Optional[str]:
    """Most specific match among one pattern tier, or None."""
    best: Optional[Tuple[int, int, int]] = None
    best_city: Optional[str] = None
    for index, entry in enumerate(table):
        for pattern in getattr(entry, kind):
            m = _compile(pattern).search(text)
            if not m:
                continue
            # longer first, then earlier in the name, then table order
            key = (-len(pattern), m.start(), index)
            if best is None or key < best:
                best = key
                best_city = entry.city
    return best_city


def _from_to_match(text: str, table: Sequence[CityPatterns]) -> Optional[str]:
    for token in _FROM_TO_RE.findall(text):
        for entry in table:
            if entry.city.casefold() in token:
                return entry.city
    return None


def resolve_city(
    activity_name: Optional[str],
    region: Optional[str] = None,
    table: Sequence[CityPatterns] = CITY_TABLE,
) -> str:
    """Canonical market city for an activity name, or "Unknown"."""
    if region == "UK":
        return "London"

    text = (activity_name or "").casefold()
    if not text.strip():
        return UNKNOWN_CITY

    return (
        _best_match(text, table, "landmarks")
        or _best_match(text, table, "generic")
        or _from_to_match(text, table)
        or UNKNOWN_CITY
    )


def resolve_activity_city(
    activity_name: Optional[str],
    region: Optional[str] = None,
    location: Optional[str] = None,
    table: Sequence[CityPatterns] = CITY_TABLE,
) -> str:
    """Resolve from the name first, then fall back to the location text."""
    city = resolve_city(activity_name, region, table)
    if city == UNKNOWN_CITY and location:
        city = resolve_city(location, None, table)
    return city


def reclassify_city(
    current_city: Optional[str],
    activity_name: Optional[str],
    region: Optional[str] = None,
    location: Optional[str] = None,
    table: Sequence[CityPatterns] = CITY_TABLE,
) -> str:
    """
    Corrected city for an already-cleaned record.
    The resolver's answer wins whenever it has one; otherwise an existing
    known city is kept. Applying this twice gives the same result as once.
    """
    resolved = resolve_activity_city(activity_name, region, location, table)
    if resolved != UNKNOWN_CITY:
        return resolved
    if current_city and current_city.strip() and current_city != UNKNOWN_CITY:
        return current_city
    return UNKNOWN_CITY


def infer_region(*candidates: Optional[str]) -> Optional[str]:
    """First known market region among city / country / location values."""
    for value in candidates:
        if not value:
            continue
        region = REGION_MAPPING.get(value.strip().casefold())
        if region:
            return region
    return None


def default_currency(region: Optional[str]) -> Optional[str]:
    return REGION_CURRENCY.get(region) if region else None


def known_cities(table: Iterable[CityPatterns] = CITY_TABLE) -> List[str]:
    return [entry.city for entry in table]
