import pytest

from market_intel.services.city_resolver import (
    CITY_TABLE,
    UNKNOWN_CITY,
    CityPatterns,
    default_currency,
    infer_region,
    known_cities,
    reclassify_city,
    resolve_activity_city,
    resolve_city,
)


@pytest.mark.parametrize("name", [
    "Madrid: Hiking & Visit Segovia Day Trip with Transport",
    "Guadarrama National Park Day Trip",
    "Segovia day trip",
    "Paris: Seine River Cruise",
    "",
])
def test_uk_region_always_resolves_to_london(name):
    assert resolve_city(name, region="UK") == "London"


@pytest.mark.parametrize("name", [
    "Segovia and Toledo Day Trip",
    "Guadarrama Mountains Hiking Day Trip",
    "Segovia Day Trip with a London-based guide",
    "From Madrid: Alcazar of Segovia Tour",
])
def test_madrid_landmarks_never_resolve_to_london(name):
    assert resolve_city(name) == "Madrid"
    assert resolve_city(name, region="Europe") == "Madrid"


@pytest.mark.parametrize("name,city", [
    ("London Eye Skip-the-Line Ticket", "London"),
    ("From London: Stonehenge and Bath Day Trip", "London"),
    ("Vatican Museums Guided Tour", "Rome"),
    ("Schönbrunn Palace Tickets", "Vienna"),
    ("Eiffel Tower Summit Access", "Paris"),
    ("Prague Castle Walking Tour", "Prague"),
    ("Wien Card 48h", "Vienna"),
])
def test_resolves_known_cities(name, city):
    assert resolve_city(name) == city


def test_landmarks_beat_generic_city_names():
    # "london" is generic; "toledo" is a Madrid landmark
    assert resolve_city("London travellers: Toledo tour") == "Madrid"


def test_longer_pattern_wins():
    assert resolve_city("Prado and Versailles combo") == "Paris"
    assert resolve_city("Versailles and Prado combo") == "Paris"


def test_equal_length_tie_goes_to_earliest_match():
    # "prado" and "seine" are both five characters
    assert resolve_city("Prado morning, Seine evening") == "Madrid"
    assert resolve_city("Seine morning, Prado evening") == "Paris"


def test_equal_length_same_position_goes_to_table_order():
    table = (
        CityPatterns("First", landmarks=("castle",), generic=()),
        CityPatterns("Second", landmarks=("castle",), generic=()),
    )
    assert resolve_city("castle tour", table=table) == "First"


def test_patterns_match_whole_words_only():
    assert resolve_city("Bathroom design workshop") == UNKNOWN_CITY
    assert resolve_city("Bath Spa Afternoon") == "London"


def test_from_to_token_fallback():
    assert resolve_city("Coach transfer from Parisian suburbs") == "Paris"


def test_unknown_when_nothing_matches():
    assert resolve_city("Cooking class with a local chef") == UNKNOWN_CITY
    assert resolve_city(None) == UNKNOWN_CITY
    assert resolve_city("   ") == UNKNOWN_CITY


def test_resolve_activity_city_falls_back_to_location():
    assert resolve_activity_city("Hop-on Hop-off Bus", None, "Vienna, Austria") == "Vienna"
    assert resolve_activity_city("Colosseum Tour", None, "Vienna, Austria") == "Rome"
    assert resolve_activity_city("Hop-on Hop-off Bus", None, None) == UNKNOWN_CITY


def test_reclassify_prefers_resolved_city():
    assert reclassify_city("London", "Segovia day trip") == "Madrid"
    assert reclassify_city(UNKNOWN_CITY, "Louvre entry") == "Paris"


def test_reclassify_keeps_known_city_when_unresolved():
    assert reclassify_city("Berlin", "Evening food walk") == "Berlin"
    assert reclassify_city("", "Evening food walk") == UNKNOWN_CITY
    assert reclassify_city(None, "Evening food walk") == UNKNOWN_CITY


@pytest.mark.parametrize("current,name,region", [
    ("London", "Madrid: Segovia Day Trip", None),
    ("Unknown", "Cooking class", None),
    ("Berlin", "Cooking class", None),
    ("Madrid", "Windsor Castle", "UK"),
])
def test_reclassify_is_idempotent(current, name, region):
    once = reclassify_city(current, name, region)
    assert reclassify_city(once, name, region) == once


def test_infer_region():
    assert infer_region("London") == "UK"
    assert infer_region(None, "Spain") == "Europe"
    assert infer_region("Atlantis", None, "") is None


def test_default_currency():
    assert default_currency("UK") == "£"
    assert default_currency("Europe") == "€"
    assert default_currency(None) is None


def test_known_cities_follow_table_order():
    cities = known_cities()
    assert cities[0] == "London"
    assert len(cities) == len(CITY_TABLE)
    assert "Madrid" in cities
