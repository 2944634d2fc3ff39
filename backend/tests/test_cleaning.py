import logging
from types import SimpleNamespace

import pytest

from market_intel import jobs
from market_intel.core.config import CleaningConfig
from market_intel.db.repositories import CleanedActivityRepository
from market_intel.services import cleaning
from market_intel.services.cleaning import CleaningPipeline, clean_record, reclassify_cities
from market_intel.services.parsers import parse_price, parse_rating, parse_review_count

SEGOVIA_TRIP = "Madrid: Hiking & Visit Segovia Day Trip with Transport"


def make_raw(**fields):
    values = {
        "id": 1,
        "activity_name": "London: Thames River Cruise",
        "provider_name": "City Cruises",
        "location": None,
        "city": None,
        "country": None,
        "region": None,
        "price_text": None,
        "rating_text": None,
        "review_count_text": None,
        "duration": None,
        "description": None,
        "category": None,
        "activity_type": None,
        "url": None,
        "tags": None,
    }
    values.update(fields)
    return SimpleNamespace(**values)


def test_clean_record_parses_every_field(config):
    raw = make_raw(
        id=7,
        activity_name=SEGOVIA_TRIP,
        price_text="€45",
        rating_text="4.6",
        review_count_text="120 reviews",
        duration="8 hours",
        description="Hike the Guadarrama foothills.",
        location="Madrid, Community of Madrid, Spain",
        tags="hiking, day trip",
    )
    values = clean_record(raw, "gyg", config)

    assert values["original_id"] == "7"
    assert values["original_source"] == "gyg"
    assert values["platform"] == "gyg"
    assert values["city"] == "Madrid"
    assert values["country"] == "Spain"
    assert values["venue"] == "Community of Madrid"
    assert values["region"] == "Europe"
    assert values["region_inferred"] is True
    assert values["price_numeric"] == 45
    assert values["price_currency"] == "€"
    assert values["rating_numeric"] == pytest.approx(4.6)
    assert values["review_count_numeric"] == 120
    assert values["duration_hours"] == 8
    assert values["tags"] == ["hiking", "day trip"]
    assert values["quality_score"] == 100


def test_clean_record_uk_region_and_default_currency(config):
    raw = make_raw(activity_name="Segovia Day Trip", region="UK", price_text="58")
    values = clean_record(raw, "viator", config)

    assert values["city"] == "London"
    assert values["region"] == "UK"
    assert values["region_inferred"] is False
    assert values["price_numeric"] == 58
    assert values["price_currency"] == "£"


def test_clean_record_missing_values_degrade(config):
    raw = make_raw(activity_name="Cooking class", price_text="Unknown", rating_text="7.2")
    values = clean_record(raw, "gyg", config)

    assert values["city"] == "Unknown"
    assert values["region"] is None
    assert values["region_inferred"] is False
    assert values["price_text"] == "Unknown"
    assert values["price_numeric"] is None
    assert values["price_currency"] is None
    assert values["rating_text"] == "7.2"
    assert values["rating_numeric"] is None
    assert values["quality_score"] == 0


def test_clean_record_uses_raw_city_as_location(config):
    values = clean_record(make_raw(activity_name="Hop-on Hop-off Bus", city="Vienna"), "gyg", config)
    assert values["location"] == "Vienna"
    assert values["city"] == "Vienna"
    assert values["region"] == "Europe"


@pytest.mark.parametrize("rating_text", ["4.4 (63,652)", "4.4 (63,652 reviews)"])
def test_clean_record_review_count_from_rating(config, rating_text):
    values = clean_record(make_raw(rating_text=rating_text), "gyg", config)
    assert values["rating_numeric"] == pytest.approx(4.4)
    assert values["review_count_numeric"] == 63652


@pytest.mark.parametrize("price_text", ["€650", "£501", "1,200 €"])
def test_clean_record_drops_outlier_price(config, price_text):
    values = clean_record(make_raw(activity_name="Louvre Museum Entry", price_text=price_text), "gyg", config)
    assert values["price_numeric"] is None
    assert values["price_text"] == "Unknown"
    assert values["price_currency"] is None


def test_clean_record_keeps_prices_within_bounds(config):
    assert clean_record(make_raw(price_text="£500"), "gyg", config)["price_numeric"] == 500
    # dollars carry no bound
    assert clean_record(make_raw(price_text="$900"), "gyg", config)["price_numeric"] == 900

    generous = CleaningConfig(max_price_by_currency={"€": 1000.0})
    assert clean_record(make_raw(price_text="€650"), "gyg", generous)["price_numeric"] == 650


def test_clean_record_drops_outlier_rating_and_reviews(config):
    values = clean_record(make_raw(rating_text="0.5", review_count_text="250,000 reviews"), "gyg", config)
    assert (values["rating_text"], values["rating_numeric"]) == ("Unknown", None)
    assert (values["review_count_text"], values["review_count_numeric"]) == ("Unknown", None)

    values = clean_record(make_raw(rating_text="1.0", review_count_text="100,000 reviews"), "gyg", config)
    assert values["rating_numeric"] == 1.0
    assert values["review_count_numeric"] == 100000


def test_outliers_lower_the_quality_score(config):
    fields = dict(price_text="€45", rating_text="4.6", review_count_text="120 reviews", description="x", duration="3 hours")
    assert clean_record(make_raw(**fields), "gyg", config)["quality_score"] == 100
    fields["price_text"] = "€4,500"
    assert clean_record(make_raw(**fields), "gyg", config)["quality_score"] == 75


def test_segovia_day_trip_end_to_end(db, add_raw, config):
    raw = add_raw(
        activity_name=SEGOVIA_TRIP,
        region=None,
        price_text="€45",
        rating_text="4.6",
        review_count_text="120 reviews",
    )
    stats = CleaningPipeline(db, config).run()

    assert stats.created == 1
    assert stats.failed == 0
    row = CleanedActivityRepository(db).get_by_original(str(raw.id), "gyg")
    assert row.city == "Madrid"
    assert row.price_numeric == 45
    assert row.price_currency == "€"
    assert row.rating_numeric == pytest.approx(4.6)
    assert row.review_count_numeric == 120


def test_only_newest_duplicate_is_cleaned(db, add_raw, config):
    add_raw(activity_name="Windsor Castle Tour", provider_name="Evan Evans", price_text="£80", minutes_ago=60)
    newest = add_raw(activity_name="Windsor Castle Tour", provider_name="Evan Evans", price_text="£85")
    newest_id = newest.id

    results = jobs.fix_duplicates(db, config)

    assert results["gyg"].removed == 1
    rows = CleanedActivityRepository(db).list_all()
    assert [r.original_id for r in rows] == [str(newest_id)]
    assert rows[0].price_numeric == 85


def test_fix_duplicates_prunes_already_cleaned_rows(db, add_raw, config):
    add_raw(minutes_ago=10)
    add_raw(minutes_ago=0)
    CleaningPipeline(db, config).run()
    assert CleanedActivityRepository(db).count() == 2

    jobs.fix_duplicates(db, config)

    assert CleanedActivityRepository(db).count() == 1


def test_rerun_upserts_without_duplicates(db, add_raw, config):
    add_raw(source="gyg", activity_name="Louvre Museum Entry")
    add_raw(source="viator", activity_name="Colosseum Underground Tour")
    add_raw(source="viator", activity_name="Prado Museum Guided Tour")

    first = CleaningPipeline(db, config).run()
    second = CleaningPipeline(db, config).run()

    assert (first.created, first.updated) == (3, 0)
    assert (second.created, second.updated) == (0, 3)
    assert second.per_source == {"gyg": 1, "viator": 2}
    assert CleanedActivityRepository(db).count() == 3


def test_full_rebuild_replaces_everything(db, add_raw, config):
    add_raw(activity_name="Louvre Museum Entry")
    add_raw(activity_name="Eiffel Tower Summit")
    CleaningPipeline(db, config).run()

    stats = CleaningPipeline(db, config).run(full_rebuild=True)

    assert stats.rebuilt_deleted == 2
    assert stats.created == 2
    assert CleanedActivityRepository(db).count() == 2


def test_failing_record_does_not_stop_the_batch(db, add_raw, config, monkeypatch, caplog):
    first = add_raw(activity_name="Louvre Museum Entry")
    bad = add_raw(activity_name="Eiffel Tower Summit")
    last = add_raw(activity_name="Versailles Day Trip")
    bad_id = bad.id

    real_clean = cleaning.clean_record

    def flaky_clean(raw, source, config=None, now=None):
        if raw.id == bad_id:
            raise ValueError("boom")
        return real_clean(raw, source, config, now)

    monkeypatch.setattr(cleaning, "clean_record", flaky_clean)
    with caplog.at_level(logging.ERROR):
        stats = CleaningPipeline(db, config).run(sources=("gyg",))

    assert stats.processed == 3
    assert stats.created == 2
    assert stats.failed == 1
    assert stats.failed_records == [("gyg", bad_id)]
    assert f"failed to clean activity {bad_id}" in caplog.text

    repo = CleanedActivityRepository(db)
    assert repo.get_by_original(str(first.id), "gyg") is not None
    assert repo.get_by_original(str(last.id), "gyg") is not None


def test_huge_review_count_still_writes_the_record(db, add_raw, config):
    raw = add_raw(activity_name="Louvre Museum Entry", price_text="€22", review_count_text="99999999999999999999 reviews")

    stats = CleaningPipeline(db, config).run()

    assert (stats.created, stats.failed) == (1, 0)
    row = CleanedActivityRepository(db).get_by_original(str(raw.id), "gyg")
    assert row.review_count_numeric is None
    assert row.price_numeric == 22


def test_high_quality_count(db, add_raw, config):
    add_raw(
        activity_name="Louvre Museum Entry",
        price_text="€22",
        rating_text="4.5",
        review_count_text="1,234 reviews",
        description="Skip the line.",
        duration="3 hours",
    )
    add_raw(activity_name="Eiffel Tower Summit")

    stats = CleaningPipeline(db, config).run()

    assert stats.high_quality == 1


def test_display_texts_reparse_to_stored_values(db, add_raw, config):
    samples = [
        ("€45", "4.6", "120 reviews"),
        ("From €45", "4.4 (63,652)", None),
        ("€33-45", "7.2", "(1,234)"),
        ("Unknown", "", "1.2k reviews"),
        ("58", "unknown", "987"),
        ("€900", "0.5", "500,000 reviews"),
        ("45€-60€", "4.4 (63,652 reviews)", None),
    ]
    for price, rating, reviews in samples:
        add_raw(activity_name="Rome: Vatican Tour", price_text=price, rating_text=rating, review_count_text=reviews)
    CleaningPipeline(db, config).run()

    for row in CleanedActivityRepository(db).list_all():
        assert parse_price(row.price_text).numeric_value == row.price_numeric
        assert parse_rating(row.rating_text).numeric_value == row.rating_numeric
        assert parse_review_count(row.review_count_text).numeric_value == row.review_count_numeric


def test_reclassify_right_after_cleaning_changes_nothing(db, add_raw, config):
    add_raw(activity_name=SEGOVIA_TRIP)
    add_raw(activity_name="Segovia Day Trip", region="UK")
    add_raw(activity_name="Cooking class", location="Berlin, Germany")
    add_raw(activity_name="Cooking class")
    CleaningPipeline(db, config).run()

    stats = reclassify_cities(db, config)

    assert stats.checked == 4
    assert stats.changed == 0


def test_reclassify_fixes_misfiled_rows_and_converges(db, add_raw, config):
    raw = add_raw(activity_name=SEGOVIA_TRIP)
    CleaningPipeline(db, config).run()
    repo = CleanedActivityRepository(db)
    row = repo.get_by_original(str(raw.id), "gyg")
    repo.update_fields(row, city="London", region="UK")

    first = reclassify_cities(db, config)
    row = repo.get_by_original(str(raw.id), "gyg")

    assert first.changed == 1
    assert first.moves[("London", "Madrid")] == 1
    assert row.city == "Madrid"
    assert row.region == "Europe"
    assert reclassify_cities(db, config).changed == 0


def test_reclassify_backfills_unknown_cities(db, add_raw, config):
    raw = add_raw(activity_name="Louvre Museum Entry")
    CleaningPipeline(db, config).run()
    repo = CleanedActivityRepository(db)
    row = repo.get_by_original(str(raw.id), "gyg")
    repo.update_fields(row, city="Unknown", region=None, region_inferred=False)

    stats = reclassify_cities(db, config)
    row = repo.get_by_original(str(raw.id), "gyg")

    assert stats.changed == 1
    assert (row.city, row.region, row.region_inferred) == ("Paris", "Europe", True)
    assert reclassify_cities(db, config).changed == 0
