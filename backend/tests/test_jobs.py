import json

import pytest

from market_intel import jobs
from market_intel.core.config import Settings
from market_intel.db.database import create_db_engine, make_session_factory
from market_intel.db.repositories import CleanedActivityRepository, RawActivityRepository


@pytest.fixture
def file_settings(tmp_path):
    return Settings(database_url=f"sqlite:///{tmp_path / 'jobs.db'}", _env_file=None)


def _count(settings, repo_factory):
    engine = create_db_engine(settings)
    db = make_session_factory(engine)()
    try:
        return repo_factory(db).count()
    finally:
        db.close()
        engine.dispose()


def test_run_job_returns_zero_on_success(file_settings):
    assert jobs.run_job("Cleaning pipeline", jobs.clean_activities, file_settings) == 0


def test_run_job_returns_one_on_unhandled_exception(file_settings, caplog):
    def broken(db, config):
        raise RuntimeError("connection reset")

    assert jobs.run_job("Broken job", broken, file_settings) == 1
    assert "Broken job failed: connection reset" in caplog.text


def test_import_then_dedup_then_clean(file_settings, tmp_path):
    export = tmp_path / "gyg.json"
    export.write_text(
        json.dumps([
            {"title": "Madrid: Hiking & Visit Segovia Day Trip with Transport", "provider": "Julia Travel", "price": "€45"},
            {"title": "Madrid: Hiking & Visit Segovia Day Trip with Transport", "provider": "Julia Travel", "price": "€45"},
            {"title": "Prado Museum Guided Tour", "provider": "Madrid Museums", "price": "€30"},
        ]),
        encoding="utf-8",
    )

    assert jobs.run_job("Import", jobs.import_file(str(export), "gyg"), file_settings) == 0
    assert _count(file_settings, lambda db: RawActivityRepository(db, "gyg")) == 3

    assert jobs.run_job("Dedup fix", jobs.fix_duplicates, file_settings) == 0
    assert _count(file_settings, lambda db: RawActivityRepository(db, "gyg")) == 2
    assert _count(file_settings, CleanedActivityRepository) == 2

    assert jobs.run_job("Reclassify", jobs.reclassify, file_settings) == 0
    assert jobs.run_job("Quality monitor", jobs.monitor_quality, file_settings) == 0
    assert jobs.run_job("Full rebuild", jobs.rebuild_activities, file_settings) == 0
    assert _count(file_settings, CleanedActivityRepository) == 2


def test_missing_export_file_fails(file_settings, tmp_path):
    job = jobs.import_file(str(tmp_path / "missing.json"), "gyg")
    assert jobs.run_job("Import", job, file_settings) == 1
