from datetime import datetime, timedelta, timezone

import pytest

from market_intel.core.config import CleaningConfig, Settings
from market_intel.db.database import create_db_engine, init_db, make_session_factory
from market_intel.db.models import RAW_MODELS

BASE_TIME = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", log_level="DEBUG", _env_file=None)


@pytest.fixture
def config():
    return CleaningConfig(progress_every=2)


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = make_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def add_raw(db):
    """Insert one raw row; minutes_ago sets imported_at relative to BASE_TIME."""
    def _add(source="gyg", minutes_ago=0, **fields):
        fields.setdefault("activity_name", "London: Thames River Cruise")
        fields.setdefault("provider_name", "City Cruises")
        row = RAW_MODELS[source](imported_at=BASE_TIME - timedelta(minutes=minutes_ago), **fields)
        db.add(row)
        db.commit()
        return row
    return _add
