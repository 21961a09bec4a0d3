# readquest/conftest.py
import os
from datetime import date, datetime, timezone

import pytest

from readquest.core.metrics import MetricsRegistry, StreakMetrics
from readquest.features.streaks.stores import (
    InMemoryMilestoneStore,
    InMemoryProfileStore,
    InMemorySessionStore,
)
from readquest.features.streaks.sync import ProfileStreakSync
from readquest.models.streak import ReadingSession

TODAY = date(2024, 3, 10)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def fixed_clock():
    """Clock pinned to noon UTC on TODAY."""
    return lambda: datetime(TODAY.year, TODAY.month, TODAY.day, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def profile_store():
    return InMemoryProfileStore()


@pytest.fixture
def milestone_store():
    return InMemoryMilestoneStore()


@pytest.fixture
def metrics_registry():
    return MetricsRegistry()


@pytest.fixture
def streak_sync(session_store, profile_store, milestone_store, metrics_registry, fixed_clock):
    return ProfileStreakSync(
        session_store,
        profile_store,
        milestone_store,
        metrics=StreakMetrics(metrics_registry),
        clock=fixed_clock,
    )


@pytest.fixture
def add_sessions(session_store):
    """Log qualifying sessions for a user on the given days."""

    def _add(user_id: str, *days: date, pages: int = 10):
        for day in days:
            session_store.add(
                ReadingSession(
                    user_id=user_id,
                    session_date=datetime(day.year, day.month, day.day, 9, 30, tzinfo=timezone.utc),
                    pages_read=pages,
                )
            )

    return _add


@pytest.fixture
def sqlite_db(tmp_path, monkeypatch):
    """
    File-backed SQLite database with all tables created.

    Rebinds the global engine for the duration of the test.
    """
    from readquest.core.database import create_all_tables, dispose_engine, drop_all_tables, init_engine

    url = f"sqlite:///{tmp_path / 'readquest.db'}"
    monkeypatch.setenv("TEST_DATABASE_URL", url)
    dispose_engine()
    init_engine(url)
    create_all_tables()
    yield url
    drop_all_tables()
    dispose_engine()


@pytest.fixture(autouse=True)
def _no_database_by_default(monkeypatch):
    """Tests use in-memory stores unless they ask for sqlite_db."""
    if "DATABASE_URL" in os.environ:
        monkeypatch.delenv("DATABASE_URL")
