"""Pytest configuration and shared fixtures for habitstreak tests.

Provides an isolated SQLite database per test, the SQLModel repository, a
repository wrapper that can inject store failures, and a fixed clock.
"""

from __future__ import annotations

import tempfile
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

from habitstreak.infra.repositories.habit import SQLModelHabitRepository
from habitstreak.models import Habit
from habitstreak.services.tracker import HabitTracker

# Fixed offset so results never depend on the machine's zone.
TZ = timezone(timedelta(hours=2))
TODAY = date(2024, 3, 15)
NOW = datetime.combine(TODAY, time(9, 30), tzinfo=TZ)


def ts(day: date, hour: int = 12, minute: int = 0) -> float:
    """Epoch seconds for ``day`` at the given local time in TZ."""

    return datetime.combine(day, time(hour, minute), tzinfo=TZ).timestamp()


def days_ago(n: int, hour: int = 12) -> float:
    return ts(TODAY - timedelta(days=n), hour)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """A session for arranging rows directly."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Factory returning Session context managers, as the repositories expect."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


@pytest.fixture
def repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


class RecordingRepository:
    """Wraps a repository, counting writes and failing on demand."""

    def __init__(self, inner: SQLModelHabitRepository) -> None:
        self.inner = inner
        self.persisted: list[Habit] = []
        self.fail_reads: set[str] = set()
        self.fail_writes: set[str] = set()
        self.fail_listing = False

    def list_ids(self) -> list[str]:
        if self.fail_listing:
            raise ConnectionError("store unavailable")
        return self.inner.list_ids()

    def get_by_id(self, habit_id: str):
        if habit_id in self.fail_reads:
            raise ConnectionError(f"cannot read {habit_id}")
        return self.inner.get_by_id(habit_id)

    def load_all(self) -> list[Habit]:
        return self.inner.load_all()

    def persist(self, habit: Habit) -> Habit:
        if habit.id in self.fail_writes:
            raise ConnectionError(f"cannot write {habit.id}")
        self.persisted.append(habit)
        return self.inner.persist(habit)

    def delete(self, habit_id: str) -> bool:
        if habit_id in self.fail_writes:
            raise ConnectionError(f"cannot delete {habit_id}")
        return self.inner.delete(habit_id)


@pytest.fixture
def recording_repo(repo) -> RecordingRepository:
    return RecordingRepository(repo)


@pytest.fixture
def tracker(recording_repo):
    """Tracker on the recording repository with a clock frozen at NOW."""
    tracker = HabitTracker(recording_repo, tz=TZ, clock=lambda: NOW, max_workers=4)
    yield tracker
    tracker.close()


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def habit_factory(repo):
    """Factory for creating and storing habits."""

    counter = {"n": 0}

    def _create_habit(
        name: str = "Test Habit",
        *,
        completion_dates: list[float] | None = None,
        streak: int = 0,
        is_completed_today: bool = False,
        total_days: int | None = None,
        habit_id: str | None = None,
    ) -> Habit:
        """Store a habit with the given raw fields (derived fields are not checked)."""
        counter["n"] += 1
        dates = list(completion_dates or [])
        habit = Habit(
            id=habit_id or f"habit-{counter['n']:03d}",
            name=name,
            streak=streak,
            is_completed_today=is_completed_today,
            total_days=len(dates) if total_days is None else total_days,
            completion_dates=dates,
        )
        repo.persist(habit)
        return habit

    return _create_habit
