"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from sqlmodel import Session

from .config import BaseConfig
from .infra.database import create_db_engine, create_session_factory, init_database
from .infra.repositories import SQLModelHabitRepository
from .services.tracker import HabitTracker


@dataclass
class AppContext:
    """Centralized application context with services and state."""

    config: BaseConfig
    engine: Any
    session_factory: Callable[[], Session]
    habit_repo: SQLModelHabitRepository
    tracker: HabitTracker

    def close(self) -> None:
        self.tracker.close()
        self.engine.dispose()


def create_app_context(
    config: Optional[BaseConfig] = None,
    *,
    clock: Optional[Callable[[], Any]] = None,
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)

    habit_repo = SQLModelHabitRepository(session_factory)
    tracker = HabitTracker(
        habit_repo,
        tz=config.timezone(),
        clock=clock,
        max_workers=config.LOAD_WORKERS,
    )

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        habit_repo=habit_repo,
        tracker=tracker,
    )
