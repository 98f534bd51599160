"""SQLModel implementation of the habit repository."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.document import HabitDocument
from ...models.habit import Habit, habit_from_document, habit_to_document

SessionFactory = Callable[[], AbstractContextManager[Session]]


class SQLModelHabitRepository:
    """Stores each habit as a JSON document row."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def list_ids(self) -> list[str]:
        with self.session_factory() as session:
            return list(session.exec(select(HabitDocument.id).order_by(HabitDocument.id)).all())

    def get_by_id(self, habit_id: str) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self.session_factory() as session:
            row = session.get(HabitDocument, habit_id)
            if row is None:
                return None
            return habit_from_document(row.id, row.data)

    def load_all(self) -> list[Habit]:
        with self.session_factory() as session:
            rows = session.exec(select(HabitDocument).order_by(HabitDocument.id)).all()
            return [habit_from_document(row.id, row.data) for row in rows]

    def persist(self, habit: Habit) -> Habit:
        """Upsert the habit document by id."""
        with self.session_factory() as session:
            row = session.get(HabitDocument, habit.id)
            if row is None:
                row = HabitDocument(id=habit.id)
            # Assign a fresh dict so the JSON column is flagged dirty.
            row.data = habit_to_document(habit)
            row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()
        return habit

    def delete(self, habit_id: str) -> bool:
        """Delete a habit by ID."""
        with self.session_factory() as session:
            row = session.get(HabitDocument, habit_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True
