"""Habit repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.habit import Habit


class HabitRepository(Protocol):
    """Store of habit documents keyed by id."""

    def list_ids(self) -> list[str]:
        """Return the ids of every stored habit."""
        ...

    def get_by_id(self, habit_id: str) -> Optional[Habit]:
        """Retrieve and decode one habit."""
        ...

    def load_all(self) -> list[Habit]:
        """Point-in-time list of all habits."""
        ...

    def persist(self, habit: Habit) -> Habit:
        """Insert or replace a habit by id."""
        ...

    def delete(self, habit_id: str) -> bool:
        """Delete a habit; return False when it did not exist."""
        ...
