"""Habit record and SQLModel table exports."""

from .document import HabitDocument
from .habit import Habit, habit_from_document, habit_to_document

__all__ = [
    "Habit",
    "HabitDocument",
    "habit_from_document",
    "habit_to_document",
]
