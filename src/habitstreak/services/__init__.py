"""Service layer: streak engine and habit tracker."""

from .streaks import (
    compute_streak,
    longest_streak,
    new_habit,
    refresh_habit,
    reset_if_stale,
    toggle_completion,
)
from .tracker import HabitNotFoundError, HabitSubscription, HabitTracker
from .writes import WriteFailure, WriteFailureLog

__all__ = [
    "HabitNotFoundError",
    "HabitSubscription",
    "HabitTracker",
    "WriteFailure",
    "WriteFailureLog",
    "compute_streak",
    "longest_streak",
    "new_habit",
    "refresh_habit",
    "reset_if_stale",
    "toggle_completion",
]
