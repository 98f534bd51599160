"""Habit record and its document representation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

__all__ = ["Habit", "habit_from_document", "habit_to_document", "clean_timestamp"]


@dataclass
class Habit:
    """A user-tracked habit with its completion history.

    ``streak`` and ``is_completed_today`` are derived from ``completion_dates``
    (epoch seconds, chronological) and are only written by the streak engine.
    """

    id: str
    name: str
    streak: int = 0
    is_completed_today: bool = False
    total_days: int = 0
    completion_dates: list[float] = field(default_factory=list)


def clean_timestamp(value: Any) -> Optional[float]:
    """Return ``value`` as epoch seconds, or None when it is unusable.

    Unusable means non-numeric, a bool, NaN or infinite, or outside the range
    ``datetime`` can represent on this platform.
    """

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
        datetime.fromtimestamp(value, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return value


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, int(value))


def habit_from_document(doc_id: str, data: Optional[Mapping[str, Any]]) -> Habit:
    """Build a Habit from a stored document, defaulting malformed fields.

    Missing or wrongly typed strings become ``""``, numbers ``0``, booleans
    ``False`` and lists ``[]``. Unusable completion timestamps are dropped.
    """

    data = data if isinstance(data, Mapping) else {}

    name = data.get("name")
    flag = data.get("isCompletedToday")
    raw_dates = data.get("completionDates")
    if not isinstance(raw_dates, (list, tuple)):
        raw_dates = []

    dates = [ts for ts in (clean_timestamp(v) for v in raw_dates) if ts is not None]
    dates.sort()

    return Habit(
        id=doc_id,
        name=name if isinstance(name, str) else "",
        streak=_count(data.get("streak")),
        is_completed_today=flag if isinstance(flag, bool) else False,
        total_days=_count(data.get("totalDays")),
        completion_dates=dates,
    )


def habit_to_document(habit: Habit) -> dict[str, Any]:
    """Serialize a Habit to the stored document layout (the id is the key)."""

    return {
        "name": habit.name,
        "streak": habit.streak,
        "isCompletedToday": habit.is_completed_today,
        "totalDays": habit.total_days,
        "completionDates": list(habit.completion_dates),
    }
