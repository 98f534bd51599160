"""Streak engine: derived fields of a habit computed from its completion dates.

Every function here is pure. Timestamps are epoch seconds and are cut into
calendar days in ``tz`` (the local zone when ``tz`` is None).
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional
from uuid import uuid4

from ..models.habit import Habit, clean_timestamp

__all__ = [
    "completion_days",
    "compute_streak",
    "longest_streak",
    "new_habit",
    "refresh_habit",
    "reset_if_stale",
    "to_day",
    "toggle_completion",
]


def to_day(moment: date | datetime, tz: Optional[tzinfo] = None) -> date:
    """Return the calendar day of ``moment`` as seen in ``tz``."""

    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(tz) if tz is not None else moment.astimezone()
        return moment.date()
    return moment


def _timestamp_day(value: object, tz: Optional[tzinfo]) -> Optional[date]:
    ts = clean_timestamp(value)
    if ts is None:
        return None
    try:
        return datetime.fromtimestamp(ts, tz).date()
    except (OverflowError, OSError, ValueError):
        return None


def completion_days(completion_dates: Iterable[object], tz: Optional[tzinfo] = None) -> set[date]:
    """Collapse timestamps to the set of days with at least one completion.

    Malformed timestamps are skipped.
    """

    days = set()
    for value in completion_dates:
        day = _timestamp_day(value, tz)
        if day is not None:
            days.add(day)
    return days


def compute_streak(
    completion_dates: Iterable[object],
    today: date | datetime,
    tz: Optional[tzinfo] = None,
) -> int:
    """Return the number of consecutive completed days ending today or yesterday."""

    days = completion_days(completion_dates, tz)
    cursor = to_day(today, tz)

    # Today still pending: yesterday's chain counts.
    if cursor not in days:
        cursor -= timedelta(days=1)

    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(completion_dates: Iterable[object], tz: Optional[tzinfo] = None) -> int:
    """Return the longest run of consecutive completed days ever recorded."""

    longest = 0
    run = 0
    last_day: date | None = None
    for day in sorted(completion_days(completion_dates, tz)):
        if last_day is not None and day == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = day
    return longest


def reset_if_stale(habit: Habit, today: date | datetime, tz: Optional[tzinfo] = None) -> Habit:
    """Return ``habit`` with ``is_completed_today`` matching its latest completion."""

    days = completion_days(habit.completion_dates, tz)
    completed = bool(days) and max(days) == to_day(today, tz)
    if completed == habit.is_completed_today:
        return habit
    return replace(habit, is_completed_today=completed)


def refresh_habit(
    habit: Habit, today: date | datetime, tz: Optional[tzinfo] = None
) -> tuple[Habit, bool]:
    """Recompute both derived fields; return the habit and whether anything changed."""

    refreshed = reset_if_stale(habit, today, tz)
    streak = compute_streak(refreshed.completion_dates, today, tz)
    if streak != refreshed.streak:
        refreshed = replace(refreshed, streak=streak)
    changed = (
        refreshed.streak != habit.streak
        or refreshed.is_completed_today != habit.is_completed_today
    )
    return refreshed, changed


def toggle_completion(habit: Habit, now: datetime, tz: Optional[tzinfo] = None) -> Habit:
    """Mark the habit done for today, or undo today's completion."""

    dates = list(habit.completion_dates)
    if habit.is_completed_today:
        if dates:
            dates.pop()
        completed = False
        total_days = max(0, habit.total_days - 1)
    else:
        dates.append(now.timestamp())
        completed = True
        total_days = habit.total_days + 1

    return replace(
        habit,
        is_completed_today=completed,
        total_days=total_days,
        completion_dates=dates,
        streak=compute_streak(dates, now, tz),
    )


def new_habit(
    name: str,
    *,
    now: datetime,
    is_completed_today: bool = False,
    tz: Optional[tzinfo] = None,
    habit_id: Optional[str] = None,
) -> Habit:
    """Create a fresh habit record with a new id."""

    name = (name or "").strip()
    if not name:
        raise ValueError("Habit name must not be blank")

    dates = [now.timestamp()] if is_completed_today else []
    return Habit(
        id=habit_id or uuid4().hex,
        name=name,
        streak=compute_streak(dates, now, tz),
        is_completed_today=is_completed_today,
        total_days=1 if is_completed_today else 0,
        completion_dates=dates,
    )
