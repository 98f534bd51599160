"""Tests for streak calculations.

Covers the backward walk from today or yesterday, same-day duplicates,
gaps, time zone day boundaries and malformed timestamps.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pytest

from habitstreak.services.streaks import completion_days, compute_streak, longest_streak, to_day
from tests.conftest import NOW, TODAY, TZ, days_ago, ts


class TestCurrentStreak:
    """Tests for the current consecutive day streak."""

    def test_no_entries_returns_zero(self):
        assert compute_streak([], TODAY, TZ) == 0

    def test_single_entry_today_returns_one(self):
        assert compute_streak([days_ago(0)], TODAY, TZ) == 1

    def test_today_and_two_previous_days(self):
        dates = [days_ago(2), days_ago(1), days_ago(0)]
        assert compute_streak(dates, TODAY, TZ) == 3

    def test_chain_older_than_yesterday_is_broken(self):
        dates = [days_ago(3), days_ago(2)]
        assert compute_streak(dates, TODAY, TZ) == 0

    def test_yesterday_only_is_still_in_progress(self):
        assert compute_streak([days_ago(1)], TODAY, TZ) == 1

    def test_pending_today_counts_yesterdays_chain(self):
        dates = [days_ago(i) for i in range(1, 6)]
        assert compute_streak(dates, TODAY, TZ) == 5

    def test_gap_breaks_streak(self):
        dates = [days_ago(4), days_ago(3), days_ago(1), days_ago(0)]
        assert compute_streak(dates, TODAY, TZ) == 2

    def test_same_day_completions_count_once(self):
        dates = [days_ago(1, hour=7), days_ago(1, hour=21), days_ago(0, hour=8), days_ago(0, hour=9)]
        assert compute_streak(dates, TODAY, TZ) == 2

    def test_order_of_input_does_not_matter(self):
        dates = [days_ago(0), days_ago(2), days_ago(1)]
        assert compute_streak(dates, TODAY, TZ) == 3

    def test_accepts_datetime_for_today(self):
        dates = [days_ago(1), days_ago(0)]
        assert compute_streak(dates, NOW, TZ) == 2

    def test_today_datetime_is_converted_into_zone(self):
        # 23:30 UTC on the 14th is already the 15th at UTC+2.
        late_utc = datetime(2024, 3, 14, 23, 30, tzinfo=timezone.utc)
        assert to_day(late_utc, TZ) == date(2024, 3, 15)
        assert compute_streak([days_ago(0)], late_utc, TZ) == 1

    def test_day_boundary_follows_zone(self):
        # 22:30 UTC on the 14th is 00:30 on the 15th at UTC+2.
        just_after_midnight = datetime(2024, 3, 14, 22, 30, tzinfo=timezone.utc).timestamp()
        assert compute_streak([just_after_midnight], TODAY, TZ) == 1
        assert compute_streak([just_after_midnight], TODAY, timezone.utc) == 1
        assert compute_streak([just_after_midnight], TODAY + timedelta(days=2), TZ) == 0

    def test_future_completions_do_not_extend_streak(self):
        dates = [days_ago(0), days_ago(-1)]
        assert compute_streak(dates, TODAY, TZ) == 1

    @pytest.mark.parametrize(
        "junk",
        ["2024-03-15", None, float("nan"), float("inf"), True, 1e20, {"seconds": 1}],
    )
    def test_malformed_timestamps_are_discarded(self, junk):
        dates = [days_ago(1), junk, days_ago(0)]
        assert compute_streak(dates, TODAY, TZ) == 2

    def test_only_malformed_timestamps_yield_zero(self):
        assert compute_streak(["x", None, float("nan")], TODAY, TZ) == 0

    def test_is_idempotent(self):
        dates = [days_ago(i) for i in (0, 1, 2, 5, 6)]
        first = compute_streak(dates, TODAY, TZ)
        assert compute_streak(dates, TODAY, TZ) == first == 3


class TestLongestStreak:
    """Tests for the longest historical streak."""

    def test_no_entries_returns_zero(self):
        assert longest_streak([], TZ) == 0

    def test_single_entry_returns_one(self):
        assert longest_streak([days_ago(40)], TZ) == 1

    def test_multiple_runs_returns_longest(self):
        start = date(2024, 1, 1)
        runs = [(start, 3), (start + timedelta(days=9), 7), (start + timedelta(days=19), 4)]
        dates = [ts(first + timedelta(days=i)) for first, length in runs for i in range(length)]
        assert longest_streak(dates, TZ) == 7

    def test_duplicates_do_not_lengthen_run(self):
        day = date(2024, 1, 1)
        dates = [ts(day, 8), ts(day, 20), ts(day + timedelta(days=1))]
        assert longest_streak(dates, TZ) == 2

    def test_current_run_can_be_longest(self):
        dates = [ts(date(2024, 1, 1)), ts(date(2024, 1, 2))]
        dates += [days_ago(i) for i in range(14)]
        assert longest_streak(dates, TZ) == 14
        assert compute_streak(dates, TODAY, TZ) == 14


def test_completion_days_collapses_to_distinct_days():
    dates = [days_ago(0, 8), days_ago(0, 18), days_ago(3), "bad"]
    assert completion_days(dates, TZ) == {TODAY, TODAY - timedelta(days=3)}


def test_local_zone_is_used_when_no_zone_given():
    local_noon = datetime.combine(TODAY, time(12, 0)).timestamp()
    assert compute_streak([local_noon], TODAY) == 1
