# tests/test_streaks.py

from __future__ import annotations

from datetime import date, timedelta
from types import SimpleNamespace

from streaks import capture_stats, capture_streak, next_reflection_streak

TODAY = date(2026, 3, 2)


def _days_back(*offsets):
    return [TODAY - timedelta(days=n) for n in offsets]


def test_consecutive_days_ending_today() -> None:
    assert capture_streak(_days_back(0, 1, 2, 3, 4), TODAY) == 5


def test_streak_may_end_yesterday() -> None:
    assert capture_streak(_days_back(1, 2), TODAY) == 2


def test_gap_stops_the_count() -> None:
    assert capture_streak(_days_back(0, 1, 3, 4), TODAY) == 2


def test_no_recent_capture_breaks_streak() -> None:
    assert capture_streak(_days_back(2, 3, 4), TODAY) == 0
    assert capture_streak([], TODAY) == 0


def test_same_day_captures_count_once() -> None:
    assert capture_streak(_days_back(0, 0, 0, 1), TODAY) == 2


def test_capture_stats_counts_week() -> None:
    caps = [SimpleNamespace(captured_date=d) for d in _days_back(0, 1, 6, 8, 30)]
    stats = capture_stats(caps, TODAY)
    assert stats == {"total_captures": 5, "current_streak": 2, "this_week": 3}


def test_reflection_streak_continues_from_yesterday() -> None:
    assert next_reflection_streak(None) == 1
    assert next_reflection_streak(SimpleNamespace(streak_count=4)) == 5
