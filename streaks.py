from datetime import timedelta


def capture_streak(dates, today):
    """Consecutive days with at least one capture, ending today or yesterday.

    The streak is broken (0) when the latest capture is older than yesterday.
    Several captures on one day count once.
    """
    distinct = sorted(set(dates), reverse=True)
    if not distinct:
        return 0
    if distinct[0] not in (today, today - timedelta(days=1)):
        return 0

    streak = 0
    expected = distinct[0]
    for d in distinct:
        if d != expected:
            break
        streak += 1
        expected -= timedelta(days=1)
    return streak


def capture_stats(captures, today):
    """Totals shown on the capture page: all captures, current streak, last 7 days."""
    week_ago = today - timedelta(days=7)
    return {
        "total_captures": len(captures),
        "current_streak": capture_streak([c.captured_date for c in captures], today),
        "this_week": sum(1 for c in captures if c.captured_date >= week_ago),
    }


def next_reflection_streak(previous):
    """Streak count for a reflection given yesterday's reflection (or None)."""
    if previous is None:
        return 1
    return (previous.streak_count or 0) + 1
