"""Dashboard nudges: a fixed-priority rule list over independent queries."""
import logging
import math
from dataclasses import dataclass, asdict
from datetime import timedelta

from models import (CalendarEvent, PipelineItem, PracticeLog, Ritual,
                    RitualCompletion, StoryCapture, DailyReflection)

logger = logging.getLogger(__name__)

MAX_NUDGES = 3
EVENT_WINDOW_DAYS = 3
PRACTICE_WINDOW_DAYS = 7
CAPTURE_WINDOW_DAYS = 3
REFLECTION_HOUR = 17

# Lower number = shown first
PRIORITY = {
    "event": 1,
    "practice": 2,
    "reflection": 2,
    "ritual": 3,
    "story": 4,
}


@dataclass
class Nudge:
    type: str
    message: str
    action: str
    priority: int

    def to_dict(self):
        return asdict(self)


def _day_text(days):
    if days <= 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"


def _event_nudge(now):
    event = (CalendarEvent.query
             .filter(CalendarEvent.start_time >= now,
                     CalendarEvent.start_time <= now + timedelta(days=EVENT_WINDOW_DAYS))
             .order_by(CalendarEvent.start_time.asc())
             .first())
    if event is None:
        return None
    days = math.ceil((event.start_time - now).total_seconds() / 86400)
    return Nudge("event", f"{event.title} is {_day_text(days)} — time to prepare",
                 "/pipeline", PRIORITY["event"])


def _practice_nudge(today):
    item = PipelineItem.query.filter_by(stage="practice").first()
    if item is None:
        return None
    since = today - timedelta(days=PRACTICE_WINDOW_DAYS)
    if PracticeLog.query.filter(PracticeLog.date >= since).first() is not None:
        return None
    return Nudge("practice", f'"{item.title}" needs rehearsal', "/practice", PRIORITY["practice"])


def _ritual_nudge(today):
    active = Ritual.query.filter_by(active=True).count()
    done = (RitualCompletion.query
            .join(Ritual)
            .filter(Ritual.active.is_(True), RitualCompletion.completed_date == today)
            .count())
    remaining = active - done
    if remaining <= 0:
        return None
    plural = "s" if remaining > 1 else ""
    return Nudge("ritual", f"{remaining} ritual{plural} waiting for you",
                 "/growth/daily", PRIORITY["ritual"])


def _story_nudge(today):
    since = today - timedelta(days=CAPTURE_WINDOW_DAYS)
    if StoryCapture.query.filter(StoryCapture.captured_date >= since).first() is not None:
        return None
    return Nudge("story", "Capture a moment — 2 minutes", "/stories/capture", PRIORITY["story"])


def _reflection_nudge(now):
    if now.hour < REFLECTION_HOUR:
        return None
    if DailyReflection.query.filter_by(date=now.date()).first() is not None:
        return None
    return Nudge("reflection", "Take 5 minutes to reflect on your day",
                 "/growth/daily", PRIORITY["reflection"])


def build_nudges(now, limit=MAX_NUDGES):
    """Top nudges for ``now`` (local wall-clock time), highest priority first."""
    today = now.date()
    candidates = [
        _event_nudge(now),
        _practice_nudge(today),
        _ritual_nudge(today),
        _story_nudge(today),
        _reflection_nudge(now),
    ]
    result = sorted((n for n in candidates if n is not None), key=lambda n: n.priority)
    logger.debug("Nudges for %s: %s", now, [n.type for n in result])
    return result[:limit]
