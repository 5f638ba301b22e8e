"""Polled reminders for rituals, upcoming events and tasks due today.

``due_reminders`` is evaluated once a minute, either by the browser through
``/api/reminders`` or by ``flask remind`` which logs each reminder.
"""
import logging
import time
from dataclasses import dataclass, asdict
from datetime import timedelta

from models import Ritual, RitualCompletion, CalendarEvent, Task, now_local

logger = logging.getLogger(__name__)

MORNING = (7, 0)
TASKS_DUE = (8, 0)
EVENING = (21, 0)
EVENT_LEAD_MINUTES = 15
POLL_SECONDS = 60


@dataclass
class Reminder:
    title: str
    body: str

    def to_dict(self):
        return asdict(self)


def _plural(n, word):
    return f"{n} {word}{'s' if n > 1 else ''}"


def _pending_rituals(day):
    done = {c.ritual_id for c in RitualCompletion.query.filter_by(completed_date=day).all()}
    return [r for r in Ritual.query.filter_by(active=True).all() if r.id not in done]


def due_reminders(now):
    """Reminders that fire at ``now`` (local time, minute resolution)."""
    out = []
    hm = (now.hour, now.minute)
    today = now.date()

    if hm == MORNING:
        pending = _pending_rituals(today)
        if pending:
            out.append(Reminder("Good Morning!",
                                f"You have {_plural(len(pending), 'ritual')} to complete today."))

    if hm == EVENING:
        pending = _pending_rituals(today)
        if pending:
            out.append(Reminder("Evening Check-in",
                                f"{_plural(len(pending), 'ritual')} still incomplete today. Don't forget!"))

    soon = now + timedelta(minutes=EVENT_LEAD_MINUTES)
    upcoming = (CalendarEvent.query
                .filter(CalendarEvent.start_time >= now, CalendarEvent.start_time <= soon)
                .order_by(CalendarEvent.start_time.asc())
                .all())
    for event in upcoming:
        out.append(Reminder(f"Coming up: {event.title}",
                            f"Starts at {event.start_time.strftime('%H:%M')}"))

    if hm == TASKS_DUE:
        due = Task.query.filter(Task.due_date == today, Task.status != "done").all()
        if due:
            titles = ", ".join(t.title for t in due)
            out.append(Reminder("Tasks Due Today",
                                f"{_plural(len(due), 'task')} due today: {titles}"))
    return out


def run_reminder_loop(interval=POLL_SECONDS, iterations=None, clock=now_local, sleep=time.sleep):
    """Check reminders every ``interval`` seconds and log them. Runs forever by default."""
    count = 0
    while iterations is None or count < iterations:
        now = clock().replace(second=0, microsecond=0)
        for reminder in due_reminders(now):
            logger.info("%s — %s", reminder.title, reminder.body)
        count += 1
        if iterations is None or count < iterations:
            sleep(interval)
