"""Personal growth: rituals, courses, goals, reflections, usage and profile."""
import logging
from datetime import timedelta

from models import (db, Ritual, RitualCompletion, Course, CourseSegment, Goal,
                    DailyReflection, UsageEvent, UserProfileEntry, utcnow)
from repository import Repository, ValidationError, commit
from streaks import next_reflection_streak

logger = logging.getLogger(__name__)

RITUAL_FREQUENCIES = ("daily", "weekday", "shabbos", "weekly")
GOAL_STATUSES = ("active", "completed", "paused")
REFLECTION_FIELDS = ("wins", "struggles", "goal_notes", "gratitude",
                     "tomorrow_focus", "growth_prompt", "themes")

rituals = Repository(Ritual, order_by="sort_order", ascending=True)
courses = Repository(Course, order_by="created_at", ascending=False)
segments = Repository(CourseSegment, order_by="segment_number", ascending=True)
goals = Repository(Goal, order_by="sort_order", ascending=True)


# ── Rituals ───────────────────────────────────────────────────────────────────

def add_ritual(name, description="", category="reflection", **extra):
    if not name or not name.strip():
        raise ValidationError("Name is required.")
    frequency = extra.get("frequency", "daily")
    if frequency not in RITUAL_FREQUENCIES:
        raise ValidationError(f"Unknown frequency: {frequency!r}")
    return rituals.add(name=name.strip(), description=description, category=category, **extra)


def rituals_for_day(day):
    """Active rituals with their completion state for one date."""
    active = rituals.list(active=True)
    done = {c.ritual_id for c in RitualCompletion.query.filter_by(completed_date=day).all()}
    completed = [r for r in active if r.id in done]
    return {
        "date": day.isoformat(),
        "rituals": [dict(r.to_dict(), completed=r.id in done) for r in active],
        "completed_ids": [r.id for r in completed],
        "completed_count": len(completed),
        "total": len(active),
        "percent": len(completed) / len(active) * 100 if active else 0,
    }


def toggle_ritual(ritual_id, day, notes=None):
    """Add or remove the completion row for (ritual, day). Returns True when now completed."""
    rituals.get(ritual_id)
    existing = RitualCompletion.query.filter_by(ritual_id=ritual_id, completed_date=day).first()
    if existing:
        db.session.delete(existing)
        done = False
    else:
        db.session.add(RitualCompletion(ritual_id=ritual_id, completed_date=day, notes=notes))
        done = True
    commit("toggle ritual completion")
    return done


# ── Courses ───────────────────────────────────────────────────────────────────

def toggle_segment(segment_id, today):
    seg = segments.get(segment_id)
    seg.completed = not seg.completed
    seg.completed_date = today if seg.completed else None
    commit("toggle course segment")
    return seg


def complete_segment(segment_id, today):
    seg = segments.get(segment_id)
    seg.completed = True
    seg.completed_date = today
    commit("complete course segment")
    return seg


def daily_lessons():
    """The next uncompleted segment of every course, oldest course first."""
    lessons = []
    for course in Course.query.order_by(Course.created_at.asc(), Course.id.asc()).all():
        seg = (CourseSegment.query
               .filter_by(course_id=course.id, completed=False)
               .order_by(CourseSegment.segment_number.asc())
               .first())
        if seg is not None:
            lessons.append((course, seg))
    return lessons


def course_progress(course_id):
    segs = segments.list(course_id=course_id)
    done = sum(1 for s in segs if s.completed)
    return {"completed": done, "total": len(segs),
            "percent": round(done / len(segs) * 100) if segs else 0}


# ── Goals ─────────────────────────────────────────────────────────────────────

def add_goal(title, category=None, description=None, target_date=None):
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    return goals.add(title=title.strip(), category=category,
                     description=description, target_date=target_date)


def update_goal_status(goal_id, status):
    if status not in GOAL_STATUSES:
        raise ValidationError(f"Unknown goal status: {status!r}")
    return goals.update(goal_id, status=status)


def active_goals():
    return goals.list(status="active")


# ── Reflections ───────────────────────────────────────────────────────────────

def get_reflection(day):
    return DailyReflection.query.filter_by(date=day).first()


def save_reflection(day, **fields):
    """Insert or update the reflection for ``day`` and recompute its streak count."""
    unknown = sorted(set(fields) - set(REFLECTION_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown reflection field(s): {', '.join(unknown)}")

    streak = next_reflection_streak(get_reflection(day - timedelta(days=1)))
    reflection = get_reflection(day)
    if reflection is None:
        reflection = DailyReflection(date=day)
        db.session.add(reflection)
    for key, value in fields.items():
        setattr(reflection, key, value)
    reflection.streak_count = streak
    commit("save reflection")
    return reflection


def reflection_history(today, days=7):
    since = today - timedelta(days=days)
    return (DailyReflection.query
            .filter(DailyReflection.date >= since)
            .order_by(DailyReflection.date.desc())
            .all())


# ── Usage & profile ───────────────────────────────────────────────────────────

def log_usage(page, action="page_view", metadata=None):
    db.session.add(UsageEvent(page=page, action=action, event_metadata=metadata or {}))
    commit("log usage")


def usage_stats(days=7, now=None):
    """Page-view counts and the latest visit per page over the last ``days`` days."""
    since = (now or utcnow()) - timedelta(days=days)
    events = (UsageEvent.query
              .filter(UsageEvent.action == "page_view", UsageEvent.created_at >= since)
              .order_by(UsageEvent.created_at.desc())
              .all())
    counts, last_visits = {}, {}
    for e in events:
        counts[e.page] = counts.get(e.page, 0) + 1
        last_visits.setdefault(e.page, e.created_at.isoformat())
    return {
        "stats": [{"page": page, "count": count} for page, count in counts.items()],
        "last_visits": last_visits,
    }


def profile():
    return {entry.key: entry.value for entry in UserProfileEntry.query.all()}


def seed_profile(entries):
    """Upsert {key: value} pairs into the user profile. Returns the keys written."""
    written = []
    for key, value in entries.items():
        entry = UserProfileEntry.query.filter_by(key=key).first()
        if entry is None:
            entry = UserProfileEntry(key=key)
            db.session.add(entry)
        entry.value = value
        entry.updated_at = utcnow()
        written.append(key)
    commit("seed profile")
    logger.info("Seeded profile keys: %s", ", ".join(written))
    return written


# ── Practice ──────────────────────────────────────────────────────────────────

def practice_stats(logs, today):
    """Totals for the practice log: minutes, mean rating across the three Vs, last 7 days."""
    week_ago = today - timedelta(days=7)
    total_minutes = sum(log.duration_minutes or 0 for log in logs)
    avg = round(sum(log.rating_total for log in logs) / (len(logs) * 3), 1) if logs else 0
    return {
        "sessions": len(logs),
        "total_minutes": total_minutes,
        "average_rating": avg,
        "this_week": sum(1 for log in logs if log.date >= week_ago),
    }
