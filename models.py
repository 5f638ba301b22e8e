import os
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import inspect as sa_inspect
from datetime import date, datetime, timedelta, timezone

db = SQLAlchemy()

# Server runs UTC; dates and event times are recorded in local wall-clock time.
_TZ_OFFSET_HOURS = int(os.environ.get("TZ_OFFSET_HOURS", "-5"))


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every *_at column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_local() -> datetime:
    """Naive wall-clock time in the configured local timezone."""
    return utcnow() + timedelta(hours=_TZ_OFFSET_HOURS)


def today_local() -> date:
    return now_local().date()


class SerializerMixin:
    """JSON-ready dict of every column; dates and datetimes become ISO strings."""

    def to_dict(self):
        out = {}
        for attr in sa_inspect(self).mapper.column_attrs:
            value = getattr(self, attr.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            out[attr.columns[0].name] = value
        return out


# ── Research & comments ───────────────────────────────────────────────────────

class ResearchDocument(SerializerMixin, db.Model):
    __tablename__ = "research_documents"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    category = db.Column(db.String(20), nullable=False, default="draft")
    content = db.Column(db.Text, nullable=False, default="")
    sections = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.String(20), nullable=False, default="research")
    topic_slug = db.Column(db.String(255), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    comments = db.relationship("Comment", backref="document", lazy=True, cascade="all, delete-orphan")
    quizzes = db.relationship("Quiz", backref="document", lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<ResearchDocument {self.slug} [{self.status}]>"


class Comment(SerializerMixin, db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("research_documents.id"), nullable=False)
    section_id = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    comment_type = db.Column(db.String(20), nullable=False, default="note")
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Quiz(SerializerMixin, db.Model):
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("research_documents.id"), nullable=False)
    # [{question, options, correctIndex, explanation}, ...]
    questions = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


# ── Pipeline, calendar, tasks ─────────────────────────────────────────────────

class PipelineItem(SerializerMixin, db.Model):
    __tablename__ = "pipeline_items"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    stage = db.Column(db.String(20), nullable=False, default="idea", index=True)
    content_type = db.Column(db.String(50), nullable=True)
    document_id = db.Column(db.Integer, db.ForeignKey("research_documents.id"), nullable=True)
    document_slug = db.Column(db.String(255), nullable=True)
    audience = db.Column(db.String(255), nullable=True)
    target_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<PipelineItem {self.title!r} {self.stage}>"


class CalendarEvent(SerializerMixin, db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_time = db.Column(db.DateTime, nullable=False, index=True)  # local wall-clock
    end_time = db.Column(db.DateTime, nullable=True)
    event_type = db.Column(db.String(50), nullable=True)
    recurring = db.Column(db.String(50), nullable=True)
    pipeline_id = db.Column(db.Integer, db.ForeignKey("pipeline_items.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Task(SerializerMixin, db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    priority = db.Column(db.String(10), nullable=False, default="medium")
    status = db.Column(db.String(20), nullable=False, default="pending")
    category = db.Column(db.String(50), nullable=True)
    pipeline_id = db.Column(db.Integer, db.ForeignKey("pipeline_items.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)


class ScheduleBlock(SerializerMixin, db.Model):
    __tablename__ = "schedule_blocks"

    id = db.Column(db.Integer, primary_key=True)
    day_of_week = db.Column(db.Integer, nullable=True)  # 0 = Sunday; NULL = every day
    start_time = db.Column(db.String(5), nullable=False)  # "HH:MM"
    end_time = db.Column(db.String(5), nullable=False)
    activity = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)


# ── Growth ────────────────────────────────────────────────────────────────────

class Ritual(SerializerMixin, db.Model):
    __tablename__ = "rituals"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    frequency = db.Column(db.String(20), nullable=False, default="daily")
    content = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    completions = db.relationship("RitualCompletion", backref="ritual", lazy=True, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Ritual {self.name!r}>"


class RitualCompletion(SerializerMixin, db.Model):
    __tablename__ = "ritual_completions"
    __table_args__ = (db.UniqueConstraint("ritual_id", "completed_date"),)

    id = db.Column(db.Integer, primary_key=True)
    ritual_id = db.Column(db.Integer, db.ForeignKey("rituals.id"), nullable=False)
    completed_date = db.Column(db.Date, nullable=False, default=today_local, index=True)
    notes = db.Column(db.Text, nullable=True)


class Course(SerializerMixin, db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    source_type = db.Column(db.String(50), nullable=True)
    total_segments = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    segments = db.relationship("CourseSegment", backref="course", lazy=True,
                               cascade="all, delete-orphan", order_by="CourseSegment.segment_number")


class CourseSegment(SerializerMixin, db.Model):
    __tablename__ = "course_segments"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    segment_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False, default="")
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_date = db.Column(db.Date, nullable=True)


class Goal(SerializerMixin, db.Model):
    __tablename__ = "goals"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")
    target_date = db.Column(db.Date, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class DailyReflection(SerializerMixin, db.Model):
    __tablename__ = "daily_reflections"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False, default=today_local)
    wins = db.Column(db.Text, nullable=True)
    struggles = db.Column(db.Text, nullable=True)
    goal_notes = db.Column(db.JSON, nullable=False, default=list)
    gratitude = db.Column(db.Text, nullable=True)
    tomorrow_focus = db.Column(db.Text, nullable=True)
    growth_prompt = db.Column(db.Text, nullable=True)
    themes = db.Column(db.JSON, nullable=False, default=list)
    streak_count = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<DailyReflection {self.date} streak={self.streak_count}>"


class UsageEvent(SerializerMixin, db.Model):
    __tablename__ = "usage_events"

    id = db.Column(db.Integer, primary_key=True)
    page = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(50), nullable=False, default="page_view")
    # "metadata" is reserved on declarative models
    event_metadata = db.Column("metadata", db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)


class UserProfileEntry(SerializerMixin, db.Model):
    __tablename__ = "user_profile"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.JSON, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)


# ── Story & question bank ─────────────────────────────────────────────────────

class Story(SerializerMixin, db.Model):
    __tablename__ = "stories"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    tags = db.Column(db.JSON, nullable=False, default=list)
    source = db.Column(db.String(100), nullable=True)
    topics = db.Column(db.JSON, nullable=False, default=list)
    used_in = db.Column(db.JSON, nullable=False, default=list)
    setup = db.Column(db.Text, nullable=True)
    core_point = db.Column(db.Text, nullable=True)
    gemara_reference = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Question(SerializerMixin, db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    question = db.Column(db.Text, nullable=False)
    context = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    topics = db.Column(db.JSON, nullable=False, default=list)
    used_in = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class StoryCapture(SerializerMixin, db.Model):
    __tablename__ = "story_captures"

    id = db.Column(db.Integer, primary_key=True)
    prompt_day = db.Column(db.Integer, nullable=False, default=0)  # 0 = "today" mode
    prompt_text = db.Column(db.Text, nullable=False)
    response = db.Column(db.Text, nullable=False)
    emotion = db.Column(db.String(100), nullable=True)
    captured_date = db.Column(db.Date, nullable=False, default=today_local, index=True)
    promoted_to_story_id = db.Column(db.Integer, db.ForeignKey("stories.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


# ── Practice & delivery ───────────────────────────────────────────────────────

class PracticeLog(SerializerMixin, db.Model):
    __tablename__ = "practice_logs"

    id = db.Column(db.Integer, primary_key=True)
    pipeline_id = db.Column(db.Integer, db.ForeignKey("pipeline_items.id"), nullable=True)
    date = db.Column(db.Date, nullable=False, default=today_local, index=True)
    duration_minutes = db.Column(db.Integer, nullable=True)
    practice_type = db.Column(db.String(20), nullable=True)
    vocal_rating = db.Column(db.Integer, nullable=True)     # 1–5
    vitality_rating = db.Column(db.Integer, nullable=True)  # 1–5
    visual_rating = db.Column(db.Integer, nullable=True)    # 1–5
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    @property
    def rating_total(self):
        """Sum of the three ratings, missing ones counted as zero."""
        return (self.vocal_rating or 0) + (self.vitality_rating or 0) + (self.visual_rating or 0)

    def __repr__(self):
        return f"<PracticeLog {self.date} {self.duration_minutes}min>"


class DeliveryJournal(SerializerMixin, db.Model):
    __tablename__ = "delivery_journal"

    id = db.Column(db.Integer, primary_key=True)
    pipeline_id = db.Column(db.Integer, db.ForeignKey("pipeline_items.id"), nullable=True)
    date = db.Column(db.Date, nullable=False, default=today_local)
    audience_description = db.Column(db.Text, nullable=True)
    what_landed = db.Column(db.Text, nullable=True)
    what_didnt = db.Column(db.Text, nullable=True)
    audience_reactions = db.Column(db.Text, nullable=True)
    overall_rating = db.Column(db.Integer, nullable=True)
    lessons_learned = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


# ── Shas tracker ──────────────────────────────────────────────────────────────

class ShasMasechta(SerializerMixin, db.Model):
    __tablename__ = "shas_masechtos"

    id = db.Column(db.Integer, primary_key=True)
    seder = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(100), unique=True, nullable=False)
    perakim = db.Column(db.Integer, nullable=False)
    daf_count = db.Column(db.Integer, nullable=True)  # NULL when there is no Bavli
    has_bavli = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    completions = db.relationship("ShasCompletion", backref="masechta", lazy=True, cascade="all, delete-orphan")

    def units(self, completion_type):
        """Units of learning for one completion type: daf for gemara, perakim for mishnayos."""
        if completion_type == "gemara":
            return self.daf_count or 0
        return self.perakim

    def __repr__(self):
        return f"<ShasMasechta {self.name} ({self.seder})>"


class ShasCompletion(SerializerMixin, db.Model):
    __tablename__ = "shas_completions"
    __table_args__ = (db.UniqueConstraint("masechta_id", "completion_type"),)

    id = db.Column(db.Integer, primary_key=True)
    masechta_id = db.Column(db.Integer, db.ForeignKey("shas_masechtos.id"), nullable=False)
    completion_type = db.Column(db.String(20), nullable=False)  # gemara | mishnayos
    completed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)
