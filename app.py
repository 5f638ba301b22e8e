import os
import logging
from datetime import date, timedelta

import click
from flask import Flask, jsonify, request

from models import (db, CalendarEvent, Task, ScheduleBlock, Story, Question, PracticeLog,
                    DeliveryJournal, StoryCapture, Quiz, now_local, today_local, utcnow)
from repository import CoachError, Repository, ValidationError, NotFound, commit
import growth
import importer
import nudges
import pipeline
import reminders
import research
import shas
import story_prompts
from logging_setup import setup_logging
from streaks import capture_stats

logger = logging.getLogger("app")

basedir = os.path.abspath(os.path.dirname(__file__))

app = Flask(__name__)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(basedir, "coach_hub.db"),
)
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
# Content tree (content/, courses/, coaching/) lives next to the project by default.
app.config["CONTENT_ROOT"] = os.environ.get("CONTENT_ROOT", os.path.dirname(basedir))
app.config["FEEDBACK_DIR"] = os.environ.get(
    "FEEDBACK_DIR",
    os.path.join(app.config["CONTENT_ROOT"], "coaching", "feedback"),
)
app.config["LOG_DIR"] = os.environ.get("LOG_DIR", os.path.join(basedir, "logs"))
# Seed datasets (courses, borrowed stories, profile) shipped with the project.
app.config["DATA_DIR"] = os.environ.get("DATA_DIR", os.path.join(basedir, "data"))

db.init_app(app)

# ── Repositories for plain CRUD resources ─────────────────────────────────────

events = Repository(CalendarEvent, order_by="start_time", ascending=True)
tasks = Repository(Task, order_by="created_at", ascending=False)
schedule_blocks = Repository(ScheduleBlock, order_by="start_time", ascending=True)
stories = Repository(Story, order_by="created_at", ascending=False)
questions = Repository(Question, order_by="created_at", ascending=False)
practice_logs = Repository(PracticeLog, order_by="date", ascending=False)
journal = Repository(DeliveryJournal, order_by="date", ascending=False)
captures = Repository(StoryCapture, order_by="created_at", ascending=False)
quizzes = Repository(Quiz, order_by="created_at", ascending=False)

RESOURCES = {
    "documents": research.documents,
    "comments":  research.comments,
    "pipeline":  pipeline.items,
    "events":    events,
    "tasks":     tasks,
    "schedule":  schedule_blocks,
    "rituals":   growth.rituals,
    "courses":   growth.courses,
    "segments":  growth.segments,
    "stories":   stories,
    "questions": questions,
    "practice":  practice_logs,
    "journal":   journal,
    "goals":     growth.goals,
    "captures":  captures,
    "quizzes":   quizzes,
}

# Resources whose creation carries rules beyond a plain insert
CREATORS = {
    "documents": lambda d: research.create_document(d.pop("title", ""), d.pop("category", "draft"),
                                                    d.pop("content", "")),
    "comments":  lambda d: research.add_comment(d.pop("document_id", None), d.pop("section_id", ""),
                                                d.pop("content", ""), d.pop("comment_type", "note")),
    "pipeline":  lambda d: pipeline.add_item(d.pop("title", ""), d.pop("content_type", None), **d),
    "rituals":   lambda d: growth.add_ritual(d.pop("name", ""), d.pop("description", ""),
                                             d.pop("category", "reflection"), **d),
    "goals":     lambda d: growth.add_goal(d.pop("title", ""), d.pop("category", None),
                                           d.pop("description", None), d.pop("target_date", None)),
}

TASK_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


# ── Helpers ───────────────────────────────────────────────────────────────────

def _json_body():
    data = request.get_json(force=True, silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object.")
    return data


def _repo(resource):
    repo = RESOURCES.get(resource)
    if repo is None:
        raise NotFound(f"Unknown resource: {resource}")
    return repo


def _parse_date(value, default=None):
    if not value:
        return default if default is not None else today_local()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc


def _int_arg(name, default):
    value = request.args.get(name, type=int)
    return default if value is None or value < 0 else value


@app.errorhandler(CoachError)
def handle_coach_error(exc):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.path, exc)
    return jsonify({"ok": False, "error": str(exc)}), exc.status_code


# ── Generic CRUD ──────────────────────────────────────────────────────────────

@app.route("/api/<resource>", methods=["GET", "POST"])
def collection(resource):
    repo = _repo(resource)
    if request.method == "POST":
        data = _json_body()
        creator = CREATORS.get(resource)
        item = creator(data) if creator else repo.add(**data)
        return jsonify(item.to_dict()), 201
    return jsonify([item.to_dict() for item in repo.list(**request.args.to_dict())])


@app.route("/api/<resource>/<int:item_id>", methods=["GET", "PATCH", "DELETE"])
def member(resource, item_id):
    repo = _repo(resource)
    if request.method == "DELETE":
        repo.delete(item_id)
        return jsonify({"ok": True})
    if request.method == "PATCH":
        data = _json_body()
        if resource == "pipeline" and "stage" in data:
            pipeline.update_stage(item_id, data.pop("stage"))
        if resource == "documents" and "content" in data:
            research.update_content(item_id, data.pop("content"))
        item = repo.update(item_id, **data) if data else repo.get(item_id)
        return jsonify(item.to_dict())
    return jsonify(repo.get(item_id).to_dict())


# ── Pipeline ──────────────────────────────────────────────────────────────────

@app.route("/api/pipeline/<int:item_id>/stage", methods=["POST"])
def move_pipeline_item(item_id):
    stage = _json_body().get("stage", "")
    return jsonify(pipeline.update_stage(item_id, stage).to_dict())


@app.route("/api/pipeline/summary")
def pipeline_summary():
    return jsonify({
        "stages": pipeline.stage_summary(pipeline.items.list()),
        "board": pipeline.board(),
    })


# ── Tasks ─────────────────────────────────────────────────────────────────────

@app.route("/api/tasks/<int:task_id>/toggle", methods=["POST"])
def toggle_task(task_id):
    task = tasks.get(task_id)
    if task.status == "done":
        task.status = "pending"
        task.completed_at = None
    else:
        task.status = "done"
        task.completed_at = utcnow()
    commit("toggle task")
    return jsonify(task.to_dict())


# ── Growth ────────────────────────────────────────────────────────────────────

@app.route("/api/rituals/today")
def rituals_today():
    return jsonify(growth.rituals_for_day(_parse_date(request.args.get("date"))))


@app.route("/api/rituals/<int:ritual_id>/toggle", methods=["POST"])
def toggle_ritual(ritual_id):
    data = _json_body()
    day = _parse_date(data.get("date"))
    completed = growth.toggle_ritual(ritual_id, day, data.get("notes"))
    return jsonify({"ok": True, "ritual_id": ritual_id, "date": day.isoformat(), "completed": completed})


@app.route("/api/courses/<int:course_id>/segments")
def course_segments(course_id):
    growth.courses.get(course_id)
    return jsonify({
        "segments": [s.to_dict() for s in growth.segments.list(course_id=course_id)],
        "progress": growth.course_progress(course_id),
    })


@app.route("/api/segments/<int:segment_id>/toggle", methods=["POST"])
def toggle_segment(segment_id):
    return jsonify(growth.toggle_segment(segment_id, today_local()).to_dict())


@app.route("/api/lessons/daily")
def daily_lessons():
    return jsonify([
        {"course": course.to_dict(), "segment": seg.to_dict()}
        for course, seg in growth.daily_lessons()
    ])


@app.route("/api/lessons/<int:segment_id>/complete", methods=["POST"])
def complete_lesson(segment_id):
    growth.complete_segment(segment_id, today_local())
    return daily_lessons()


@app.route("/api/goals/<int:goal_id>/status", methods=["POST"])
def goal_status(goal_id):
    status = _json_body().get("status", "")
    return jsonify(growth.update_goal_status(goal_id, status).to_dict())


@app.route("/api/reflections")
def reflection_history():
    days = _int_arg("days", 7)
    return jsonify([r.to_dict() for r in growth.reflection_history(today_local(), days)])


@app.route("/api/reflections/<day>", methods=["GET", "PUT"])
def reflection(day):
    the_day = _parse_date(day)
    if request.method == "PUT":
        saved = growth.save_reflection(the_day, **_json_body())
        return jsonify(saved.to_dict())
    found = growth.get_reflection(the_day)
    return jsonify(found.to_dict() if found else None)


@app.route("/api/usage", methods=["POST"])
def log_usage():
    data = _json_body()
    page = data.get("page")
    if not page:
        raise ValidationError("page is required")
    growth.log_usage(page, data.get("action", "page_view"), data.get("metadata"))
    return jsonify({"ok": True}), 201


@app.route("/api/usage/stats")
def usage_stats():
    return jsonify(growth.usage_stats(_int_arg("days", 7)))


@app.route("/api/profile")
def user_profile():
    return jsonify(growth.profile())


@app.route("/api/practice/stats")
def practice_stats():
    return jsonify(growth.practice_stats(practice_logs.list(), today_local()))


# ── Story captures ────────────────────────────────────────────────────────────

@app.route("/api/captures/stats")
def capture_statistics():
    return jsonify(capture_stats(captures.list(), today_local()))


@app.route("/api/captures/prompt")
def capture_prompt():
    all_captures = captures.list()
    today = today_local()
    return jsonify({
        "today_prompts": story_prompts.TODAY_PROMPTS,
        "past_prompt": story_prompts.get_prompt_by_day(story_prompts.next_past_prompt_day(all_captures)),
        "captured_today": any(c.captured_date == today for c in all_captures),
    })


@app.route("/api/captures/<int:capture_id>/promote", methods=["POST"])
def promote_capture(capture_id):
    story_id = _json_body().get("story_id")
    stories.get(story_id)
    return jsonify(captures.update(capture_id, promoted_to_story_id=story_id).to_dict())


# ── Shas tracker ──────────────────────────────────────────────────────────────

@app.route("/api/shas/masechtos")
def shas_masechtos():
    return jsonify({"seders": [{"key": k, "label": label} for k, label in shas.SEDERS],
                    "masechtos": shas.masechtos_by_seder()})


@app.route("/api/shas/progress")
def shas_progress():
    completion_type = request.args.get("type", "gemara")
    return jsonify(shas.progress_summary(completion_type).to_dict())


@app.route("/api/shas/toggle", methods=["POST"])
def shas_toggle():
    data = _json_body()
    try:
        masechta_id = int(data.get("masechta_id"))
    except (TypeError, ValueError) as exc:
        raise ValidationError("masechta_id is required") from exc
    completed = shas.toggle_completion(masechta_id, data.get("completion_type", ""), data.get("notes"))
    return jsonify({"ok": True, "completed": completed})


# ── Research ──────────────────────────────────────────────────────────────────

@app.route("/api/topics")
def topics():
    groups = research.group_topics(research.documents.list())
    filtered = research.filter_topics(
        groups,
        search=request.args.get("search", ""),
        category=request.args.get("category", "all"),
        parsha=request.args.get("parsha", "all"),
    )
    return jsonify({
        "groups": [g.to_dict() for g in filtered],
        "counts": research.category_counts(groups),
    })


@app.route("/api/topics/<topic_slug>")
def topic(topic_slug):
    return jsonify([d.to_dict() for d in research.topic_documents(topic_slug)])


@app.route("/api/documents/slug/<slug>")
def document_by_slug(slug):
    return jsonify(research.get_by_slug(slug).to_dict())


@app.route("/api/documents/<int:doc_id>/content", methods=["PUT"])
def document_content(doc_id):
    content = _json_body().get("content")
    if content is None:
        raise ValidationError("content is required")
    return jsonify(research.update_content(doc_id, content).to_dict())


@app.route("/api/documents/<int:doc_id>/comments")
def document_comments(doc_id):
    research.documents.get(doc_id)
    return jsonify([c.to_dict() for c in research.list_comments(doc_id)])


@app.route("/api/comments/<int:comment_id>/resolve", methods=["POST"])
def resolve_comment(comment_id):
    return jsonify(research.toggle_resolved(comment_id).to_dict())


@app.route("/api/documents/<int:doc_id>/quiz")
def document_quiz(doc_id):
    research.documents.get(doc_id)
    quiz = research.latest_quiz(doc_id)
    return jsonify(quiz.to_dict() if quiz else None)


@app.route("/api/documents/<int:doc_id>/send-comments", methods=["POST"])
def send_comments(doc_id):
    doc = research.documents.get(doc_id)
    slug = _json_body().get("slug") or doc.slug
    filename, count = research.export_feedback(doc_id, slug, app.config["FEEDBACK_DIR"], today_local())
    return jsonify({"success": True, "file": filename, "comment_count": count})


# ── Dashboard ─────────────────────────────────────────────────────────────────

@app.route("/api/dashboard")
def dashboard():
    now = now_local()
    today = now.date()

    ritual_day = growth.rituals_for_day(today)

    week_ago = today - timedelta(days=7)
    practice_this_week = sum(1 for log in practice_logs.list() if log.date >= week_ago)

    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    upcoming_events = [e for e in events.list() if e.start_time >= day_start][:3]

    open_tasks = [t for t in tasks.list() if t.status != "done"]
    open_tasks.sort(key=lambda t: TASK_PRIORITY_ORDER.get(t.priority, 1))

    return jsonify({
        "date": today.isoformat(),
        "rituals": {"completed": ritual_day["completed_count"], "total": ritual_day["total"]},
        "practice_this_week": practice_this_week,
        "upcoming_events": [e.to_dict() for e in upcoming_events],
        "priority_tasks": [t.to_dict() for t in open_tasks[:3]],
        "pipeline": pipeline.stage_summary(pipeline.items.list()),
        "active_goals": len(growth.active_goals()),
        "captures": capture_stats(captures.list(), today),
        "nudges": [n.to_dict() for n in nudges.build_nudges(now)],
    })


@app.route("/api/nudges")
def dashboard_nudges():
    return jsonify([n.to_dict() for n in nudges.build_nudges(now_local())])


@app.route("/api/reminders")
def due_reminders():
    now = now_local().replace(second=0, microsecond=0)
    return jsonify([r.to_dict() for r in reminders.due_reminders(now)])


# ── Imports ───────────────────────────────────────────────────────────────────

def _data_file(name):
    return os.path.join(app.config["DATA_DIR"], name)


@app.route("/api/import", methods=["POST"])
def import_content():
    return jsonify(importer.import_content(app.config["CONTENT_ROOT"]).to_dict())


@app.route("/api/import/parsha/<name>", methods=["POST"])
def import_parsha(name):
    try:
        result = importer.import_parsha(app.config["CONTENT_ROOT"], name)
    except FileNotFoundError as exc:
        raise NotFound(str(exc)) from exc
    return jsonify(result.to_dict())


@app.route("/api/import/courses", methods=["POST"])
def import_courses():
    data = _json_body()
    if "courses" not in data and "rituals" not in data:
        data = importer.load_json(_data_file("courses.json"))
    result = importer.import_courses(data.get("courses", []), data.get("rituals", []))
    return jsonify(result.to_dict())


@app.route("/api/import/stories", methods=["POST"])
def import_stories():
    data = _json_body()
    if "stories" in data:
        stories = data["stories"]
    else:
        stories = importer.load_json(_data_file("stories.json"))
    return jsonify(importer.import_stories(stories).to_dict())


# ── CLI ───────────────────────────────────────────────────────────────────────

def _cli_logging():
    setup_logging(log_dir=app.config["LOG_DIR"])


@app.cli.command("import-content")
def import_content_command():
    """Import markdown research files from CONTENT_ROOT."""
    _cli_logging()
    result = importer.import_content(app.config["CONTENT_ROOT"])
    click.echo(f"{len(result.imported)} imported, {len(result.errors)} failed")


@app.cli.command("import-parsha")
@click.argument("name")
def import_parsha_command(name):
    """Import content/parsha/<NAME> practice and research sheets."""
    _cli_logging()
    try:
        result = importer.import_parsha(app.config["CONTENT_ROOT"], name)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Done! {len(result.imported)} rows imported for {name.capitalize()}")


@app.cli.command("import-courses")
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False))
def import_courses_command(path):
    """Import courses (and rituals) from a JSON file. Defaults to data/courses.json."""
    _cli_logging()
    path = path or _data_file("courses.json")
    data = importer.load_json(path)
    result = importer.import_courses(data.get("courses", []), data.get("rituals", []))
    click.echo(f"{len(result.imported)} imported, {len(result.skipped)} skipped, {len(result.errors)} failed")


@app.cli.command("import-stories")
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False))
def import_stories_command(path):
    """Import borrowed stories from a JSON list. Defaults to data/stories.json."""
    _cli_logging()
    path = path or _data_file("stories.json")
    result = importer.import_stories(importer.load_json(path))
    click.echo(f"{len(result.imported)} imported, {len(result.skipped)} skipped, {len(result.errors)} failed")


@app.cli.command("seed-profile")
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False))
def seed_profile_command(path):
    """Upsert user profile entries from a JSON object. Defaults to data/profile.json."""
    _cli_logging()
    path = path or _data_file("profile.json")
    keys = growth.seed_profile(importer.load_json(path))
    click.echo(f"Seeded: {', '.join(keys)}")


@app.cli.command("seed-shas")
def seed_shas_command():
    """Insert or refresh the masechtos reference list."""
    _cli_logging()
    click.echo(f"{shas.seed_masechtos()} masechtos added")


@app.cli.command("remind")
@click.option("--interval", default=reminders.POLL_SECONDS, show_default=True)
def remind_command(interval):
    """Poll for ritual, event and task reminders and log them."""
    _cli_logging()
    logger.info("Reminder loop started (every %ss)", interval)
    reminders.run_reminder_loop(interval=interval)


with app.app_context():
    db.create_all()
    from sqlalchemy import inspect as sa_inspect, text as sa_text

    def _add_column_if_missing(table, column, col_def):
        cols = [c["name"] for c in sa_inspect(db.engine).get_columns(table)]
        if column not in cols:
            with db.engine.connect() as _conn:
                _conn.execute(sa_text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))
                _conn.commit()

    _add_column_if_missing("research_documents", "topic_slug", "topic_slug VARCHAR(255)")
    _add_column_if_missing("pipeline_items", "document_slug", "document_slug VARCHAR(255)")
    _add_column_if_missing("stories", "setup", "setup TEXT")
    _add_column_if_missing("stories", "core_point", "core_point TEXT")
    _add_column_if_missing("stories", "gemara_reference", "gemara_reference VARCHAR(100)")
    _add_column_if_missing("story_captures", "promoted_to_story_id",
                           "promoted_to_story_id INTEGER REFERENCES stories(id)")
    if shas.ShasMasechta.query.first() is None:
        shas.seed_masechtos()

if __name__ == "__main__":
    setup_logging(log_dir=app.config["LOG_DIR"])
    app.run(debug=True)
