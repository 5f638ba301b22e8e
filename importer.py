"""Bulk import of local content into the database.

Markdown research files, parsha practice sheets, course definitions and
borrowed stories are upserted row by row. Imports are best-effort: a failing
file is recorded in the result and the batch continues.
"""
import json
import logging
import os
from dataclasses import dataclass, field, asdict

from sqlalchemy.exc import SQLAlchemyError

from models import db, ResearchDocument, PipelineItem, Course, CourseSegment, Ritual, Story
from repository import RepositoryError, ValidationError, commit
from research import extract_title, generate_slug, parse_sections

logger = logging.getLogger(__name__)

# File stem -> document status; anything else is treated as research
STATUS_MAP = {
    "research": "research",
    "prep": "prep",
    "session": "session",
    "practice": "practice",
}


@dataclass
class ImportResult:
    imported: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    errors: list = field(default_factory=list)

    def to_dict(self):
        return asdict(self)

    def log_summary(self, label):
        logger.info("%s: %d imported, %d skipped, %d failed",
                    label, len(self.imported), len(self.skipped), len(self.errors))


# ----------------------------
# Helpers
# ----------------------------
def load_json(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _read(path):
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _markdown_files(folder):
    return sorted(
        f for f in os.listdir(folder)
        if f.endswith(".md") and not f.endswith("-print.md")
    )


def upsert_document(slug, **fields):
    """Insert or update the research document with this slug; sections follow content."""
    doc = ResearchDocument.query.filter_by(slug=slug).first()
    if doc is None:
        doc = ResearchDocument(slug=slug)
        db.session.add(doc)
    for key, value in fields.items():
        setattr(doc, key, value)
    doc.sections = parse_sections(doc.content or "")
    commit(f"upsert document {slug}")
    return doc


# ----------------------------
# Research content tree
# ----------------------------
def _import_folder_tree(base_dir, category, result):
    """One sub-folder per topic; each markdown file inside is one status of it."""
    if not os.path.isdir(base_dir):
        return
    for name in sorted(os.listdir(base_dir)):
        folder = os.path.join(base_dir, name)
        if not os.path.isdir(folder):
            continue
        for file in _markdown_files(folder):
            stem = file[:-3]
            status = STATUS_MAP.get(stem, "research")
            try:
                content = _read(os.path.join(folder, file))
                label = name.replace("-", " ")
                suffix = f" - {status}" if status != "research" else ""
                title = extract_title(content) or f"{label}{suffix}"
                slug = generate_slug(f"{name}-{status}" if status != "research" else name)
                upsert_document(slug, title=title, category=category, content=content,
                                status=status, topic_slug=name)
                result.imported.append(f"{category} {status}: {name}")
            except (OSError, UnicodeDecodeError, RepositoryError) as exc:
                logger.warning("Failed to import %s/%s: %s", name, file, exc)
                result.errors.append(f"{category} {name} {stem}: {exc}")


def import_content(root):
    """Import content/mitzvos, content/drafts and courses under ``root``."""
    result = ImportResult()

    _import_folder_tree(os.path.join(root, "content", "mitzvos"), "mitzvah", result)

    drafts_dir = os.path.join(root, "content", "drafts")
    if os.path.isdir(drafts_dir):
        for draft in sorted(f for f in os.listdir(drafts_dir) if f.endswith(".md")):
            stem = draft[:-3]
            try:
                content = _read(os.path.join(drafts_dir, draft))
                title = extract_title(content) or stem.replace("-", " ")
                upsert_document(generate_slug(stem), title=title, category="draft",
                                content=content, status="research")
                result.imported.append(f"draft: {draft}")
            except (OSError, UnicodeDecodeError, RepositoryError) as exc:
                logger.warning("Failed to import draft %s: %s", draft, exc)
                result.errors.append(f"draft {draft}: {exc}")

    _import_folder_tree(os.path.join(root, "courses"), "course", result)

    result.log_summary("Content import")
    return result


# ----------------------------
# Parsha practice sheets
# ----------------------------
def _group_parsha_files(files):
    """{base name: {"practice": file, "research": file}} for practice-*/research-* files."""
    groups = {}
    for f in files:
        if f.startswith("practice-"):
            base = f[len("practice-"):-3]
            groups.setdefault(base, {})["practice"] = f
    for f in files:
        if not f.startswith("research-"):
            continue
        base = f[len("research-"):-3]
        match = next((key for key in groups if key in base or base in key), None)
        groups.setdefault(match or base, {})["research"] = f
    return groups


def import_parsha(root, parsha):
    """Import one parsha folder as topic groups plus a pipeline item per topic."""
    parsha = parsha.lower()
    parsha_dir = os.path.join(root, "content", "parsha", parsha)
    if not os.path.isdir(parsha_dir):
        raise FileNotFoundError(f"Parsha folder not found: {parsha_dir}")

    files = sorted(f for f in os.listdir(parsha_dir) if f.endswith(".md"))
    groups = _group_parsha_files(files)
    if not groups:
        raise FileNotFoundError(f"No practice-*.md or research-*.md files found in {parsha_dir}")

    result = ImportResult()
    label = parsha.capitalize()
    for base, group in groups.items():
        topic_slug = f"{parsha}-{base}"
        titles = {}
        for status in ("practice", "research"):
            file = group.get(status)
            if not file:
                continue
            slug = f"{topic_slug}-practice" if status == "practice" else topic_slug
            try:
                content = _read(os.path.join(parsha_dir, file))
                titles[status] = f"{label} - {extract_title(content, base)}"
                upsert_document(slug, title=titles[status], category="parsha",
                                content=content, status=status, topic_slug=topic_slug)
                result.imported.append(f"{slug} ({status})")
            except (OSError, UnicodeDecodeError, RepositoryError) as exc:
                logger.warning("Failed to import %s: %s", file, exc)
                result.errors.append(f"{slug}: {exc}")

        document_slug = f"{topic_slug}-practice" if "practice" in group else topic_slug
        title = titles.get("practice") or titles.get("research")
        if title is None:
            continue
        if PipelineItem.query.filter_by(document_slug=document_slug).first():
            result.skipped.append(f"pipeline: {title}")
            continue
        doc = ResearchDocument.query.filter_by(slug=document_slug).first()
        try:
            db.session.add(PipelineItem(
                title=title,
                content_type="speech",
                stage="practice" if "practice" in group else "research",
                description=f"Parsha {label}",
                document_slug=document_slug,
                document_id=doc.id if doc else None,
            ))
            commit("insert pipeline item")
            result.imported.append(f"pipeline: {title}")
        except RepositoryError as exc:
            result.errors.append(f"pipeline {title}: {exc}")

    result.log_summary(f"Parsha {label}")
    return result


# ----------------------------
# Courses and rituals
# ----------------------------
def import_course(course):
    """Create or refresh a course by title and replace its segments."""
    title = course.get("title")
    if not title:
        raise ValidationError("Course title is required.")
    segs = course.get("segments", [])
    row = Course.query.filter_by(title=title).first()
    if row is None:
        row = Course(title=title)
        db.session.add(row)
    else:
        CourseSegment.query.filter_by(course_id=row.id).delete()
    row.description = course.get("description")
    row.source_type = course.get("source_type")
    row.total_segments = len(segs)
    try:
        db.session.flush()  # assigns PK for new courses
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise RepositoryError(f"import course {title} failed: {getattr(exc, 'orig', exc)}") from exc
    for number, seg in enumerate(segs, start=1):
        db.session.add(CourseSegment(course_id=row.id, segment_number=number,
                                     title=seg.get("title"), content=seg.get("content", ""),
                                     completed=False))
    commit(f"import course {title}")
    return {"course_id": row.id, "title": row.title, "segments": len(segs)}


def import_courses(courses, rituals=()):
    """Import course definitions, then add any rituals not already present by name."""
    result = ImportResult()
    for course in courses:
        try:
            info = import_course(course)
            result.imported.append(f"course: {info['title']} ({info['segments']} segments)")
        except (ValidationError, RepositoryError) as exc:
            db.session.rollback()
            logger.warning("Failed to import course %r: %s", course.get("title"), exc)
            result.errors.append(f"course {course.get('title')}: {exc}")

    for ritual in rituals:
        name = ritual.get("name")
        if not name:
            logger.warning("Skipping ritual without a name: %r", ritual)
            result.errors.append("ritual: name is required")
            continue
        if Ritual.query.filter_by(name=name).first():
            result.skipped.append(f"ritual: {name}")
            continue
        try:
            db.session.add(Ritual(**ritual))
            commit(f"insert ritual {name}")
            result.imported.append(f"ritual: {name}")
        except (TypeError, RepositoryError) as exc:
            db.session.rollback()
            logger.warning("Failed to import ritual %r: %s", name, exc)
            result.errors.append(f"ritual {name}: {exc}")

    result.log_summary("Course import")
    return result


# ----------------------------
# Borrowed stories
# ----------------------------
def import_stories(stories):
    """Insert stories whose title is not already in the bank."""
    result = ImportResult()
    for story in stories:
        title = story.get("title")
        if not title or not story.get("content"):
            result.errors.append(f"story {title!r}: title and content are required")
            continue
        if Story.query.filter_by(title=title).first():
            result.skipped.append(title)
            continue
        try:
            db.session.add(Story(**story))
            commit(f"insert story {title}")
            result.imported.append(title)
        except (TypeError, RepositoryError) as exc:
            db.session.rollback()
            result.errors.append(f"story {title}: {exc}")
    result.log_summary("Story import")
    return result
