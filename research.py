"""Research documents: markdown sections, topic groups, comments and feedback export."""
import logging
import os
import re
from dataclasses import dataclass, field

from models import ResearchDocument, Comment, Quiz
from repository import Repository, NotFound, ValidationError

logger = logging.getLogger(__name__)

CATEGORIES = ("mitzvah", "course", "draft", "speech", "parsha")
STATUS_ORDER = ["research", "prep", "session", "practice", "complete"]
STATUS_LABELS = {
    "research": "Research",
    "prep":     "Prep",
    "session":  "Session",
    "practice": "Practice",
    "complete": "Complete",
}
COMMENT_TYPES = ("note", "needs-research", "simplify", "add-story", "great", "question")

documents = Repository(ResearchDocument, order_by="updated_at", ascending=False)
comments = Repository(Comment, order_by="created_at", ascending=True)

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+)")
_TITLE_RE = re.compile(r"^#\s+(.+)", re.MULTILINE)
_TITLE_PREFIX_RE = re.compile(r"^(Practice Sheet|Research):\s*", re.IGNORECASE)
_TITLE_SUBTITLE_RE = re.compile(r"\s+[—–-]\s*.+$")


# ── Markdown helpers ──────────────────────────────────────────────────────────

def _section_id(title):
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug)


def generate_slug(title):
    return _section_id(title).strip("-")


def parse_sections(content):
    """Split markdown into heading sections with 0-based inclusive line ranges."""
    lines = content.split("\n")
    sections = []
    current = None
    for i, line in enumerate(lines):
        m = _HEADING_RE.match(line)
        if not m:
            continue
        if current is not None:
            current["end_line"] = i - 1
            sections.append(current)
        title = m.group(2).strip()
        current = {
            "id": _section_id(title),
            "title": title,
            "level": len(m.group(1)),
            "start_line": i,
        }
    if current is not None:
        current["end_line"] = len(lines) - 1
        sections.append(current)
    return sections


def extract_title(content, fallback=None):
    """First level-1 heading without its subtitle or a "Research:" style prefix."""
    m = _TITLE_RE.search(content)
    if not m:
        return fallback
    title = _TITLE_PREFIX_RE.sub("", m.group(1).strip())
    title = _TITLE_SUBTITLE_RE.sub("", title).strip()
    return title or fallback


# ── Documents ─────────────────────────────────────────────────────────────────

def create_document(title, category, content=""):
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown category: {category!r}")
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    slug = generate_slug(title)
    if not slug:
        raise ValidationError("Title must contain letters or digits.")
    if ResearchDocument.query.filter_by(slug=slug).first():
        raise ValidationError(f"A document with slug {slug!r} already exists.")
    content = content or f"# {title}\n\n"
    return documents.add(title=title, slug=slug, category=category, content=content,
                         sections=parse_sections(content), status="research")


def get_by_slug(slug):
    doc = ResearchDocument.query.filter_by(slug=slug).first()
    if doc is None:
        raise NotFound(f"Document {slug!r} not found")
    return doc


def update_content(doc_id, content):
    return documents.update(doc_id, content=content, sections=parse_sections(content))


def topic_documents(topic_slug):
    docs = ResearchDocument.query.filter_by(topic_slug=topic_slug).all()
    return sorted(docs, key=_status_rank)


def latest_quiz(document_id):
    return (Quiz.query
            .filter_by(document_id=document_id)
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .first())


# ── Topic groups ──────────────────────────────────────────────────────────────

@dataclass
class TopicGroup:
    topic_slug: str
    title: str
    category: str
    updated_at: object
    documents: list = field(default_factory=list)

    def to_dict(self):
        return {
            "topic_slug": self.topic_slug,
            "title": self.title,
            "category": self.category,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "documents": [d.to_dict() for d in self.documents],
        }


def _status_rank(doc):
    try:
        return STATUS_ORDER.index(doc.status)
    except ValueError:
        return len(STATUS_ORDER)


def group_topics(docs):
    """Collapse documents sharing a topic slug into one group per topic.

    Documents without a topic slug form a group of their own keyed by slug.
    The research document (else the first one seen) supplies the title and
    category; groups are ordered by their most recent update.
    """
    grouped = {}
    for doc in docs:
        grouped.setdefault(doc.topic_slug or doc.slug, []).append(doc)

    groups = []
    for topic_slug, members in grouped.items():
        primary = next((d for d in members if d.status == "research"), members[0])
        groups.append(TopicGroup(
            topic_slug=topic_slug,
            title=primary.title,
            category=primary.category,
            updated_at=max(d.updated_at for d in members),
            documents=sorted(members, key=_status_rank),
        ))
    groups.sort(key=lambda g: g.updated_at, reverse=True)
    return groups


def filter_topics(groups, search="", category="all", parsha="all"):
    needle = (search or "").lower()
    out = []
    for g in groups:
        if needle and needle not in g.title.lower() and not any(
            needle in d.title.lower() for d in g.documents
        ):
            continue
        if category and category != "all" and g.category != category:
            continue
        if category == "parsha" and parsha and parsha != "all":
            if not g.topic_slug.lower().startswith(parsha.lower()):
                continue
        out.append(g)
    return out


def category_counts(groups):
    counts = {"all": len(groups)}
    for g in groups:
        counts[g.category] = counts.get(g.category, 0) + 1
    return counts


# ── Comments ──────────────────────────────────────────────────────────────────

def add_comment(document_id, section_id, content, comment_type="note"):
    if comment_type not in COMMENT_TYPES:
        raise ValidationError(f"Unknown comment type: {comment_type!r}")
    if not content or not content.strip():
        raise ValidationError("Comment cannot be empty.")
    documents.get(document_id)
    return comments.add(document_id=document_id, section_id=section_id,
                        content=content.strip(), comment_type=comment_type)


def list_comments(document_id):
    return comments.list(document_id=document_id)


def toggle_resolved(comment_id):
    return comments.toggle(comment_id, "resolved")


def _section_label(section_id):
    return re.sub(r"\b\w", lambda m: m.group().upper(), section_id.replace("-", " "))


def render_feedback(doc, open_comments, slug, today):
    """Markdown summary of open comments, one block per section."""
    grouped = {}
    for c in open_comments:
        grouped.setdefault(c.section_id, []).append(c)

    lines = [
        f"# Feedback for: {doc.title}",
        f"**File type:** {doc.status}",
        f"**Slug:** {slug}",
        f"**Date:** {today.isoformat()}",
        "",
        "---",
        "",
        "## Open Comments",
        "",
        "Please review and apply the following feedback to the source file.",
        "",
    ]
    for section_id, items in grouped.items():
        lines.append(f"### Section: {_section_label(section_id)}")
        lines.append("")
        lines.extend(f"- **[{c.comment_type}]** {c.content}" for c in items)
        lines.append("")
    lines += ["---", "", f"*Open comments for {doc.title}; resolve them once applied.*", ""]
    return "\n".join(lines)


def export_feedback(doc_id, slug, feedback_dir, today):
    """Write open comments for a document to ``<feedback_dir>/<slug>-comments.md``.

    The slug is reduced to ``[a-z0-9-]`` so the file always lands inside
    ``feedback_dir``. Returns (filename, comment count).
    """
    slug = generate_slug(slug or "")
    if not slug:
        raise ValidationError("Slug must contain letters or digits.")
    doc = documents.get(doc_id)
    open_comments = (Comment.query
                     .filter_by(document_id=doc.id, resolved=False)
                     .order_by(Comment.created_at.asc(), Comment.id.asc())
                     .all())
    if not open_comments:
        raise ValidationError("No open comments to send")

    os.makedirs(feedback_dir, exist_ok=True)
    filename = f"{slug}-comments.md"
    with open(os.path.join(feedback_dir, filename), "w", encoding="utf-8") as f:
        f.write(render_feedback(doc, open_comments, slug, today))
    logger.info("Wrote %d comment(s) for %s to %s", len(open_comments), slug, filename)
    return filename, len(open_comments)
