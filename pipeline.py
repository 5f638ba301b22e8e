"""Content pipeline: speeches and shiurim moving from idea to delivery."""
import logging

from models import PipelineItem, utcnow
from repository import Repository, ValidationError, commit

logger = logging.getLogger(__name__)

STAGES = [
    ("idea",      "Idea"),
    ("research",  "Research"),
    ("draft",     "Draft"),
    ("practice",  "Practice"),
    ("ready",     "Ready"),
    ("delivered", "Delivered"),
]
STAGE_KEYS = [key for key, _ in STAGES]

items = Repository(PipelineItem, order_by="updated_at", ascending=False)


def add_item(title, content_type=None, **extra):
    """New items always enter the pipeline at the idea stage."""
    if not title or not title.strip():
        raise ValidationError("Title is required.")
    extra.pop("stage", None)
    return items.add(title=title.strip(), content_type=content_type, stage="idea", **extra)


def update_stage(item_id, stage):
    """Move an item to any stage; there is no ordering between stages."""
    if stage not in STAGE_KEYS:
        raise ValidationError(f"Unknown stage: {stage!r}")
    item = items.get(item_id)
    previous = item.stage
    item.stage = stage
    item.updated_at = utcnow()
    commit("update pipeline stage")
    logger.info("Pipeline item #%s moved %s -> %s", item_id, previous, stage)
    return item


def items_in_stage(pipeline_items, stage):
    return [item for item in pipeline_items if item.stage == stage]


def stage_summary(pipeline_items):
    """[{stage, label, count}] in pipeline order."""
    counts = {key: 0 for key in STAGE_KEYS}
    for item in pipeline_items:
        if item.stage in counts:
            counts[item.stage] += 1
    return [{"stage": key, "label": label, "count": counts[key]} for key, label in STAGES]


def board():
    """Every item, bucketed by stage, most recently updated first."""
    all_items = items.list()
    return {key: [i.to_dict() for i in items_in_stage(all_items, key)] for key in STAGE_KEYS}
