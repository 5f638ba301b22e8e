# tests/test_repository.py

from __future__ import annotations

from datetime import date, datetime

import pytest

from models import CalendarEvent, Goal, Task
from repository import NotFound, Repository, ValidationError


def test_list_orders_by_default_column(app) -> None:
    events = Repository(CalendarEvent, order_by="start_time", ascending=True)
    events.add(title="Later", start_time="2026-03-05T19:00:00")
    events.add(title="Sooner", start_time=datetime(2026, 3, 3, 9, 0))

    assert [e.title for e in events.list()] == ["Sooner", "Later"]


def test_add_coerces_iso_strings(app) -> None:
    tasks = Repository(Task)
    task = tasks.add(title="Call the rav", due_date="2026-03-04", priority="high")

    assert task.due_date == date(2026, 3, 4)
    assert task.status == "pending"


def test_unknown_fields_are_rejected(app) -> None:
    tasks = Repository(Task)
    with pytest.raises(ValidationError):
        tasks.add(title="x", colour="blue")
    with pytest.raises(ValidationError):
        tasks.add(id=5, title="x")


def test_get_missing_raises_not_found(app) -> None:
    with pytest.raises(NotFound):
        Repository(Task).get(999)


def test_filters_use_column_types(app) -> None:
    tasks = Repository(Task)
    tasks.add(title="a", priority="high")
    tasks.add(title="b", priority="low")

    assert [t.title for t in tasks.list(priority="low")] == ["b"]


def test_update_bumps_updated_at(app) -> None:
    goals = Repository(Goal, order_by="sort_order", ascending=True)
    goal = goals.add(title="Daf yomi", updated_at=datetime(2020, 1, 1))

    updated = goals.update(goal.id, title="Daf yomi with Tosafos")

    assert updated.title == "Daf yomi with Tosafos"
    assert updated.updated_at > datetime(2020, 1, 1)


def test_toggle_only_boolean_fields(app) -> None:
    from models import Ritual

    rituals = Repository(Ritual)
    ritual = rituals.add(name="Modeh Ani")
    assert rituals.toggle(ritual.id, "active").active is False

    with pytest.raises(ValidationError):
        rituals.toggle(ritual.id, "name")


def test_delete(app) -> None:
    tasks = Repository(Task)
    task = tasks.add(title="gone")
    tasks.delete(task.id)

    with pytest.raises(NotFound):
        tasks.get(task.id)
