"""Generic entity repository.

One ``Repository`` per model replaces the per-entity fetch/add/toggle/delete
boilerplate: every CRUD surface in the app goes through ``list``, ``get``,
``add``, ``update``, ``toggle`` and ``delete`` here, and database failures
surface as ``RepositoryError`` after the session has been rolled back.
"""
import logging
from datetime import date, datetime

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError

from models import db, utcnow

logger = logging.getLogger(__name__)


class CoachError(Exception):
    """Base class for errors the API reports back to the caller."""

    status_code = 500


class NotFound(CoachError):
    status_code = 404


class ValidationError(CoachError):
    status_code = 400


class RepositoryError(CoachError):
    status_code = 500


def commit(action="commit"):
    """Commit the current session, rolling back and raising RepositoryError on failure."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database %s failed", action)
        raise RepositoryError(f"{action} failed: {getattr(exc, 'orig', exc)}") from exc


def _coerce(column, value):
    """Turn JSON-ish input (ISO strings, "1"/"0") into the column's Python type."""
    if value is None or value == "":
        return None if column.nullable else value
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    try:
        if python_type is datetime:
            return datetime.fromisoformat(value)
        if python_type is date:
            return date.fromisoformat(value)
        if python_type is bool:
            if isinstance(value, str):
                return value.strip().lower() in {"1", "true", "yes", "on"}
            return bool(value)
        if python_type in (int, float):
            return python_type(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid value for {column.name}: {value!r}") from exc
    return value


class Repository:
    """CRUD over one model, ordered by a default column."""

    def __init__(self, model, order_by=None, ascending=False):
        self.model = model
        self.order_by = order_by
        self.ascending = ascending
        self._columns = {
            attr.key: attr.columns[0] for attr in sa_inspect(model).column_attrs
        }

    def __repr__(self):
        return f"<Repository {self.model.__name__}>"

    @property
    def name(self):
        return self.model.__name__

    def _clean(self, fields):
        unknown = sorted(k for k in fields if k not in self._columns or k == "id")
        if unknown:
            raise ValidationError(f"Unknown field(s) for {self.name}: {', '.join(unknown)}")
        return {k: _coerce(self._columns[k], v) for k, v in fields.items()}

    def query(self, **filters):
        q = self.model.query.filter_by(**self._clean(filters))
        if self.order_by:
            col = getattr(self.model, self.order_by)
            q = q.order_by(col.asc() if self.ascending else col.desc(), self.model.id.asc())
        return q

    def list(self, **filters):
        return self.query(**filters).all()

    def get(self, item_id):
        item = db.session.get(self.model, item_id)
        if item is None:
            raise NotFound(f"{self.name} #{item_id} not found")
        return item

    def add(self, **fields):
        item = self.model(**self._clean(fields))
        db.session.add(item)
        commit(f"insert {self.name}")
        logger.debug("Added %r", item)
        return item

    def update(self, item_id, **fields):
        item = self.get(item_id)
        for key, value in self._clean(fields).items():
            setattr(item, key, value)
        if "updated_at" in self._columns and "updated_at" not in fields:
            item.updated_at = utcnow()
        commit(f"update {self.name}")
        return item

    def toggle(self, item_id, field):
        column = self._columns.get(field)
        if column is None or column.type.python_type is not bool:
            raise ValidationError(f"{self.name}.{field} is not a boolean field")
        item = self.get(item_id)
        setattr(item, field, not getattr(item, field))
        commit(f"toggle {self.name}.{field}")
        return item

    def delete(self, item_id):
        item = self.get(item_id)
        db.session.delete(item)
        commit(f"delete {self.name}")
