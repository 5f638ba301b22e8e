# tests/conftest.py

from __future__ import annotations

import os
import tempfile
from datetime import datetime

import pytest

# App config is read at import time, so the environment goes first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TZ_OFFSET_HOURS"] = "0"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="coach-hub-logs-"))

import app as app_module  # noqa: E402
import shas  # noqa: E402
from models import db  # noqa: E402


@pytest.fixture()
def app(tmp_path):
    """
    The Flask app with a fresh in-memory schema and the masechtos seeded.

    The app context stays pushed for the whole test so module functions
    can be called directly.
    """
    flask_app = app_module.app
    flask_app.config.update(
        TESTING=True,
        CONTENT_ROOT=str(tmp_path),
        FEEDBACK_DIR=str(tmp_path / "coaching" / "feedback"),
    )
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        shas.seed_masechtos()
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def now() -> datetime:
    """A fixed local wall-clock time: Monday morning."""
    return datetime(2026, 3, 2, 10, 0)
