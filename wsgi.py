"""
PythonAnywhere WSGI entry point.

In the PythonAnywhere Web tab:
  - Source code:    /home/<your-username>/coach-hub
  - Working dir:    /home/<your-username>/coach-hub
  - WSGI file:      /home/<your-username>/coach-hub/wsgi.py
  - Virtualenv:     /home/<your-username>/coach-hub/.venv

Set CONTENT_ROOT in the WSGI file's environment if the content tree is not
the project's parent directory.
"""
import sys
import os

# Make sure the project directory is on the path
project_dir = os.path.dirname(os.path.abspath(__file__))
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

from app import app as application  # noqa: F401  (PythonAnywhere looks for 'application')
from logging_setup import setup_logging

setup_logging(log_dir=application.config["LOG_DIR"])
