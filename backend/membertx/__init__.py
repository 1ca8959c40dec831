"""Expose the application factory at package level.

``from membertx import create_app`` is all a WSGI server or the Flask CLI
needs (``flask --app membertx ...``).
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
