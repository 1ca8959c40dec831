"""API v1 blueprint package bundling versioned routes."""

from __future__ import annotations

from flask import Blueprint

API_VERSION = "v1"

# Import blueprints *only here* to keep imports localized and avoid cycles.
from .health import bp as health_bp  # noqa: E402
from .logs import bp as logs_bp  # noqa: E402
from .members import bp as members_bp  # noqa: E402
from .scenarios import bp as scenarios_bp  # noqa: E402

# Each tuple: (blueprint, url_prefix_relative_to_version)
REGISTRY: list[tuple[Blueprint, str]] = [
    (health_bp, ""),  # -> /api/v1
    (members_bp, "/members"),
    (logs_bp, "/logs"),
    (scenarios_bp, "/scenarios"),
]
