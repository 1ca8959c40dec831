"""Convenience exports for application schemas."""

from __future__ import annotations

from .common import PaginationQuerySchema, build_meta
from .member import (
    JoinRequestSchema,
    LogFilterSchema,
    LogMessageSchema,
    MemberCreateSchema,
    MemberFilterSchema,
    MemberSchema,
    ScenarioSchema,
)

__all__ = [
    "PaginationQuerySchema",
    "build_meta",
    "JoinRequestSchema",
    "LogFilterSchema",
    "LogMessageSchema",
    "MemberCreateSchema",
    "MemberFilterSchema",
    "MemberSchema",
    "ScenarioSchema",
]
