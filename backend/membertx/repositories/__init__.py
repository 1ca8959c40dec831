"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from membertx.repositories.base import (
    BaseRepository,
    Page,
    Pagination,
    paginate_select,
    parse_sort_tokens,
)
from membertx.repositories.log import LogRepository
from membertx.repositories.member import MemberRepository

__all__ = [
    # Base
    "BaseRepository",
    "Page",
    "Pagination",
    "paginate_select",
    "parse_sort_tokens",
    # Domain
    "LogRepository",
    "MemberRepository",
]
