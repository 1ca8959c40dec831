"""Member model: the primary write of every join experiment."""

from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from membertx.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class Member(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A registered member.

    Fields
    ------
    username : str
        Unique display name, stored trimmed.
    created_at : datetime
        Creation timestamp (from mixin).
    updated_at : datetime
        Update timestamp (from mixin).
    """

    __tablename__ = "members"

    username: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    __table_args__ = (UniqueConstraint("username", name="uq_members_username"),)

    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        """
        Normalize and validate the username.

        :raises ValueError: If the username is missing or only whitespace.
        """
        if not isinstance(value, str):
            raise ValueError("Username is required.")
        v = value.strip()
        if not v:
            raise ValueError("Username is required.")
        return v
