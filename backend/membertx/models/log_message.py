"""Audit log entry written alongside a member join."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from membertx.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin


class LogMessage(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """Free-form message recorded by the join use case."""

    __tablename__ = "log_messages"

    message: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
