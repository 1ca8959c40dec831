"""Propagation modes and the state vocabularies of units and contexts."""

from __future__ import annotations

from enum import Enum


class Propagation(str, Enum):
    """How a unit of work relates to the transaction of its caller.

    ``REQUIRED``
        Join the caller's context; start a new one when there is none.
        A failure dooms the whole shared context.
    ``REQUIRES_NEW``
        Always start an independent context. Its commit or rollback never
        affects the caller, and the caller's fate never affects it.
    """

    REQUIRED = "required"
    REQUIRES_NEW = "requires_new"


class Outcome(str, Enum):
    """Per-unit state: ``pending`` until the body finishes, then final."""

    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TxState(str, Enum):
    """Lifecycle of a transaction context.

    ``active -> (committing | rollback_only) -> committed | rolled_back``.
    An owner that raises moves ``active`` straight to ``rolled_back``.
    """

    ACTIVE = "active"
    COMMITTING = "committing"
    ROLLBACK_ONLY = "rollback_only"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"

    @property
    def is_terminal(self) -> bool:
        return self in (TxState.COMMITTED, TxState.ROLLED_BACK)
