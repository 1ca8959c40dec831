"""
Units of work and the transaction contexts they run in.

A :class:`TransactionContext` is one physical transaction: it owns exactly one
SQLAlchemy session and the ordered list of units that share it. The unit that
opened the context is its *owner*; only the owner finalises it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from membertx.tx.errors import IllegalTransactionStateError, UnexpectedRollbackError
from membertx.tx.propagation import Outcome, Propagation, TxState

log = logging.getLogger(__name__)

T = TypeVar("T")

_TRANSITIONS: dict[TxState, frozenset[TxState]] = {
    TxState.ACTIVE: frozenset({TxState.COMMITTING, TxState.ROLLBACK_ONLY, TxState.ROLLED_BACK}),
    TxState.COMMITTING: frozenset({TxState.COMMITTED, TxState.ROLLED_BACK}),
    TxState.ROLLBACK_ONLY: frozenset({TxState.ROLLED_BACK}),
    TxState.COMMITTED: frozenset(),
    TxState.ROLLED_BACK: frozenset(),
}


@dataclass(eq=False)
class UnitOfWork(Generic[T]):
    """
    A named operation performing persistence writes through a context.

    :param name: Human-readable identifier (e.g. ``"member.save"``).
    :type name: str
    :param body: Callable receiving the context it runs in.
    :type body: Callable[[TransactionContext], T]
    :param propagation: How the unit relates to its caller's context.
    :type propagation: Propagation
    """

    name: str
    body: Callable[[TransactionContext], T]
    propagation: Propagation = Propagation.REQUIRED
    outcome: Outcome = field(default=Outcome.PENDING, init=False)
    result: T | None = field(default=None, init=False)
    error: BaseException | None = field(default=None, init=False, repr=False)
    context: TransactionContext | None = field(default=None, init=False, repr=False)


@dataclass(frozen=True, slots=True)
class OutcomeRecord:
    """Final state of one unit, emitted when its context terminates."""

    unit: str
    context_id: str
    propagation: Propagation
    outcome: Outcome


class TransactionContext:
    """
    One physical transaction shared by every ``REQUIRED`` participant.

    Parameters
    ----------
    session:
        SQLAlchemy session exclusively owned by this context. It is closed
        when the context reaches a terminal state.
    owner:
        Unit that opened the context; the only one allowed to finalise it.
    parent:
        Caller context that was active when a ``REQUIRES_NEW`` unit opened
        this one. Kept for diagnostics; the two never share fate.

    Notes
    -----
    Invariant: all enlisted units end with the same outcome as the context.
    """

    def __init__(
        self,
        session: Session,
        *,
        owner: UnitOfWork[Any],
        parent: TransactionContext | None = None,
    ) -> None:
        self.id = uuid4().hex[:12]
        self.session = session
        self.owner = owner
        self.parent = parent
        self.state = TxState.ACTIVE
        self.units: list[UnitOfWork[Any]] = []
        self.rollback_cause: BaseException | None = None
        self.records: list[OutcomeRecord] = []

    def __repr__(self) -> str:
        return f"<TransactionContext id={self.id} state={self.state.value} units={len(self.units)}>"

    # ------------------------------ State ------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def is_rollback_only(self) -> bool:
        return self.state is TxState.ROLLBACK_ONLY

    def _transition(self, target: TxState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise IllegalTransactionStateError(
                f"Transaction {self.id} cannot move from {self.state.value} to {target.value}."
            )
        self.state = target

    # ---------------------------- Participants -------------------------------

    def enlist(self, unit: UnitOfWork[Any]) -> None:
        """Register ``unit`` as a participant.

        :raises IllegalTransactionStateError: If the context already terminated.
        """
        if self.is_terminal:
            raise IllegalTransactionStateError(
                f"Cannot join transaction {self.id}: it is already {self.state.value}."
            )
        unit.context = self
        self.units.append(unit)

    def mark_rollback_only(self, cause: BaseException | None = None) -> None:
        """Doom the context: any later commit attempt will fail.

        The first cause is kept; repeated marking is a no-op.
        """
        if self.is_rollback_only:
            return
        self._transition(TxState.ROLLBACK_ONLY)
        self.rollback_cause = cause
        log.debug(
            "tx.rollback_only",
            extra={"tx_id": self.id, "unit": self.owner.name, "outcome": repr(cause)},
        )

    # ----------------------------- Finalisation ------------------------------

    def commit(self) -> None:
        """Commit the physical transaction.

        :raises UnexpectedRollbackError: If the context was marked rollback-only;
            the transaction is rolled back instead.
        :raises SQLAlchemyError: If the database rejects the commit; the
            transaction is rolled back before re-raising.
        """
        if self.is_rollback_only:
            cause = self.rollback_cause
            self.rollback()
            log.warning(
                "tx.unexpected_rollback",
                extra={"tx_id": self.id, "unit": self.owner.name},
            )
            raise UnexpectedRollbackError(self.id, cause) from cause

        self._transition(TxState.COMMITTING)
        try:
            self.session.commit()
        except SQLAlchemyError:
            log.error("tx.commit_failed", extra={"tx_id": self.id}, exc_info=True)
            try:
                self.session.rollback()
            finally:
                self._finish(TxState.ROLLED_BACK)
            raise
        self._finish(TxState.COMMITTED)

    def rollback(self) -> None:
        """Discard every write staged in this context."""
        try:
            self.session.rollback()
        finally:
            self._finish(TxState.ROLLED_BACK)

    def _finish(self, state: TxState) -> None:
        self._transition(state)
        outcome = Outcome.COMMITTED if state is TxState.COMMITTED else Outcome.ROLLED_BACK
        for unit in self.units:
            unit.outcome = outcome
        self.records = [
            OutcomeRecord(
                unit=unit.name,
                context_id=self.id,
                propagation=unit.propagation,
                outcome=unit.outcome,
            )
            for unit in self.units
        ]
        self.session.close()
        log.debug(
            "tx.finished",
            extra={"tx_id": self.id, "unit": self.owner.name, "outcome": outcome.value},
        )
