"""
Unit tests for TransactionContext state transitions.
"""

from __future__ import annotations

import pytest
from membertx.tx import (
    IllegalTransactionStateError,
    Outcome,
    TransactionContext,
    TxState,
    UnexpectedRollbackError,
    UnitOfWork,
)


@pytest.fixture()
def context(session):
    owner = UnitOfWork("owner", lambda ctx: None)
    ctx = TransactionContext(session, owner=owner)
    ctx.enlist(owner)
    return ctx


class TestTransactionContext:
    def test_starts_active(self, context):
        assert context.state is TxState.ACTIVE
        assert not context.is_terminal
        assert context.units == [context.owner]
        assert context.owner.context is context

    def test_commit_marks_every_unit_committed(self, context):
        joined = UnitOfWork("joined", lambda ctx: None)
        context.enlist(joined)

        context.commit()

        assert context.state is TxState.COMMITTED
        assert joined.outcome is Outcome.COMMITTED
        assert [r.outcome for r in context.records] == [Outcome.COMMITTED] * 2

    def test_rollback_only_is_idempotent_and_keeps_first_cause(self, context):
        first = ValueError("first")
        context.mark_rollback_only(first)
        context.mark_rollback_only(ValueError("second"))

        assert context.state is TxState.ROLLBACK_ONLY
        assert context.rollback_cause is first

    def test_commit_of_doomed_context_rolls_back(self, context):
        cause = ValueError("doomed")
        context.mark_rollback_only(cause)

        with pytest.raises(UnexpectedRollbackError) as excinfo:
            context.commit()

        assert excinfo.value.__cause__ is cause
        assert context.state is TxState.ROLLED_BACK
        assert context.owner.outcome is Outcome.ROLLED_BACK

    @pytest.mark.parametrize("finish", ["commit", "rollback"])
    def test_terminal_context_rejects_everything(self, context, finish):
        """
        GIVEN a context that already committed or rolled back
        WHEN a unit tries to join or the context is finalised again
        THEN IllegalTransactionStateError is raised.
        """
        getattr(context, finish)()

        assert context.is_terminal
        with pytest.raises(IllegalTransactionStateError):
            context.enlist(UnitOfWork("late", lambda ctx: None))
        with pytest.raises(IllegalTransactionStateError):
            context.commit()
        with pytest.raises(IllegalTransactionStateError):
            context.rollback()
        with pytest.raises(IllegalTransactionStateError):
            context.mark_rollback_only()
