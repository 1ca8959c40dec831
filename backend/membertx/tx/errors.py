"""
Transaction-level exceptions raised by the outcome resolver.

They are independent of Flask and HTTP; ``membertx.core.errors`` maps them to
problem responses at the API edge.
"""

from __future__ import annotations


class TransactionError(Exception):
    """Base class for all transaction management errors."""


class IllegalTransactionStateError(TransactionError):
    """Raised on an operation the context's current state does not allow.

    Examples: joining a context that already committed, finalising twice, or
    running a unit of work that already ran.
    """


class TransactionRequiredError(TransactionError):
    """Raised when a non-transactional component is called with no context."""

    def __init__(self, unit: str) -> None:
        super().__init__(f"'{unit}' must run inside an existing transaction.")
        self.unit = unit


class UnexpectedRollbackError(TransactionError):
    """
    Raised when committing a context that was marked rollback-only.

    A nested ``REQUIRED`` unit failed and its caller suppressed the error, but
    the shared context was already doomed; the caller must not believe its
    work was saved.

    :param context_id: Identifier of the rolled-back context.
    :type context_id: str
    :param cause: Error that marked the context rollback-only.
    :type cause: BaseException | None
    """

    def __init__(self, context_id: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Transaction {context_id} silently rolled back because it has been "
            f"marked as rollback-only{detail}"
        )
        self.context_id = context_id
        self.cause = cause
