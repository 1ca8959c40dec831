"""Explicit transaction propagation.

This package re-exports the outcome resolver and the types it works with.
Service layers depend on these names only.
"""

from .context import OutcomeRecord, TransactionContext, UnitOfWork
from .errors import (
    IllegalTransactionStateError,
    TransactionError,
    TransactionRequiredError,
    UnexpectedRollbackError,
)
from .manager import TransactionManager, transactional
from .propagation import Outcome, Propagation, TxState

__all__ = [
    "IllegalTransactionStateError",
    "Outcome",
    "OutcomeRecord",
    "Propagation",
    "TransactionContext",
    "TransactionError",
    "TransactionManager",
    "TransactionRequiredError",
    "TxState",
    "UnexpectedRollbackError",
    "UnitOfWork",
    "transactional",
]
