from __future__ import annotations

from dataclasses import dataclass

from membertx.core import errors as api_errors
from membertx.core.extensions import session_factory
from membertx.services._shared.errors import (
    ConflictError,
    LogPersistenceError,
    NotFoundError,
    ServiceError,
)
from membertx.tx import TransactionContext, TransactionManager


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param request_id: Correlation id for logging/tracing.
    """

    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Hold the :class:`TransactionManager` that runs every unit of work.
    * Centralize error translation.
    * Build log fields carrying the request id of :class:`ServiceContext`.

    Notes
    -----
    - Services never touch the Flask-scoped session; every write goes through
      the session of a transaction context.
    - Contexts travel as the explicit ``tx`` keyword argument.
    """

    def __init__(
        self,
        *,
        transactions: TransactionManager | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        """
        Initialize the base service.

        :param transactions: Resolver used for every unit of work. Defaults to
            one bound to the current application's engine (requires an app
            context).
        :type transactions: TransactionManager | None
        :param ctx: Optional request-scoped context.
        :type ctx: ServiceContext | None
        """
        self.transactions = transactions or TransactionManager(session_factory())
        self.ctx = ctx or ServiceContext()

    # ------------------------------- Logging --------------------------------

    def log_extra(self, tx: TransactionContext | None, unit: str) -> dict[str, str | None]:
        """Return ``extra=`` fields correlating a log record with request and transaction."""
        return {
            "request_id": self.ctx.request_id,
            "tx_id": tx.id if tx is not None else None,
            "unit": unit,
        }

    # -------------------------- Error handling ------------------------------

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map domain errors to API-level (HTTP) errors.

        Transaction errors are left to the handlers in
        :mod:`membertx.core.errors`.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        if isinstance(exc, LogPersistenceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=422,
                code="log_persistence_failed",
            )

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(
                message=str(exc),
                status_code=400,
                code="bad_request",
            )

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
