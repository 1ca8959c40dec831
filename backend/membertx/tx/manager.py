"""
Transactional outcome resolver.

:class:`TransactionManager` decides, for every unit of work, which physical
transaction it runs in and whether that transaction commits. Contexts are
passed explicitly from caller to callee; nothing is kept in ambient state, so
concurrent requests never share a context tree.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from membertx.tx.context import TransactionContext, UnitOfWork
from membertx.tx.errors import IllegalTransactionStateError, TransactionRequiredError
from membertx.tx.propagation import Outcome, Propagation

log = logging.getLogger(__name__)

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])


class TransactionManager:
    """
    Run units of work according to their propagation mode.

    :param session_factory: Zero-argument callable returning a new session.
        Each new context gets its own session, hence its own connection.
    :type session_factory: Callable[[], Session]
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def run(self, unit: UnitOfWork[Any], caller: TransactionContext | None = None) -> Outcome:
        """
        Execute ``unit`` and resolve its outcome.

        * No caller context, or ``REQUIRES_NEW``: open a new context owned by
          ``unit``.
        * Otherwise: join ``caller``.

        On success the unit is marked committed; an owner then commits the
        context. On error the unit is marked rolled back and the error
        propagates; a joined unit dooms the shared context (rollback-only), an
        owner rolls its context back.

        :param unit: Unit of work to execute. Must not have run before.
        :type unit: UnitOfWork
        :param caller: Context of the calling unit, if any.
        :type caller: TransactionContext | None
        :returns: The unit's outcome when ``run`` returns.
        :rtype: Outcome
        :raises UnexpectedRollbackError: If the owner finishes normally but the
            context was marked rollback-only by a participant.
        :raises IllegalTransactionStateError: If ``unit`` already ran or
            ``caller`` is terminal and must be joined.
        """
        if unit.outcome is not Outcome.PENDING or unit.context is not None:
            raise IllegalTransactionStateError(f"Unit of work '{unit.name}' has already run.")

        context = self._resolve_context(unit, caller)
        context.enlist(unit)
        owner = context.owner is unit

        try:
            unit.result = unit.body(context)
        except BaseException as exc:
            unit.error = exc
            unit.outcome = Outcome.ROLLED_BACK
            if owner:
                log.debug("tx.rollback", extra={"tx_id": context.id, "unit": unit.name})
                context.rollback()
            else:
                context.mark_rollback_only(exc)
            raise

        unit.outcome = Outcome.COMMITTED
        if owner:
            context.commit()
            log.debug("tx.commit", extra={"tx_id": context.id, "unit": unit.name})
        return unit.outcome

    def _resolve_context(
        self, unit: UnitOfWork[Any], caller: TransactionContext | None
    ) -> TransactionContext:
        if caller is None or unit.propagation is Propagation.REQUIRES_NEW:
            context = TransactionContext(self._session_factory(), owner=unit, parent=caller)
            log.debug(
                "tx.begin",
                extra={
                    "tx_id": context.id,
                    "unit": unit.name,
                    "propagation": unit.propagation.value,
                },
            )
            return context
        log.debug(
            "tx.join",
            extra={"tx_id": caller.id, "unit": unit.name, "propagation": unit.propagation.value},
        )
        return caller

    def participate(
        self,
        name: str,
        body: Callable[[TransactionContext], T],
        caller: TransactionContext | None = None,
        propagation: Propagation | None = Propagation.REQUIRED,
    ) -> T:
        """
        Run ``body`` as an optionally transactional component.

        With a propagation this is :meth:`run` on a fresh :class:`UnitOfWork`.
        With ``propagation=None`` the component has no transaction boundary of
        its own: it runs directly in ``caller`` and its errors do not mark the
        context rollback-only.

        :returns: Whatever ``body`` returned.
        :raises TransactionRequiredError: If ``propagation`` is ``None`` and
            there is no caller context to write through.
        """
        if propagation is None:
            if caller is None:
                raise TransactionRequiredError(name)
            if caller.is_terminal:
                raise IllegalTransactionStateError(
                    f"'{name}' cannot use transaction {caller.id}: it is already "
                    f"{caller.state.value}."
                )
            return body(caller)

        unit: UnitOfWork[T] = UnitOfWork(name=name, body=body, propagation=propagation)
        self.run(unit, caller)
        return unit.result  # type: ignore[return-value]


def transactional(
    propagation: Propagation | None = Propagation.REQUIRED,
    *,
    name: str | None = None,
    manager_attr: str = "transactions",
) -> Callable[[F], F]:
    """
    Wrap a method as a unit of work.

    The decorated method must accept a keyword-only ``tx`` argument. Callers
    pass their context as ``tx=``; the method receives the context it actually
    runs in. The owning object exposes its :class:`TransactionManager` as
    ``manager_attr``.

    Example::

        class MemberService(BaseService):
            @transactional()
            def join(self, username: str, *, tx: TransactionContext) -> str:
                ...
    """

    def decorator(func: F) -> F:
        unit_name = name or func.__qualname__

        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, tx: TransactionContext | None = None, **kwargs: Any):
            manager: TransactionManager = getattr(self, manager_attr)
            return manager.participate(
                unit_name,
                lambda ctx: func(self, *args, tx=ctx, **kwargs),
                tx,
                propagation,
            )

        return wrapper  # type: ignore[return-value]

    return decorator
