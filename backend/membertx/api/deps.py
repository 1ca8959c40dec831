"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request

from membertx.core.extensions import session_factory
from membertx.core.logger import ensure_request_id
from membertx.factory import JOIN_POLICY_KEY
from membertx.repositories.base import Pagination
from membertx.schemas.common import PaginationQuerySchema
from membertx.services._shared.base import ServiceContext
from membertx.services.members.join import JoinPolicy
from membertx.tx import TransactionManager

F = TypeVar("F", bound=Callable[..., Any])

_TRANSACTIONS_KEY = "membertx.transactions"


def parse_pagination(default_limit: int = 20, max_limit: int = 200) -> Pagination:
    """Parse pagination parameters from ``request.args`` using Marshmallow."""

    schema = PaginationQuerySchema(default_limit=default_limit, max_limit=max_limit)
    data = schema.load(request.args, unknown="exclude")
    return Pagination(page=data["page"], limit=data["limit"], sort=data["sort"])


def get_transactions() -> TransactionManager:
    """Return the application's transaction manager, creating it on first use."""

    manager = current_app.extensions.get(_TRANSACTIONS_KEY)
    if manager is None:
        manager = TransactionManager(session_factory())
        current_app.extensions[_TRANSACTIONS_KEY] = manager
    return manager


def get_join_policy() -> JoinPolicy:
    """Return the join policy parsed from ``*_PROPAGATION`` settings at startup."""

    policy = current_app.extensions.get(JOIN_POLICY_KEY)
    if policy is None:
        policy = JoinPolicy.from_config(current_app.config)
        current_app.extensions[JOIN_POLICY_KEY] = policy
    return policy


def service_context() -> ServiceContext:
    """Build the request-scoped service context."""

    return ServiceContext(request_id=ensure_request_id())


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request.endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
