"""Structured JSON logging with request and transaction correlation.

Every record carries the current ``request_id``. Records emitted by the
transaction layer additionally carry ``tx_id``/``unit``/``propagation``/
``outcome``; the formatter groups those under a ``tx`` object so one context
can be followed across begin, join, rollback-only marking and finalize.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

TX_LOGGER = "membertx.tx"

# ``extra=`` attribute -> key inside the ``tx`` object
TX_FIELDS = {"tx_id": "id", "unit": "unit", "propagation": "propagation", "outcome": "outcome"}
# ``extra=`` attributes copied to the top level as-is
PLAIN_FIELDS = ("endpoint", "elapsed_ms", "scenario")


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        tx = {key: getattr(record, attr) for attr, key in TX_FIELDS.items() if hasattr(record, attr)}
        if tx:
            payload["tx"] = tx
        for attr in PLAIN_FIELDS:
            if hasattr(record, attr):
                payload[attr] = getattr(record, attr)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Stamp ``request_id`` on records that do not carry one already."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = ensure_request_id() if has_request_context() else None
        return True


def ensure_request_id() -> str:
    """Return the request identifier, adopting a correlation header if sent.

    Outside a request a throwaway UUID is returned.
    """
    if not has_request_context():
        return str(uuid4())
    request_id = getattr(g, "request_id", None)
    if request_id is None:
        sent = (request.headers.get(header) for header in CORRELATION_HEADERS)
        request_id = next((value for value in sent if value), None) or str(uuid4())
        g.request_id = request_id
    return request_id


def _level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {value!r}")
    return resolved


def configure_logging(level: str | int = "INFO", *, tx_level: str | int | None = None) -> None:
    """Send JSON records to stdout.

    :param level: Root verbosity.
    :param tx_level: Verbosity of the transaction layer alone, e.g. ``DEBUG``
        to trace every context without flooding the rest of the output.
        ``None`` inherits ``level``.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level(level))
    logging.getLogger(TX_LOGGER).setLevel(
        logging.NOTSET if tx_level is None else _level(tx_level)
    )


def init_app(app: Flask) -> None:
    """Seed the request id early and echo it back on every response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["JSONFormatter", "configure_logging", "ensure_request_id", "init_app"]
