"""Log entry endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from membertx.api.deps import get_transactions, json_response, service_context, timing
from membertx.schemas import LogFilterSchema, LogMessageSchema
from membertx.services._shared.errors import ServiceError
from membertx.services.members import MemberService

bp = Blueprint("logs", __name__)

log_list_schema = LogMessageSchema(many=True)
log_filter_schema = LogFilterSchema()


@bp.get("")
@timing
def list_logs():
    """Return persisted log entries, oldest first."""

    filters = log_filter_schema.load(request.args)
    service = MemberService(transactions=get_transactions(), ctx=service_context())
    try:
        entries = service.find_logs(message=filters["message"])
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": log_list_schema.dump(entries)})
