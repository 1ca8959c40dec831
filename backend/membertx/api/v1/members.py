"""Member endpoints, including the transactional member + log join."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from membertx.api.deps import (
    get_join_policy,
    get_transactions,
    json_response,
    parse_pagination,
    service_context,
    timing,
)
from membertx.schemas import (
    JoinRequestSchema,
    MemberCreateSchema,
    MemberFilterSchema,
    MemberSchema,
    build_meta,
)
from membertx.services._shared.errors import ServiceError
from membertx.services.members import MemberJoinService, MemberService

bp = Blueprint("members", __name__)

member_schema = MemberSchema()
member_list_schema = MemberSchema(many=True)
member_create_schema = MemberCreateSchema()
member_filter_schema = MemberFilterSchema()
join_request_schema = JoinRequestSchema()


def _member_service() -> MemberService:
    return MemberService(transactions=get_transactions(), ctx=service_context())


@bp.get("")
@timing
def list_members():
    """Return paginated members."""

    filters = member_filter_schema.load(request.args)
    pagination = parse_pagination()
    service = _member_service()
    try:
        page = service.find_members(pagination, username=filters["username"])
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    meta = build_meta(total=page.total, page=page.page, limit=page.limit)
    return json_response({"data": member_list_schema.dump(page.items), "meta": meta})


@bp.post("")
@timing
def create_member():
    """Register a member without a log entry."""

    payload = member_create_schema.load(request.get_json(silent=True) or {})
    service = _member_service()
    try:
        member = service.join(payload["username"])
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": member_schema.dump(member)}, status=201)


@bp.get("/<member_id>")
@timing
def get_member(member_id: str):
    """Return one member by id."""

    service = _member_service()
    try:
        member = service.find_one(member_id)
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    return json_response({"data": member_schema.dump(member)})


@bp.post("/join")
@timing
def join_member():
    """Register a member and log the join under the configured propagation policy.

    ``recover=true`` tolerates a failed log write; whether the member then
    survives depends on ``LOG_REPOSITORY_PROPAGATION``.
    """

    payload = join_request_schema.load(request.get_json(silent=True) or {})
    service = MemberJoinService(
        policy=get_join_policy(),
        failure_marker=current_app.config.get("LOG_FAILURE_MARKER"),
        transactions=get_transactions(),
        ctx=service_context(),
    )
    join = service.join_v2 if payload["recover"] else service.join_v1
    try:
        result = join(payload["username"])
    except ServiceError as exc:
        raise service.translate_exceptions(exc) from exc
    body = {"data": {"member": member_schema.dump(result.member), "log_saved": result.log_saved}}
    return json_response(body, status=201)
