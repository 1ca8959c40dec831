"""Member, log and scenario resource schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates


class BaseSchema(Schema):
    """Base schema enabling ordered output for consistent API responses."""

    class Meta:
        ordered = True


class MemberSchema(BaseSchema):
    """Public representation of a member."""

    id = fields.String(dump_only=True)
    username = fields.String(required=True)
    created_at = fields.DateTime(dump_only=True, allow_none=True)
    updated_at = fields.DateTime(dump_only=True, allow_none=True)


class UsernameSchema(BaseSchema):
    """Payload carrying a username that must not be blank."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=100))

    @validates("username")
    def _not_blank(self, value: str, **_: object) -> None:
        if not value.strip():
            raise ValidationError("Username must not be blank.")


class MemberCreateSchema(UsernameSchema):
    """Payload for registering a member."""


class MemberFilterSchema(Schema):
    """Supported query parameters for listing members."""

    class Meta:
        unknown = EXCLUDE

    username = fields.String(load_default=None, validate=validate.Length(min=1, max=100))


class JoinRequestSchema(UsernameSchema):
    """Payload for the member + log join.

    ``recover`` selects the variant that catches a failed log write.
    """

    recover = fields.Boolean(load_default=False)


class LogMessageSchema(BaseSchema):
    """Public representation of a log entry."""

    id = fields.String(dump_only=True)
    message = fields.String(required=True)
    created_at = fields.DateTime(dump_only=True, allow_none=True)


class LogFilterSchema(Schema):
    """Supported query parameters for listing log entries."""

    class Meta:
        unknown = EXCLUDE

    message = fields.String(load_default=None, validate=validate.Length(min=1, max=255))


class ScenarioSchema(BaseSchema):
    """Catalogue entry for a propagation scenario."""

    name = fields.String()
    description = fields.String()
    policy = fields.Function(lambda s: s.policy.describe())
    recover = fields.Boolean()
    fail_log = fields.Boolean()
    expected_error = fields.Function(
        lambda s: s.expected_error.__name__ if s.expected_error else None
    )
    member_persisted = fields.Boolean()
    log_persisted = fields.Boolean()
