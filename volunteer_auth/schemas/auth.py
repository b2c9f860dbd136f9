"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, pre_load, validate

# E.164 with an optional leading "+"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"

# At least one lowercase, one uppercase, and one digit or symbol
PASSWORD_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[\d\W_]).+$"


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.String(
        required=True,
        validate=[
            validate.Length(min=8, max=128),
            validate.Regexp(
                PASSWORD_PATTERN,
                error="Password must contain uppercase, lowercase, and number/symbol.",
            ),
        ],
    )
    password_confirmation = fields.String(required=True)
    name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    phone = fields.String(
        load_default=None,
        allow_none=True,
        validate=validate.Regexp(PHONE_PATTERN, error="Phone must be a valid E.164 number."),
    )

    @pre_load
    def _strip_name(self, data: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        if isinstance(data.get("name"), str):
            data = {**data, "name": data["name"].strip()}
        return data


class UserPublicSchema(Schema):
    """Sanitized user representation; never carries the password hash."""

    id = fields.String(required=True)
    email = fields.Email(required=True)
    name = fields.String(required=True)
    phone = fields.String(allow_none=True)
    roles = fields.List(fields.String())
    status = fields.String()
    email_verified_at = fields.DateTime(allow_none=True)
    phone_verified_at = fields.DateTime(allow_none=True)
    last_login_at = fields.DateTime(allow_none=True)
    created_at = fields.DateTime(allow_none=True)
