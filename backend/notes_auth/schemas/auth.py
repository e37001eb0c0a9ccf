"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

PASSWORD_LENGTH = validate.Length(min=8, max=128)


class _Lenient(Schema):
    class Meta:
        unknown = EXCLUDE


class LoginSchema(_Lenient):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=PASSWORD_LENGTH)


class RefreshSchema(_Lenient):
    """Refresh request: the claimed user plus, for non-browser clients, the token."""

    user_id = fields.String(required=True, validate=validate.Length(min=1, max=64))
    refresh_token = fields.String(load_default=None)


class LogoutSchema(_Lenient):
    """Logout request; ``all_sessions`` revokes every refresh token of the user."""

    all_sessions = fields.Boolean(load_default=False)
    refresh_token = fields.String(load_default=None)


class ActionTokenSchema(_Lenient):
    """A single-use token copied from an emailed link."""

    token = fields.String(required=True, validate=validate.Length(min=1, max=512))


class PasswordResetRequestSchema(_Lenient):
    email = fields.Email(required=True, validate=validate.Length(max=254))


class PasswordResetConfirmSchema(ActionTokenSchema):
    password = fields.String(required=True, validate=PASSWORD_LENGTH)


class TokenResponseSchema(Schema):
    """Response payload containing an access token."""

    access_token = fields.String(required=True)
    token_type = fields.String(dump_default="bearer")
    user_id = fields.String(required=True)
    expires_in = fields.Integer()
