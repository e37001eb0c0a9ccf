"""Session endpoints over the session facade.

The refresh token travels in an HttpOnly cookie scoped to ``/api/v1/auth``;
access tokens are returned in the body and sent back as ``Authorization:
Bearer``. Every refresh failure and every logout clears the cookie.
"""

from __future__ import annotations

from typing import NoReturn

from flask import Blueprint, after_this_request, current_app, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from notes_auth.api.deps import (
    clear_refresh_cookie,
    get_session_service,
    json_response,
    read_refresh_token,
    set_refresh_cookie,
    timing,
)
from notes_auth.core.errors import (
    Forbidden,
    Unauthorized,
    action_failure_error,
    refresh_failure_error,
)
from notes_auth.schemas import (
    ActionTokenSchema,
    LoginSchema,
    LogoutSchema,
    PasswordResetConfirmSchema,
    PasswordResetRequestSchema,
    RefreshSchema,
    TokenResponseSchema,
)
from notes_auth.services._shared.result import Fail, FailureKind
from notes_auth.services.tokens.dto import TokenPair

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
action_token_schema = ActionTokenSchema()
reset_request_schema = PasswordResetRequestSchema()
reset_confirm_schema = PasswordResetConfirmSchema()
token_schema = TokenResponseSchema()


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _session_response(pair: TokenPair, user_id: str):
    body = {
        "data": token_schema.dump(
            {
                "access_token": pair.access_token,
                "user_id": user_id,
                "expires_in": current_app.config["ACCESS_TOKEN_TTL_SECONDS"],
            }
        )
    }
    return set_refresh_cookie(json_response(body), pair.refresh_token)


@bp.post("/login")
@timing
def login():
    """Authenticate credentials; return an access token and set the refresh cookie."""

    data = login_schema.load(_json_body())
    service = get_session_service()
    authenticated = service.authenticate(data["email"], data["password"])
    if isinstance(authenticated, Fail):
        if authenticated.kind is FailureKind.EMAIL_NOT_VERIFIED:
            raise Forbidden("Email not verified", code="email_not_verified")
        raise Unauthorized("Invalid credentials", code="invalid_credentials")

    user_id = authenticated.value
    pair = service.login(user_id).value
    return _session_response(pair, user_id)


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the refresh token; replay or expiry ends the session."""

    body = _json_body()
    data = refresh_schema.load(body)
    presented = read_refresh_token(data)

    if not presented:
        _raise_with_cleared_cookie(Unauthorized("Missing refresh token", code="session_expired"))

    rotated = get_session_service().refresh(presented, data["user_id"])
    if isinstance(rotated, Fail):
        _raise_with_cleared_cookie(refresh_failure_error(rotated.kind))

    return _session_response(rotated.value, data["user_id"])


@bp.post("/logout")
@jwt_required()
@timing
def logout():
    """Revoke this session (or every session) of the authenticated user."""

    data = logout_schema.load(_json_body())
    user_id = str(get_jwt_identity())
    get_session_service().logout(
        user_id,
        read_refresh_token(data),
        all_sessions=data["all_sessions"],
    )
    return clear_refresh_cookie(current_app.response_class(status=204))


# ------------------------------ Email verification ------------------------------


@bp.post("/verify-email/request")
@jwt_required()
@timing
def verify_email_request():
    """Send a verification link to the authenticated user's address."""

    issued = get_session_service().verify_email_request(str(get_jwt_identity()))
    if isinstance(issued, Fail):
        raise action_failure_error(issued.kind)
    return json_response({"data": {"status": "sent"}}, status=202)


@bp.post("/verify-email/confirm")
@timing
def verify_email_confirm():
    """Consume a verification token and mark the email verified."""

    data = action_token_schema.load(_json_body())
    verified = get_session_service().verify_email_consume(data["token"])
    if isinstance(verified, Fail):
        raise action_failure_error(verified.kind)
    return json_response({"data": {"email_verified": True}})


# -------------------------------- Password reset --------------------------------


@bp.post("/password-reset/request")
@timing
def password_reset_request():
    """Send a reset link when the account qualifies. Always answers 202."""

    data = reset_request_schema.load(_json_body())
    requested = get_session_service().reset_password_request_for_email(data["email"])
    if isinstance(requested, Fail):
        # Outcome is not disclosed to the client (no account enumeration).
        current_app.logger.info(
            "password_reset.request_refused", extra={"event": requested.kind.name.lower()}
        )
    return json_response({"data": {"status": "accepted"}}, status=202)


@bp.get("/password-reset/<token>")
@timing
def password_reset_peek(token: str):
    """Tell the client whether a reset link is still usable, without using it."""

    checked = get_session_service().reset_password_peek(token)
    if isinstance(checked, Fail):
        raise action_failure_error(checked.kind)
    return json_response({"data": {"valid": True}})


@bp.post("/password-reset/confirm")
@timing
def password_reset_confirm():
    """Consume a reset token, store the new password and end every session."""

    data = reset_confirm_schema.load(_json_body())
    reset = get_session_service().reset_password_consume(data["token"], data["password"])
    if isinstance(reset, Fail):
        raise action_failure_error(reset.kind)
    return clear_refresh_cookie(json_response({"data": {"password_reset": True}}))


def _raise_with_cleared_cookie(error: Exception) -> NoReturn:
    """Raise ``error``; the problem response will also expire the refresh cookie."""

    @after_this_request
    def _clear(response):
        return clear_refresh_cookie(response)

    raise error
