"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, jsonify, request

from notes_auth.services.session import SessionService

F = TypeVar("F", bound=Callable[..., Any])

SESSION_SERVICE_KEY = "session_service"


def get_session_service() -> SessionService:
    """Return the facade built by the application factory."""
    return cast(SessionService, current_app.extensions[SESSION_SERVICE_KEY])


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
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


# ------------------------------ Refresh cookie -------------------------------


def _refresh_cookie_path() -> str:
    # Only the auth endpoints ever receive the refresh token.
    api_base = current_app.config.get("API_BASE_PREFIX", "/api").rstrip("/")
    return f"{api_base}/v1/auth"


def read_refresh_token(body: dict[str, Any] | None = None) -> str | None:
    """Return the refresh token from the HttpOnly cookie, else from the JSON body."""
    name = current_app.config["REFRESH_COOKIE_NAME"]
    token = request.cookies.get(name)
    if not token and body:
        token = body.get("refresh_token")
    return token or None


def set_refresh_cookie(response: Response, token: str) -> Response:
    """Attach ``token`` as the HttpOnly refresh cookie."""
    cfg = current_app.config
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        token,
        max_age=int(cfg["REFRESH_TOKEN_TTL_SECONDS"]),
        path=_refresh_cookie_path(),
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )
    return response


def clear_refresh_cookie(response: Response) -> Response:
    """Expire the refresh cookie on the client."""
    cfg = current_app.config
    response.delete_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        path=_refresh_cookie_path(),
        secure=bool(cfg["REFRESH_COOKIE_SECURE"]),
        httponly=True,
        samesite=cfg["REFRESH_COOKIE_SAMESITE"],
    )
    return response
