"""Marshmallow schemas for request validation and response shaping."""

from __future__ import annotations

from .auth import (
    ActionTokenSchema,
    LoginSchema,
    LogoutSchema,
    PasswordResetConfirmSchema,
    PasswordResetRequestSchema,
    RefreshSchema,
    TokenResponseSchema,
)

__all__ = [
    "ActionTokenSchema",
    "LoginSchema",
    "LogoutSchema",
    "PasswordResetConfirmSchema",
    "PasswordResetRequestSchema",
    "RefreshSchema",
    "TokenResponseSchema",
]
