"""
Service-level exceptions.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. Expected token outcomes (expired, replayed, already outstanding...)
are *not* exceptions: they travel as :class:`~notes_auth.services._shared.result.Fail`
values. What remains here are infrastructure and programming errors.

The translation to HTTP responses (RFC 7807) is handled by
``notes_auth/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` instances.
    """

    pass


# --------------------------------------------------------------------------- #
# Specific errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class TokenStoreError(ServiceError):
    """
    Raised by store adapters when the backend cannot answer.

    Raw driver exceptions (Redis, SQLAlchemy) never cross the store boundary;
    adapters wrap them in this type and chain the original as ``__cause__``.

    :param backend: Short backend label (e.g. ``"redis"``).
    :type backend: str
    :param operation: Store operation that failed.
    :type operation: str
    """

    backend: str
    operation: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Token store '{self.backend}' failed during {self.operation}"


@dataclass(slots=True)
class UserDirectoryError(ServiceError):
    """
    Raised when the user collaborator cannot apply a side effect.

    :param operation: Directory operation that failed.
    :type operation: str
    :param user_id: Target user.
    :type user_id: str
    """

    operation: str
    user_id: str

    def __str__(self) -> str:  # pragma: no cover
        return f"User directory failed during {self.operation} for user {self.user_id}"
