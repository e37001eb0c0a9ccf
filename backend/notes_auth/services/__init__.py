"""Service layer public API.

Callers import from :mod:`notes_auth.services` without knowing the internal
structure.

Re-exports
----------
- Session facade (from ``notes_auth.services.session``)
    * :class:`SessionService`

- Token engines (from ``notes_auth.services.tokens``)
    * :class:`SignedTokenCodec`, :class:`RefreshRotationEngine`,
      :class:`ActionTokenManager`, :class:`TokenPair`

- Results and errors (from ``notes_auth.services._shared``)
    * :class:`Ok`, :class:`Fail`, :class:`FailureKind`
    * :class:`ServiceError`, :class:`TokenStoreError`, :class:`UserDirectoryError`
"""

from __future__ import annotations

from ._shared.errors import ServiceError, TokenStoreError, UserDirectoryError
from ._shared.result import Fail, FailureKind, Ok, Result
from .session import SessionService
from .tokens import (
    ActionTokenManager,
    RefreshRotationEngine,
    SignedTokenCodec,
    TokenPair,
)

__all__ = [
    # Facade
    "SessionService",
    # Engines
    "SignedTokenCodec",
    "RefreshRotationEngine",
    "ActionTokenManager",
    "TokenPair",
    # Results
    "Ok",
    "Fail",
    "FailureKind",
    "Result",
    # Errors
    "ServiceError",
    "TokenStoreError",
    "UserDirectoryError",
]
