# notes_auth/services/tokens/dto.py
from __future__ import annotations

from dataclasses import dataclass

from notes_auth.services._shared.ports.token_store import TokenRecord

# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Access and refresh tokens handed to the caller together.

    :param access_token: Short-lived signed access token.
    :type access_token: str
    :param refresh_token: Single-use, store-backed refresh token.
    :type refresh_token: str
    """

    access_token: str
    refresh_token: str


@dataclass(frozen=True, slots=True)
class IssuedRefreshToken:
    """
    A freshly issued refresh token and the store record written for it.

    :param token: Signed refresh token value (returned to the client only).
    :type token: str
    :param record: Persisted record (holds the token digest, never the value).
    :type record: TokenRecord
    """

    token: str
    record: TokenRecord
