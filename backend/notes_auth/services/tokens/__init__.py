"""Token lifecycle engines: signed codec, refresh rotation, single-use action tokens."""

from __future__ import annotations

from .action_tokens import ActionTokenManager
from .codec import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, SignedTokenCodec, TokenClaims
from .dto import IssuedRefreshToken, TokenPair
from .rotation import RefreshRotationEngine

__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "ActionTokenManager",
    "IssuedRefreshToken",
    "RefreshRotationEngine",
    "SignedTokenCodec",
    "TokenClaims",
    "TokenPair",
]
