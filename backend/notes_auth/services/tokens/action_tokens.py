# notes_auth/services/tokens/action_tokens.py
from __future__ import annotations

import logging
from datetime import timedelta

from notes_auth.services._shared.ports.clock import Clock
from notes_auth.services._shared.ports.secure_random import SecureRandom
from notes_auth.services._shared.ports.token_store import (
    TokenKind,
    TokenRecord,
    TokenStore,
    hash_token,
    new_record_id,
)
from notes_auth.services._shared.result import Fail, FailureKind, Ok, Result, fail

log = logging.getLogger(__name__)

ACTION_KINDS = frozenset({TokenKind.PASSWORD_RESET, TokenKind.EMAIL_VERIFICATION})
DEFAULT_ACTION_TTL = timedelta(hours=1)


class ActionTokenManager:
    """
    Single-use, time-bound tokens gating one sensitive action.

    One manager serves every action kind (password reset, email
    verification); the kind is a parameter of each call. Per (user, kind)
    there is at most one outstanding token: a new request while one is live
    is refused rather than replacing it.
    """

    def __init__(
        self,
        *,
        store: TokenStore,
        clock: Clock,
        random: SecureRandom,
        ttl: timedelta = DEFAULT_ACTION_TTL,
    ) -> None:
        """
        Initialize the manager.

        :param store: Token store shared with the rotation engine.
        :param clock: Time source for expiry decisions.
        :param random: Source of opaque token values.
        :param ttl: Lifetime of newly requested tokens.
        :raises ValueError: If ``ttl`` is not positive.
        """
        if ttl <= timedelta(0):
            raise ValueError("Action token lifetime must be positive.")
        self.store = store
        self.clock = clock
        self.random = random
        self.ttl = ttl

    # ------------------------------------------------------------------ #
    # Request
    # ------------------------------------------------------------------ #

    def request(self, user_id: str, kind: TokenKind) -> Result[str]:
        """
        Create a token of ``kind`` for ``user_id`` unless one is outstanding.

        :returns: ``Ok(token)`` or ``Fail(ALREADY_OUTSTANDING)``.
        """
        _ensure_action_kind(kind)
        user_id = str(user_id)
        now = self.clock.now()

        outstanding = self.store.find_by_user_and_kind(user_id, kind, now=now)
        if outstanding is not None and not outstanding.is_expired(now):
            log.info(
                "action_token.already_outstanding",
                extra={"user_id": user_id, "token_kind": kind.value},
            )
            return fail(FailureKind.ALREADY_OUTSTANDING, f"{kind.value} token already issued")

        token = self.random.token()
        self.store.put(
            TokenRecord(
                id=new_record_id(),
                token_hash=hash_token(token),
                user_id=user_id,
                kind=kind,
                created_at=now,
                expires_at=now + self.ttl,
            )
        )
        log.info("action_token.issued", extra={"user_id": user_id, "token_kind": kind.value})
        return Ok(token)

    # ------------------------------------------------------------------ #
    # Peek / consume
    # ------------------------------------------------------------------ #

    def peek(self, token: str, kind: TokenKind) -> Result[str]:
        """
        Validate ``token`` without consuming it.

        Same checks as :meth:`consume`; nothing is deleted, not even an
        expired record.

        :returns: ``Ok(user_id)`` or ``Fail(NOT_FOUND | EXPIRED)``.
        """
        checked = self._lookup(token, kind)
        if isinstance(checked, Fail):
            return checked
        record = checked.value
        if record.is_expired(self.clock.now()):
            return fail(FailureKind.EXPIRED, f"{kind.value} token expired")
        return Ok(record.user_id)

    def consume(self, token: str, kind: TokenKind) -> Result[str]:
        """
        Use ``token`` once.

        Expired tokens are rejected and every token of ``kind`` held by their
        owner is deleted. On success the presented row is removed through the
        store's atomic conditional delete, then any stray duplicates of the
        same kind are cleaned up.

        :returns: ``Ok(user_id)`` for the caller to apply the side effect, or
            ``Fail(NOT_FOUND | EXPIRED)``.
        """
        checked = self._lookup(token, kind)
        if isinstance(checked, Fail):
            return checked
        record = checked.value

        if record.is_expired(self.clock.now()):
            self.store.delete_all_for_user(record.user_id, kind)
            log.info(
                "action_token.expired",
                extra={"user_id": record.user_id, "token_kind": kind.value},
            )
            return fail(FailureKind.EXPIRED, f"{kind.value} token expired")

        if self.store.find_and_delete_if_present(record.token_hash) is None:
            # Another caller consumed it between lookup and delete.
            log.warning(
                "action_token.concurrent_consume",
                extra={"user_id": record.user_id, "token_kind": kind.value},
            )
            return fail(FailureKind.NOT_FOUND, f"{kind.value} token already used")

        self.store.delete_all_for_user(record.user_id, kind)
        log.info(
            "action_token.consumed",
            extra={"user_id": record.user_id, "token_kind": kind.value},
        )
        return Ok(record.user_id)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _lookup(self, token: str, kind: TokenKind) -> Result[TokenRecord]:
        _ensure_action_kind(kind)
        if not token:
            return fail(FailureKind.NOT_FOUND, "no token presented")
        record = self.store.get(hash_token(token))
        # A token of another kind is as good as unknown for this action.
        if record is None or record.kind is not kind:
            return fail(FailureKind.NOT_FOUND, f"{kind.value} token not found")
        return Ok(record)


def _ensure_action_kind(kind: TokenKind) -> None:
    if kind not in ACTION_KINDS:
        raise ValueError(f"{kind!r} is not a single-use action kind.")
