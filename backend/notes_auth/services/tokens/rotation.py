# notes_auth/services/tokens/rotation.py
from __future__ import annotations

import logging

from notes_auth.services._shared.ports.clock import Clock
from notes_auth.services._shared.ports.token_store import (
    TokenKind,
    TokenRecord,
    TokenStore,
    hash_token,
    new_record_id,
)
from notes_auth.services._shared.result import Fail, FailureKind, Ok, Result, fail
from notes_auth.services.tokens.codec import SignedTokenCodec
from notes_auth.services.tokens.dto import IssuedRefreshToken, TokenPair

log = logging.getLogger(__name__)


class RefreshRotationEngine:
    """
    Refresh-token state machine: issue, rotate once, detect replay, revoke.

    A refresh token is valid only while it is *both* signature/expiry valid
    (checked by the refresh codec) *and* present in the token store. Every
    successful rotation removes the presented record through the store's
    atomic conditional delete, so a token can be exchanged at most once.

    Lifecycle of one token::

        ISSUED --rotate--> ROTATED (record deleted, successor issued)
        ROTATED --rotate--> REUSE DETECTED --> every record of the user REVOKED
        ISSUED --logout--> REVOKED
    """

    def __init__(
        self,
        *,
        access_codec: SignedTokenCodec,
        refresh_codec: SignedTokenCodec,
        store: TokenStore,
        clock: Clock,
    ) -> None:
        """
        Initialize the engine with its collaborators.

        :param access_codec: Codec minting access tokens on rotation.
        :param refresh_codec: Codec signing and verifying refresh tokens.
        :param store: Token store holding refresh records.
        :param clock: Time source for record timestamps.
        """
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(self, user_id: str) -> IssuedRefreshToken:
        """
        Sign a new refresh token for ``user_id`` and persist its record.

        Earlier records of the user are left untouched; they stay usable until
        their own rotation, logout or a family revocation.

        :param user_id: Owner of the new token.
        :returns: Token value plus the stored record.
        """
        token, claims = self.refresh_codec.issue_with_claims(user_id)
        record = TokenRecord(
            id=new_record_id(),
            token_hash=hash_token(token),
            user_id=claims.subject,
            kind=TokenKind.REFRESH,
            created_at=self.clock.now(),
            expires_at=claims.expires_at,
        )
        # Register server state FIRST, then hand the token out.
        self.store.put(record)
        log.debug("refresh.issued", extra={"user_id": claims.subject, "event": "issued"})
        return IssuedRefreshToken(token=token, record=record)

    def issue_pair(self, user_id: str) -> TokenPair:
        """Issue a new access token and a new refresh token for ``user_id``."""
        refresh = self.issue(user_id)
        access = self.access_codec.issue(user_id)
        return TokenPair(access_token=access, refresh_token=refresh.token)

    # ------------------------------------------------------------------ #
    # Rotate
    # ------------------------------------------------------------------ #

    def rotate(self, presented_token: str, claimed_user_id: str) -> Result[TokenPair]:
        """
        Exchange a refresh token for a new access/refresh pair, exactly once.

        Outcomes
        --------
        - ``MALFORMED`` / ``INVALID_SIGNATURE``: unreadable token, no side effect.
        - ``EXPIRED``: the token outlived its window; the claimed user's family
          is revoked, as for a replay.
        - ``UNAUTHORIZED``: token and claimed user disagree; nothing revoked.
        - ``REUSE_DETECTED``: authentic token no longer in the store (already
          rotated, or lost a concurrent rotation); the family is revoked.
        - ``Ok(TokenPair)``: old record consumed, successor issued.

        :param presented_token: Refresh token sent by the client.
        :param claimed_user_id: User the caller claims to act for.
        """
        claimed = str(claimed_user_id)

        # 1) Signature / shape / expiry
        verified = self.refresh_codec.verify(presented_token)
        if isinstance(verified, Fail):
            if verified.kind is FailureKind.EXPIRED:
                return self._expired(verified, claimed)
            log.info(
                "refresh.rejected",
                extra={"user_id": claimed, "event": verified.kind.name.lower()},
            )
            return verified
        claims = verified.value

        if claims.subject != claimed:
            log.warning(
                "refresh.subject_mismatch",
                extra={"user_id": claimed, "event": "unauthorized"},
            )
            return fail(FailureKind.UNAUTHORIZED, "token subject does not match caller")

        token_hash = hash_token(presented_token)

        # 2) Presence in the store
        record = self.store.get(token_hash)
        if record is None:
            return self._reuse_detected(claimed, "token absent from store")

        # 3) Ownership
        if record.kind is not TokenKind.REFRESH or record.user_id != claimed:
            log.warning(
                "refresh.owner_mismatch",
                extra={"user_id": claimed, "event": "unauthorized"},
            )
            return fail(FailureKind.UNAUTHORIZED, "token does not belong to caller")

        # 4) One-time use: only the caller winning the conditional delete proceeds
        consumed = self.store.find_and_delete_if_present(token_hash)
        if consumed is None:
            return self._reuse_detected(claimed, "lost concurrent rotation")

        pair = self.issue_pair(claimed)
        log.info("refresh.rotated", extra={"user_id": claimed, "event": "rotated"})
        return Ok(pair)

    # ------------------------------------------------------------------ #
    # Revoke
    # ------------------------------------------------------------------ #

    def revoke_all(self, user_id: str) -> int:
        """
        Delete every refresh record of ``user_id`` (the whole token family).

        :returns: Number of records removed.
        """
        removed = self.store.delete_all_for_user(str(user_id), TokenKind.REFRESH)
        log.info("refresh.revoked_all", extra={"user_id": str(user_id), "event": "revoked"})
        return removed

    def revoke_one(self, presented_token: str) -> Result[None]:
        """
        Delete the record of one refresh token (explicit logout).

        Signature and expiry are not checked: any value that maps to a stored
        refresh record is removed. Absence is reported as ``NOT_FOUND`` and is
        meant to be tolerated by callers.
        """
        if not presented_token:
            return fail(FailureKind.NOT_FOUND, "no token presented")
        token_hash = hash_token(presented_token)
        record = self.store.get(token_hash)
        if record is None or record.kind is not TokenKind.REFRESH:
            return fail(FailureKind.NOT_FOUND, "refresh record not found")
        if self.store.find_and_delete_if_present(token_hash) is None:
            return fail(FailureKind.NOT_FOUND, "refresh record already removed")
        return Ok(None)

    # ------------------------------------------------------------------ #
    # Failure paths (self-healing)
    # ------------------------------------------------------------------ #

    def _reuse_detected(self, user_id: str, detail: str) -> Fail:
        removed = self.revoke_all(user_id)
        # Security incident: someone presented a consumed refresh token.
        log.warning(
            "refresh.reuse_detected revoked=%s",
            removed,
            extra={"user_id": user_id, "event": "reuse_detected"},
        )
        return fail(FailureKind.REUSE_DETECTED, detail)

    def _expired(self, failure: Fail, claimed: str) -> Fail:
        # Revocation is limited to the token's own subject. Revoking whatever
        # user the caller claims would let anyone holding an expired token log
        # out an arbitrary account; the mismatched case revokes nothing.
        if failure.subject == claimed:
            removed = self.revoke_all(claimed)
            log.warning(
                "refresh.expired_presented revoked=%s",
                removed,
                extra={"user_id": claimed, "event": "expired_revocation"},
            )
        return failure
