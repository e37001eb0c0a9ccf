from __future__ import annotations

import hashlib
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol
from uuid import uuid4

# Expired records stay readable this long so callers can tell EXPIRED from unknown.
DEFAULT_RETENTION = timedelta(days=1)


class TokenKind(str, Enum):
    """Kinds of store-backed tokens. The value doubles as the storage label."""

    REFRESH = "refresh"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


def hash_token(value: str) -> str:
    """
    Return the at-rest lookup key for a token value.

    Token values are bearer credentials; the store only ever sees their
    SHA-256 digest, so a leaked store dump cannot be replayed.
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def new_record_id() -> str:
    return uuid4().hex


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """
    One persisted token (refresh record or single-use action token).

    :ivar id: Surrogate identifier.
    :ivar token_hash: :func:`hash_token` digest of the token value (unique).
    :ivar user_id: Owner user id.
    :ivar kind: Token kind.
    :ivar created_at: Issuance time (UTC).
    :ivar expires_at: Absolute expiry (UTC). For refresh records this mirrors
        the signed ``exp`` claim and is only used for storage housekeeping.
    """

    id: str
    token_hash: str
    user_id: str
    kind: TokenKind
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Strict boundary: a record expiring exactly ``now`` is expired."""
        return now >= self.expires_at


class TokenStore(Protocol):
    """
    Persistence port for refresh records and single-use action tokens.

    ``find_and_delete_if_present`` MUST be atomic per token row: when several
    callers race on the same hash, exactly one receives the record and every
    other caller receives ``None``. Adapters MUST wrap backend failures in
    :class:`~notes_auth.services._shared.errors.TokenStoreError`.
    """

    def put(self, record: TokenRecord) -> None:
        """Insert a new record. Duplicate hashes are rejected."""

    def get(self, token_hash: str) -> TokenRecord | None:
        """Read a record without side effects."""

    def find_and_delete_if_present(self, token_hash: str) -> TokenRecord | None:
        """Atomically delete the record and return it, or ``None`` if it was absent."""

    def delete_all_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        """
        Delete every record of the user (optionally only one kind).

        :returns: Number of records deleted.
        """

    def find_by_user_and_kind(
        self, user_id: str, kind: TokenKind, *, now: datetime
    ) -> TokenRecord | None:
        """Return one live (non-expired at ``now``) record of ``kind`` for the user."""

    def list_for_user(self, user_id: str, kind: TokenKind | None = None) -> Iterable[TokenRecord]:
        """List stored records of the user, expired ones included."""

    def count_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        """Number of stored records of the user, expired ones included."""


class InMemoryTokenStore(TokenStore):
    """
    In-process token store.

    Records are kept ``retention`` past their ``expires_at`` (same policy as
    the Redis adapter's key TTL) so an expired token is still reported as
    EXPIRED; after that they are evicted. Eviction runs inside :meth:`put`,
    using the new record's ``created_at`` as the current time, at most once
    per ``sweep_interval``.

    .. note::
       A single lock guards both indexes, which makes every operation,
       including the conditional delete, atomic within the process.
    """

    def __init__(
        self,
        *,
        retention: timedelta = DEFAULT_RETENTION,
        sweep_interval: timedelta = timedelta(minutes=5),
    ) -> None:
        self._by_hash: dict[str, TokenRecord] = {}
        self._by_user: dict[str, set[str]] = {}
        self._lock = threading.Lock()
        self.retention = retention
        self.sweep_interval = sweep_interval
        self._next_sweep: datetime | None = None

    # ------------------------- helpers -------------------------

    def _unindex(self, record: TokenRecord) -> None:
        hashes = self._by_user.get(record.user_id)
        if hashes is None:
            return
        hashes.discard(record.token_hash)
        if not hashes:
            del self._by_user[record.user_id]

    def _evict_stale(self, now: datetime) -> None:
        # Caller holds the lock.
        if self._next_sweep is not None and now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval
        stale = [r for r in self._by_hash.values() if now >= r.expires_at + self.retention]
        for record in stale:
            del self._by_hash[record.token_hash]
            self._unindex(record)

    # -------------------------- API ----------------------------

    def put(self, record: TokenRecord) -> None:
        with self._lock:
            self._evict_stale(record.created_at)
            if record.token_hash in self._by_hash:
                raise ValueError("Token hash already stored.")
            self._by_hash[record.token_hash] = record
            self._by_user.setdefault(record.user_id, set()).add(record.token_hash)

    def get(self, token_hash: str) -> TokenRecord | None:
        with self._lock:
            return self._by_hash.get(token_hash)

    def find_and_delete_if_present(self, token_hash: str) -> TokenRecord | None:
        with self._lock:
            record = self._by_hash.pop(token_hash, None)
            if record is not None:
                self._unindex(record)
            return record

    def delete_all_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        with self._lock:
            doomed = [
                self._by_hash[h]
                for h in self._by_user.get(user_id, set())
                if kind is None or self._by_hash[h].kind is kind
            ]
            for record in doomed:
                del self._by_hash[record.token_hash]
                self._unindex(record)
            return len(doomed)

    def find_by_user_and_kind(
        self, user_id: str, kind: TokenKind, *, now: datetime
    ) -> TokenRecord | None:
        with self._lock:
            live = [
                self._by_hash[h]
                for h in self._by_user.get(user_id, set())
                if self._by_hash[h].kind is kind and not self._by_hash[h].is_expired(now)
            ]
        if not live:
            return None
        return max(live, key=lambda r: r.created_at)

    def list_for_user(self, user_id: str, kind: TokenKind | None = None) -> list[TokenRecord]:
        with self._lock:
            records = [
                self._by_hash[h]
                for h in self._by_user.get(user_id, set())
                if kind is None or self._by_hash[h].kind is kind
            ]
        return sorted(records, key=lambda r: (r.created_at, r.id))

    def count_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        with self._lock:
            return sum(
                1
                for h in self._by_user.get(user_id, set())
                if kind is None or self._by_hash[h].kind is kind
            )
