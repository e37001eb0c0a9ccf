# comments in English; reST docstrings
from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TypeVar

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from notes_auth.services._shared.errors import TokenStoreError
from notes_auth.services._shared.ports.clock import Clock, SystemClock
from notes_auth.services._shared.ports.token_store import (
    DEFAULT_RETENTION,
    TokenKind,
    TokenRecord,
    TokenStore,
)

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RedisTokenStore(TokenStore):
    """
    Redis-backed token store.

    Layout
    ------
    - ``tok:{hash}``: hash with ``id``, ``user_id``, ``kind``, ``created_at``,
      ``expires_at`` (epoch seconds). Key TTL = remaining life + ``retention``.
    - ``tok:u:{user_id}``: set of token hashes owned by the user.

    The conditional delete uses WATCH/MULTI/EXEC (optimistic locking): of
    several concurrent callers only the one whose transaction commits first
    sees the record; the others retry, find the key gone and get ``None``.

    :param r: A Redis client (already connected).
    :param clock: Time source for key TTLs.
    :param retention: Extra lifetime of a key past its ``expires_at``.
    """

    r: redis.Redis
    clock: Clock = field(default_factory=SystemClock)
    retention: timedelta = DEFAULT_RETENTION

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token_hash: str) -> str:
        return f"tok:{token_hash}"

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"tok:u:{user_id}"

    @staticmethod
    def _to_ts(dt: datetime) -> float:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.timestamp()

    @staticmethod
    def _s(value: bytes | str | None, default: str = "") -> str:
        if value is None:
            return default
        return value.decode() if isinstance(value, bytes | bytearray) else str(value)

    def _ttl_seconds(self, record: TokenRecord) -> int:
        remaining = self._to_ts(record.expires_at) - self._to_ts(self.clock.now())
        return max(1, math.ceil(remaining + self.retention.total_seconds()))

    def _decode(self, token_hash: str, h: dict) -> TokenRecord:
        # Normalize bytes -> str (clients may or may not use decode_responses)
        f = {self._s(k): self._s(v) for k, v in h.items()}
        return TokenRecord(
            id=f["id"],
            token_hash=token_hash,
            user_id=f["user_id"],
            kind=TokenKind(f["kind"]),
            created_at=datetime.fromtimestamp(float(f["created_at"]), tz=UTC),
            expires_at=datetime.fromtimestamp(float(f["expires_at"]), tz=UTC),
        )

    def _members(self, user_id: str) -> list[str]:
        return sorted(self._s(m) for m in self.r.smembers(self._ku(user_id)))

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except RedisError as exc:
            log.error("token_store.redis_error", extra={"event": operation})
            raise TokenStoreError(backend="redis", operation=operation) from exc

    def _watch_loop(self, keys: list[str], body: Callable[[redis.client.Pipeline], T]) -> T:
        # Retry loop for optimistic locking in case of concurrent modifications
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(*keys)
                    return body(p)
            except WatchError:
                continue

    # -------------------- API ------------------------

    def put(self, record: TokenRecord) -> None:
        """
        Insert the record *before* the token value is handed to the client.

        :raises ValueError: If a record with the same hash already exists.
        """
        key = self._k(record.token_hash)
        mapping = {
            "id": record.id,
            "user_id": record.user_id,
            "kind": record.kind.value,
            "created_at": repr(self._to_ts(record.created_at)),
            "expires_at": repr(self._to_ts(record.expires_at)),
        }

        def _insert(p: redis.client.Pipeline) -> None:
            if p.exists(key):
                p.unwatch()
                raise ValueError("Token hash already stored.")
            p.multi()
            p.hset(key, mapping=mapping)
            p.expire(key, self._ttl_seconds(record))
            p.sadd(self._ku(record.user_id), record.token_hash)
            p.execute()

        with self._guard("put"):
            self._watch_loop([key], _insert)

    def get(self, token_hash: str) -> TokenRecord | None:
        with self._guard("get"):
            h = self.r.hgetall(self._k(token_hash))
        if not h:
            return None
        return self._decode(token_hash, h)

    def find_and_delete_if_present(self, token_hash: str) -> TokenRecord | None:
        """
        Atomically remove ``tok:{hash}`` and return what it held.

        Check and delete run under WATCH on the token key; a concurrent
        deletion aborts our EXEC, the retry then sees the key gone.
        """
        key = self._k(token_hash)

        def _take(p: redis.client.Pipeline) -> TokenRecord | None:
            h = p.hgetall(key)
            if not h:
                p.unwatch()
                return None
            record = self._decode(token_hash, h)
            p.multi()
            p.delete(key)
            p.srem(self._ku(record.user_id), token_hash)
            p.execute()
            return record

        with self._guard("find_and_delete_if_present"):
            return self._watch_loop([key], _take)

    def delete_all_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        key_u = self._ku(user_id)

        def _purge(p: redis.client.Pipeline) -> int:
            members = sorted(self._s(m) for m in p.smembers(key_u))
            doomed: list[str] = []
            stale: list[str] = []
            for token_hash in members:
                stored_kind = p.hget(self._k(token_hash), "kind")
                if stored_kind is None:
                    # Underlying hash missing (expired) -> index cleanup only
                    stale.append(token_hash)
                elif kind is None or self._s(stored_kind) == kind.value:
                    doomed.append(token_hash)
            if not doomed and not stale:
                p.unwatch()
                return 0
            p.multi()
            for token_hash in doomed:
                p.delete(self._k(token_hash))
            p.srem(key_u, *(doomed + stale))
            results = p.execute()
            return sum(int(n) for n in results[: len(doomed)])

        with self._guard("delete_all_for_user"):
            return self._watch_loop([key_u], _purge)

    def find_by_user_and_kind(
        self, user_id: str, kind: TokenKind, *, now: datetime
    ) -> TokenRecord | None:
        live = [r for r in self.list_for_user(user_id, kind) if not r.is_expired(now)]
        if not live:
            return None
        return max(live, key=lambda r: r.created_at)

    def list_for_user(self, user_id: str, kind: TokenKind | None = None) -> list[TokenRecord]:
        records: list[TokenRecord] = []
        stale: list[str] = []
        with self._guard("list_for_user"):
            for token_hash in self._members(user_id):
                h = self.r.hgetall(self._k(token_hash))
                if not h:
                    stale.append(token_hash)
                    continue
                record = self._decode(token_hash, h)
                if kind is None or record.kind is kind:
                    records.append(record)
            if stale:
                # Remove all stale entries from the user's index in one call
                self.r.srem(self._ku(user_id), *stale)
        return sorted(records, key=lambda r: (r.created_at, r.id))

    def count_for_user(self, user_id: str, kind: TokenKind | None = None) -> int:
        return len(self.list_for_user(user_id, kind))
