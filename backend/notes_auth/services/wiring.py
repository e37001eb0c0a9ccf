"""Composition root: build the session facade from application settings."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

import redis  # type: ignore[import-untyped]

from notes_auth.services._shared.ports import (
    Clock,
    InMemoryTokenStore,
    LoggingMailSender,
    MailSender,
    SecureRandom,
    SystemClock,
    TokenStore,
    UrlSafeRandom,
    UserDirectory,
    WerkzeugPasswordHasher,
)
from notes_auth.services.session import SessionService
from notes_auth.services.tokens import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    ActionTokenManager,
    RefreshRotationEngine,
    SignedTokenCodec,
)

log = logging.getLogger(__name__)


def build_token_store(
    redis_client: redis.Redis | None, *, clock: Clock | None = None
) -> TokenStore:
    """Return a Redis-backed store when a client is given, else the in-process one."""
    if redis_client is None:
        log.warning("token_store.in_memory", extra={"event": "in_memory_store"})
        return InMemoryTokenStore()

    from notes_auth.infra.redis import RedisTokenStore

    return RedisTokenStore(r=redis_client, clock=clock or SystemClock())


def build_session_service(
    config: Mapping[str, Any],
    *,
    users: UserDirectory,
    store: TokenStore | None = None,
    redis_client: redis.Redis | None = None,
    clock: Clock | None = None,
    random: SecureRandom | None = None,
    mailer: MailSender | None = None,
) -> SessionService:
    """
    Assemble codecs, engines and the facade.

    :param config: Flask config (or any mapping with the same keys).
    :param users: User directory adapter.
    :param store: Explicit token store; built from ``redis_client`` otherwise.
    :param redis_client: Connected client, or ``None`` for the in-process store.
    :param clock: Time source; defaults to the system clock.
    :param random: Token material source; defaults to ``secrets``.
    :param mailer: Outbound mail; defaults to a logging sender.
    """
    clock = clock or SystemClock()
    random = random or UrlSafeRandom()
    store = store if store is not None else build_token_store(redis_client, clock=clock)
    algorithm = config.get("JWT_ALGORITHM", "HS256")

    access_codec = SignedTokenCodec(
        secret=config["ACCESS_TOKEN_SECRET"],
        token_type=ACCESS_TOKEN_TYPE,
        default_ttl=timedelta(seconds=int(config["ACCESS_TOKEN_TTL_SECONDS"])),
        clock=clock,
        random=random,
        algorithm=algorithm,
    )
    refresh_codec = SignedTokenCodec(
        secret=config["REFRESH_TOKEN_SECRET"],
        token_type=REFRESH_TOKEN_TYPE,
        default_ttl=timedelta(seconds=int(config["REFRESH_TOKEN_TTL_SECONDS"])),
        clock=clock,
        random=random,
        algorithm=algorithm,
    )

    rotation = RefreshRotationEngine(
        access_codec=access_codec,
        refresh_codec=refresh_codec,
        store=store,
        clock=clock,
    )
    action_tokens = ActionTokenManager(
        store=store,
        clock=clock,
        random=random,
        ttl=timedelta(seconds=int(config["ACTION_TOKEN_TTL_SECONDS"])),
    )
    return SessionService(
        rotation=rotation,
        action_tokens=action_tokens,
        users=users,
        hasher=WerkzeugPasswordHasher(config.get("PASSWORD_HASH_METHOD")),
        mailer=mailer or LoggingMailSender(),
    )
