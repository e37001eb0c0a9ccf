"""
notes_auth.services._shared.ports
=================================

Collection of *ports* (hexagonal interfaces) consumed by the token lifecycle.

These ports decouple the service layer from concrete implementations of
time, randomness, persistence, users, password hashing and mail.

Modules
-------
- :mod:`clock`:
    :class:`~.Clock` plus :class:`~.SystemClock` and the test :class:`~.FrozenClock`.

- :mod:`secure_random`:
    :class:`~.SecureRandom`: opaque unique token material.

- :mod:`token_store`:
    :class:`~.TokenStore`, :class:`~.TokenRecord`, :class:`~.TokenKind` and the
    in-process :class:`~.InMemoryTokenStore` reference implementation.

- :mod:`user_directory`:
    :class:`~.UserDirectory`: user lookups plus the two credential side effects.

- :mod:`password_hasher`, :mod:`mail_sender`:
    Opaque hashing capability and outbound mail intent.

Design Notes
------------
All ports follow the *Dependency Inversion Principle*. Concrete adapters for
Redis and SQLAlchemy live under ``notes_auth.infra``.
"""

from __future__ import annotations

from .clock import Clock, FrozenClock, SystemClock
from .mail_sender import LoggingMailSender, MailSender, RecordingMailSender
from .password_hasher import PasswordHasher, WerkzeugPasswordHasher
from .secure_random import SecureRandom, SequenceRandom, UrlSafeRandom
from .token_store import (
    InMemoryTokenStore,
    TokenKind,
    TokenRecord,
    TokenStore,
    hash_token,
)
from .user_directory import InMemoryUserDirectory, UserDirectory, UserView

__all__ = [
    "Clock",
    "SystemClock",
    "FrozenClock",
    "SecureRandom",
    "UrlSafeRandom",
    "SequenceRandom",
    "TokenStore",
    "TokenRecord",
    "TokenKind",
    "InMemoryTokenStore",
    "hash_token",
    "UserDirectory",
    "UserView",
    "InMemoryUserDirectory",
    "PasswordHasher",
    "WerkzeugPasswordHasher",
    "MailSender",
    "LoggingMailSender",
    "RecordingMailSender",
]
