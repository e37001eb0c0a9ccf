from __future__ import annotations

import secrets
import threading
from typing import Protocol


class SecureRandom(Protocol):
    """Port for unguessable, unique token material."""

    def token(self) -> str: ...


class UrlSafeRandom(SecureRandom):
    """CSPRNG-backed tokens (``secrets.token_urlsafe``)."""

    def __init__(self, nbytes: int = 32) -> None:
        if nbytes < 16:
            raise ValueError("Token entropy below 128 bits is not allowed.")
        self.nbytes = nbytes

    def token(self) -> str:
        return secrets.token_urlsafe(self.nbytes)


class SequenceRandom(SecureRandom):
    """Deterministic token generator used in unit tests."""

    def __init__(self, prefix: str = "tok") -> None:
        self.prefix = prefix
        self._seq = 0
        self._lock = threading.Lock()

    def token(self) -> str:
        with self._lock:
            self._seq += 1
            return f"{self.prefix}-{self._seq}"
