from __future__ import annotations

from typing import Protocol

from werkzeug.security import check_password_hash, generate_password_hash


class PasswordHasher(Protocol):
    """Opaque one-way hash/compare capability."""

    def hash(self, raw: str) -> str: ...

    def verify(self, raw: str, hashed: str) -> bool: ...


class WerkzeugPasswordHasher(PasswordHasher):
    """
    Hasher backed by ``werkzeug.security``.

    :param method: Werkzeug hash method string; ``None`` keeps werkzeug's
        default (scrypt). Tests pass a cheap ``pbkdf2`` setting.
    """

    def __init__(self, method: str | None = None) -> None:
        self.method = method

    def hash(self, raw: str) -> str:
        if not isinstance(raw, str) or not raw:
            raise ValueError("Password must be a non-empty string.")
        if self.method is None:
            return generate_password_hash(raw)
        return generate_password_hash(raw, method=self.method)

    def verify(self, raw: str, hashed: str) -> bool:
        if not hashed:
            return False
        # ``check_password_hash`` is not typed and returns ``Any``; coerce to bool for mypy.
        return bool(check_password_hash(hashed, raw))
