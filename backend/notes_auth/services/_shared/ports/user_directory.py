from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Protocol


@dataclass(frozen=True, slots=True)
class UserView:
    """
    Read-model of a user as seen by the token lifecycle.

    :ivar id: User identifier (string form, matches token subjects).
    :ivar email: Normalized email address.
    :ivar password_hash: Opaque hash produced by the password hasher.
    :ivar email_verified: Whether the address has been confirmed.
    """

    id: str
    email: str
    password_hash: str
    email_verified: bool


class UserDirectory(Protocol):
    """Port onto the user collaborator. Storage of users is not owned here."""

    def get_by_id(self, user_id: str) -> UserView | None: ...

    def get_by_email(self, email: str) -> UserView | None: ...

    def mark_email_verified(self, user_id: str) -> None: ...

    def set_password_hash(self, user_id: str, password_hash: str) -> None: ...


class InMemoryUserDirectory(UserDirectory):
    """Dictionary-backed directory used in unit tests."""

    def __init__(self, users: list[UserView] | None = None) -> None:
        self._users: dict[str, UserView] = {u.id: u for u in users or []}
        self._lock = threading.Lock()

    def add(self, user: UserView) -> UserView:
        with self._lock:
            self._users[user.id] = user
        return user

    def get_by_id(self, user_id: str) -> UserView | None:
        return self._users.get(user_id)

    def get_by_email(self, email: str) -> UserView | None:
        wanted = email.strip().lower()
        return next((u for u in self._users.values() if u.email == wanted), None)

    def mark_email_verified(self, user_id: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(user_id)
            self._users[user_id] = replace(user, email_verified=True)

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise KeyError(user_id)
            self._users[user_id] = replace(user, password_hash=password_hash)
