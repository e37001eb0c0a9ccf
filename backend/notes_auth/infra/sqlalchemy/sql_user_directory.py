# comments in English; reST docstrings
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notes_auth.models.user import User
from notes_auth.repositories import UserRepository
from notes_auth.services._shared.errors import UserDirectoryError
from notes_auth.services._shared.ports.user_directory import UserDirectory, UserView
from notes_auth.uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)


def _to_view(user: User) -> UserView:
    return UserView(
        id=str(user.id),
        email=user.email,
        password_hash=user.password_hash,
        email_verified=bool(user.email_verified),
    )


class SqlUserDirectory(UserDirectory):
    """
    User directory over the ``users`` table.

    Reads go through :class:`UserRepository` on the session; each write runs
    in its own :class:`SQLAlchemyUnitOfWork` and is committed immediately.

    :param session: Optional explicit session; defaults to the Flask-scoped one.
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    def _repo(self) -> UserRepository:
        return UserRepository(session=self._session)

    @contextmanager
    def _write(self, operation: str, user_id: str) -> Iterator[UserRepository]:
        try:
            with SQLAlchemyUnitOfWork(session=self._session) as uow:
                yield uow.users
        except (SQLAlchemyError, ValueError) as exc:
            log.error("user_directory.write_failed", extra={"user_id": user_id, "event": operation})
            raise UserDirectoryError(operation=operation, user_id=user_id) from exc

    # -------------------- reads --------------------

    def get_by_id(self, user_id: str) -> UserView | None:
        user = self._repo().get(str(user_id))
        return _to_view(user) if user is not None else None

    def get_by_email(self, email: str) -> UserView | None:
        user = self._repo().get_by_email(email)
        return _to_view(user) if user is not None else None

    # -------------------- writes -------------------

    def mark_email_verified(self, user_id: str) -> None:
        with self._write("mark_email_verified", user_id) as users:
            users.mark_email_verified(user_id)

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        with self._write("set_password_hash", user_id) as users:
            users.set_password_hash(user_id, password_hash)
