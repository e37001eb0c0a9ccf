"""User repository for lookups and credential-state updates."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from notes_auth.models.user import User
from notes_auth.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    It NEVER issues or validates tokens; it only reads users and applies the
    two side effects the session lifecycle needs.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by email (case-insensitive).

        :param email: Email address to normalise and search.
        :returns: User instance or ``None`` when not found.
        """
        stmt = select(User).where(User.email == email.lower().strip())
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    # ---------------------------- Side effects ----------------------------

    def mark_email_verified(self, user_id: str) -> None:
        """Set ``email_verified`` and flush.

        :raises ValueError: If the user does not exist.
        """
        user = self.get(user_id)
        if user is None:
            raise ValueError(f"User {user_id} not found.")
        user.email_verified = True
        self.flush()

    def set_password_hash(self, user_id: str, password_hash: str) -> None:
        """Replace the stored password hash (already computed) and flush.

        :raises ValueError: If the user does not exist.
        """
        user = self.get(user_id)
        if user is None:
            raise ValueError(f"User {user_id} not found.")
        user.password_hash = password_hash
        self.flush()
