"""Factory Boy definition for :class:`notes_auth.models.user.User`."""

from __future__ import annotations

import factory
from werkzeug.security import generate_password_hash

from notes_auth.models.user import User
from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"
# Cheap hash settings keep the suite fast; production uses werkzeug's default.
TEST_HASH_METHOD = "pbkdf2:sha256:1000"


def hash_password(raw: str) -> str:
    return generate_password_hash(raw, method=TEST_HASH_METHOD)


class UserFactory(BaseFactory):
    """
    Build persisted :class:`User` rows.

    Users are verified by default; pass ``email_verified=False`` for the
    unverified-account flows and ``password="..."`` to pick the password.
    """

    class Meta:
        model = User

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    email_verified = True
    password_hash = factory.LazyFunction(lambda: hash_password(DEFAULT_PASSWORD))

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Re-hash with an explicit password when one is given."""
        if extracted:
            obj.password_hash = hash_password(extracted)
