"""Tests for SqlUserDirectory against the transactional test database."""

from __future__ import annotations

import pytest

from notes_auth.infra.sqlalchemy import SqlUserDirectory
from notes_auth.models.user import User
from notes_auth.services._shared.errors import UserDirectoryError
from notes_auth.services._shared.ports import UserView
from tests.factories.user import UserFactory, hash_password


@pytest.fixture()
def directory(session):
    return SqlUserDirectory(session=session)


def test_get_by_id_returns_view(directory):
    user = UserFactory(email="eve@example.com")

    view = directory.get_by_id(user.id)

    assert isinstance(view, UserView)
    assert view.id == user.id
    assert view.email == "eve@example.com"
    assert view.email_verified is True
    assert view.password_hash == user.password_hash


def test_get_by_email_is_case_insensitive(directory):
    user = UserFactory(email="eve@example.com")
    assert directory.get_by_email(" EVE@Example.com ").id == user.id


def test_unknown_lookups_return_none(directory):
    assert directory.get_by_id("missing") is None
    assert directory.get_by_email("missing@example.com") is None


def test_mark_email_verified_persists(directory, session):
    user = UserFactory(email_verified=False)

    directory.mark_email_verified(user.id)

    session.expire_all()
    assert session.get(User, user.id).email_verified is True


def test_set_password_hash_persists(directory, session):
    user = UserFactory()
    new_hash = hash_password("brand-new-pass")

    directory.set_password_hash(user.id, new_hash)

    session.expire_all()
    refreshed = session.get(User, user.id)
    assert refreshed.password_hash == new_hash
    assert refreshed.verify_password("brand-new-pass")


@pytest.mark.parametrize("operation", ["mark_email_verified", "set_password_hash"])
def test_writes_on_unknown_user_raise_directory_error(directory, operation):
    args = ("ghost",) if operation == "mark_email_verified" else ("ghost", "hash")

    with pytest.raises(UserDirectoryError) as excinfo:
        getattr(directory, operation)(*args)

    assert excinfo.value.operation == operation
    assert excinfo.value.user_id == "ghost"


# ---- Test isolation ----
ISOLATION_EMAIL = "committed@example.com"


def test_unit_of_work_commit_is_visible_within_the_test(directory):
    user = UserFactory(email=ISOLATION_EMAIL, email_verified=False)

    directory.mark_email_verified(user.id)

    assert directory.get_by_email(ISOLATION_EMAIL).email_verified is True


def test_committed_rows_do_not_leak_into_the_next_test(directory):
    """Runs after the test above: its committed user must be rolled back."""
    assert directory.get_by_email(ISOLATION_EMAIL) is None
    UserFactory(email=ISOLATION_EMAIL)
