"""Pytest fixtures configuring the Flask app and an isolated transactional database.

Each database-backed test runs inside a SAVEPOINT of an outer transaction on an
in-memory SQLite database, so data changes never leak between cases. Pure
service tests do not touch these fixtures.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from notes_auth.core.config import TestingConfig
from notes_auth.core.extensions import db as _db
from notes_auth.factory import create_app


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestingConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        if _db.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(_db.engine)
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


def _enable_sqlite_savepoints(engine):
    """Let SQLAlchemy drive BEGIN/SAVEPOINT on pysqlite.

    The driver otherwise opens transactions on its own and silently commits
    around SAVEPOINTs, so a unit of work's ``commit()`` would outlive the test.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a per-test transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Scoped session bound to the shared connection; rolled back after each
        test.

    Notes
    -----
    The session joins the outer transaction through SAVEPOINTs, so the
    ``commit()`` issued by the unit of work only releases a savepoint and the
    final rollback still discards everything.
    """
    top_trans = connection.begin()

    SessionFactory = sessionmaker(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    scoped = scoped_session(SessionFactory)

    # Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(scoped)
    try:
        yield scoped
    finally:
        SQLAlchemySession.set(None)
        scoped.remove()
        db.session = original_session
        top_trans.rollback()
