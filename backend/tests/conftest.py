"""Pytest fixtures for the transaction propagation layer.

Tests run against a file-backed SQLite database. Every transaction context
opens its own session and connection, so an in-memory database (one shared
connection) could not isolate ``REQUIRES_NEW`` work. The schema is rebuilt
for each test instead of rolling back a wrapping SAVEPOINT: committed data is
exactly what the tests assert on.
"""

from __future__ import annotations

import os

import pytest
from membertx.core.config import TestingConfig
from membertx.core.extensions import db as _db  # Flask-SQLAlchemy instance
from membertx.core.extensions import session_factory
from membertx.factory import create_app  # application factory under test
from membertx.tx import TransactionManager

FAILURE_MARKER = "logException"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - The database URI is filled in by the ``app`` fixture.
    - Propagation settings are pinned so environment variables cannot leak in.
    """

    LOG_LEVEL = "WARNING"
    LOG_FAILURE_MARKER = FAILURE_MARKER
    JOIN_SERVICE_PROPAGATION = "REQUIRED"
    MEMBER_REPOSITORY_PROPAGATION = "REQUIRED"
    LOG_REPOSITORY_PROPAGATION = "REQUIRES_NEW"
    CORS_ORIGINS = "*"


@pytest.fixture(scope="session")
def database_uri(tmp_path_factory):
    """Return a SQLite URI pointing at a per-session temporary file."""
    path = tmp_path_factory.mktemp("db") / "membertx.sqlite3"
    return f"sqlite:///{path}"


@pytest.fixture(scope="session")
def app(database_uri):
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)

    config = type("SessionConfig", (TestConfig,), {"SQLALCHEMY_DATABASE_URI": database_uri})
    app = create_app(config)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture()
def db(app):
    """Create a fresh schema for one test and drop it afterwards.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application, inside an
        application context.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def transactions(db):
    """Provide a :class:`TransactionManager` bound to the test database."""
    return TransactionManager(session_factory())


@pytest.fixture()
def session(db):
    """Provide an independent session for arranging and inspecting data.

    It never takes part in the transaction contexts under test.
    """
    sess = session_factory()()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def client(app, db):
    """Return a Flask test client sharing the test's application context."""
    return app.test_client()


@pytest.fixture()
def runner(app, db):
    """Return a Flask CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to the arranging session -----------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper when a test uses the database."""
    from tests.factories import SQLAlchemySession

    if "db" not in request.fixturenames:
        yield
        return
    session = request.getfixturevalue("session")
    SQLAlchemySession.set(session)
    yield
    SQLAlchemySession.set(None)
