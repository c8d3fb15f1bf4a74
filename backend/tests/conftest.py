"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. Token stores and
the verification gateway are in-memory doubles unless a test asks for the
Redis or Twilio adapters explicitly.
"""

from __future__ import annotations

import os

import pytest
from sessionauth.core.config import TestingConfig
from sessionauth.core.extensions import db as _db  # Flask-SQLAlchemy instance
from sessionauth.factory import create_app  # application factory under test
from sessionauth.infra.jwt.jwt_token_codec import JWTTokenCodec
from sessionauth.infra.sqlalchemy.user_directory import SQLAlchemyUserDirectory
from sessionauth.services._shared.ports import (
    InMemoryTokenStore,
    StubVerificationGateway,
    TokenSettings,
)
from sessionauth.services.session import SessionService
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker
from tests.helpers.routes import probe_bp


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Avoids hitting external services (no Redis, no provider credentials).
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    REDIS_URL = None
    TWILIO_ACCOUNT_SID = ""
    TWILIO_AUTH_TOKEN = ""
    TWILIO_SERVICE_VERIFICATION_SID = ""
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig, instance_relative_config=False)
    app.register_blueprint(probe_bp)
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
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Notes
    -----
    The fixture mirrors the SQLAlchemy 2.0 pattern for transactional tests: it
    begins a top-level transaction, starts a SAVEPOINT per test, and reinstalls
    the SAVEPOINT whenever SQLAlchemy ends one.
    """
    # 1) Top-level transaction
    top_trans = connection.begin()

    # 2) Scoped session bound to the connection
    SessionFactory = sessionmaker(bind=connection, future=True)
    scoped = scoped_session(SessionFactory)

    # 3) SAVEPOINT per test
    nested = connection.begin_nested()

    # 4) Re-create SAVEPOINT when the previous nested transaction ends
    @event.listens_for(scoped(), "after_transaction_end")
    def _restart_savepoint(sess, trans):  # pragma: no cover
        if trans.nested and not trans._parent.nested:
            nonlocal nested
            nested = connection.begin_nested()

    # 5) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield


# -- Session layer building blocks ---------------------------------------------
@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(secret=TestConfig.JWT_SECRET_KEY)


@pytest.fixture
def codec(token_settings) -> JWTTokenCodec:
    return JWTTokenCodec(token_settings)


@pytest.fixture
def token_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def gateway() -> StubVerificationGateway:
    return StubVerificationGateway()


@pytest.fixture
def session_service(codec, token_store, gateway, token_settings) -> SessionService:
    """Session service over the SQL user directory and in-memory doubles."""
    return SessionService(
        users=SQLAlchemyUserDirectory(),
        codec=codec,
        store=token_store,
        gateway=gateway,
        settings=token_settings,
    )
