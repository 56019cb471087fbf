"""Pytest fixtures: a fresh application and in-memory SQLite schema per test.

Flask-SQLAlchemy binds ``sqlite:///:memory:`` through a static pool, so the
schema created here is the one every request in the test sees.
"""

from __future__ import annotations

import os
from datetime import timedelta

import pytest

from authcore.core.config import TestingConfig
from authcore.core.extensions import db as _db
from authcore.core.extensions import get_auth_components
from authcore.factory import create_app
from authcore.infra.jwt.tokens import JWTTokenIssuer, JWTTokenVerifier
from authcore.infra.security.password_hasher import WerkzeugPasswordHasher
from authcore.services._shared.ports import InMemoryCredentialStore
from authcore.services.auth.dto import TokenSettings
from authcore.services.auth.service import AuthService


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Keeps the SQLAlchemy credential store so HTTP tests cover the real adapter.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CREDENTIAL_STORE = "sqlalchemy"


@pytest.fixture()
def app():
    """Create a Flask application with a freshly created schema."""
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    """Flask test client bound to :func:`app`."""
    return app.test_client()


@pytest.fixture()
def session(app):
    """Expose the Flask-scoped session and wire Factory Boy to it."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(_db.session)
    yield _db.session
    SQLAlchemySession.set(None)


@pytest.fixture()
def sql_service(app) -> AuthService:
    """The :class:`AuthService` built by the app (SQLAlchemy credential store)."""
    return get_auth_components(app)["service"]


# ------------------------- App-free building blocks ------------------------- #


@pytest.fixture()
def token_settings() -> TokenSettings:
    return TokenSettings(
        access_secret="unit-access-secret-0123456789abcdef",
        refresh_secret="unit-refresh-secret-0123456789abcdef",
        access_ttl=timedelta(minutes=5),
        refresh_ttl=timedelta(days=7),
        issuer="authcore-tests",
    )


@pytest.fixture()
def hasher() -> WerkzeugPasswordHasher:
    """Cheap hasher so tests stay fast."""
    return WerkzeugPasswordHasher(method="pbkdf2:sha256:1000")


@pytest.fixture()
def issuer(token_settings) -> JWTTokenIssuer:
    return JWTTokenIssuer(token_settings)


@pytest.fixture()
def verifier(token_settings) -> JWTTokenVerifier:
    return JWTTokenVerifier(token_settings)


@pytest.fixture()
def memory_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture()
def service(memory_store, hasher, issuer, verifier) -> AuthService:
    """Build an AuthService wired to the in-memory credential store."""
    return AuthService(store=memory_store, hasher=hasher, issuer=issuer, verifier=verifier)
