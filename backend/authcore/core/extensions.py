"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

import redis
from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
limiter = Limiter(key_func=get_remote_address)
redis_client: redis.Redis | None = None

EXTENSION_KEY = "authcore"


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, rate limiting and the auth components.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authcore.models` package to ensure SQLAlchemy metadata is ready
        for migrations.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authcore import models as _models  # noqa: F401

    migrate.init_app(app, db)
    limiter.init_app(app)

    global redis_client
    redis_client = None
    app.extensions.pop("redis_client", None)
    if app.config.get("CREDENTIAL_STORE") == "redis":
        redis_url = app.config.get("REDIS_URL")
        if not redis_url:
            raise RuntimeError("CREDENTIAL_STORE=redis requires REDIS_URL.")
        timeout = float(app.config.get("STORE_TIMEOUT_SECONDS", 5))
        # Lazy connection: an unreachable Redis surfaces per request as 503.
        redis_client = redis.Redis.from_url(
            redis_url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        app.extensions["redis_client"] = redis_client

    init_auth(app)


def init_auth(app: Flask) -> None:
    """Build the auth components once and park them on ``app.extensions``.

    Token settings are frozen here; a missing or shared secret aborts startup.
    """
    from authcore.infra.jwt.tokens import JWTTokenIssuer, JWTTokenVerifier
    from authcore.infra.security.password_hasher import WerkzeugPasswordHasher
    from authcore.services.auth.dto import TokenSettings
    from authcore.services.auth.service import AuthService

    settings = TokenSettings.from_mapping(app.config)
    verifier = JWTTokenVerifier(settings)
    service = AuthService(
        store=build_credential_store(app),
        hasher=WerkzeugPasswordHasher(method=app.config.get("PASSWORD_HASH_METHOD", "scrypt")),
        issuer=JWTTokenIssuer(settings),
        verifier=verifier,
    )
    app.extensions[EXTENSION_KEY] = {"service": service, "verifier": verifier}


def build_credential_store(app: Flask):
    """Return the credential store selected by ``CREDENTIAL_STORE``."""
    backend = app.config.get("CREDENTIAL_STORE", "sqlalchemy")
    if backend == "sqlalchemy":
        from authcore.infra.sql.sqlalchemy_credential_store import SQLAlchemyCredentialStore

        return SQLAlchemyCredentialStore()
    if backend == "redis":
        from authcore.infra.redis.redis_credential_store import RedisCredentialStore

        return RedisCredentialStore(r=get_redis())
    if backend == "memory":
        from authcore.services._shared.ports import InMemoryCredentialStore

        return InMemoryCredentialStore()
    raise RuntimeError(f"Unknown CREDENTIAL_STORE {backend!r}.")


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return redis_client


def get_auth_components(app: Flask | None = None) -> dict:
    """Return the ``{"service", "verifier"}`` bundle of ``app`` (or the current app)."""
    target = app or current_app
    return target.extensions[EXTENSION_KEY]
