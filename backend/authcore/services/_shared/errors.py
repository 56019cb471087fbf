"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They are the stable contract between the
credential stores, the token components and :class:`~authcore.services.auth.service.AuthService`.

The translation to HTTP responses is handled by ``authcore/core/errors.py``.
Several classes intentionally render the same way to clients (for example
:class:`NotFoundError` and :class:`BadCredentialError`); the distinction only
exists for logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str, *columns: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite only reports the
    ``table.column`` pair, so the column names are matched as a fallback.

    :param exc: The exception raised by SQLAlchemy during flush/commit.
    :param constraint_name: Constraint name (e.g. ``uq_users_username``).
    :param columns: Qualified column names (e.g. ``users.username``).
    :returns: True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    if constraint_name.lower() in message:
        return True
    return any(col.lower() in message for col in columns)


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them in one place (``authcore.core.errors``).
    """

    pass


# --------------------------------------------------------------------------- #
# Input
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class ValidationError(ServiceError):
    """
    Raised when caller-supplied input is malformed.

    :param name: Offending field name.
    :param detail: Client-safe explanation.
    """

    name: str
    detail: str

    def __str__(self) -> str:
        return f"{self.name}: {self.detail}"


# --------------------------------------------------------------------------- #
# Identity
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class DuplicateIdentityError(ServiceError):
    """
    Raised when a username or email is already registered.

    :param entity: Entity name (e.g., "Principal").
    :param detail: Which natural key collided.
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the store.

    :param entity: Entity name (e.g., "Principal").
    :param key: Identifier or search key.
    """

    entity: str
    key: str

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


class BadCredentialError(ServiceError):
    """Raised when a password does not match the stored hash."""


class CorruptCredentialError(ServiceError):
    """
    Raised when a stored password hash cannot be parsed.

    This is a data-integrity fault, never a user error.
    """


# --------------------------------------------------------------------------- #
# Sessions & tokens
# --------------------------------------------------------------------------- #


class MissingTokenError(ServiceError):
    """Raised when a required token was not supplied at all."""


class InvalidSessionError(ServiceError):
    """
    Raised when a refresh token is not the principal's active one.

    Covers rotated-away tokens, logged-out sessions, tokens that were never
    issued, and the losing side of a concurrent rotation.
    """


@dataclass(slots=True)
class InvalidSignatureError(ServiceError):
    """
    Raised when a refresh token fails cryptographic verification.

    :param reason: Machine-readable verification failure (see ``InvalidReason``).
    """

    reason: str

    def __str__(self) -> str:
        return f"Refresh token failed verification: {self.reason}"


class UnauthenticatedError(ServiceError):
    """Raised by the authorization gate when no valid access token is present."""


# --------------------------------------------------------------------------- #
# Infrastructure
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class StoreUnavailableError(ServiceError):
    """
    Raised when the credential store cannot be reached in time.

    Retryable by the caller; the service never retries on its own.

    :param backend: Store backend name (``sqlalchemy``, ``redis``...).
    :param detail: Operator-facing cause.
    """

    backend: str
    detail: str = field(default="unavailable")

    def __str__(self) -> str:
        return f"Credential store '{self.backend}' unavailable: {self.detail}"
