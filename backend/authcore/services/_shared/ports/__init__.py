"""
authcore.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) that define the contracts for
credential persistence, password hashing and token management.

Modules
-------
- :mod:`credential_store`:
    Defines :class:`~.CredentialStore`, the :class:`~.Principal` read model
    and :class:`~.InMemoryCredentialStore`.

- :mod:`tokens`:
    Defines :class:`~.TokenIssuer`, :class:`~.TokenVerifier`,
    :class:`~.PasswordHasher` and the typed verification outcomes
    (:class:`~.TokenClaims` / :class:`~.InvalidToken`).

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, PyJWT, werkzeug) live under
``authcore.infra`` and are wired in ``authcore.core.extensions``.
"""

from __future__ import annotations

from .credential_store import (
    DEFAULT_ROLE,
    CredentialStore,
    InMemoryCredentialStore,
    NewPrincipal,
    Principal,
    normalize_email,
    normalize_username,
    tokens_match,
)
from .tokens import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    InvalidReason,
    InvalidToken,
    PasswordHasher,
    PrincipalClaims,
    TokenClaims,
    TokenIssuer,
    TokenPairOut,
    TokenVerifier,
    VerificationResult,
)

__all__ = [
    "ACCESS_TOKEN_TYPE",
    "REFRESH_TOKEN_TYPE",
    "DEFAULT_ROLE",
    "CredentialStore",
    "InMemoryCredentialStore",
    "InvalidReason",
    "InvalidToken",
    "NewPrincipal",
    "PasswordHasher",
    "Principal",
    "PrincipalClaims",
    "TokenClaims",
    "TokenIssuer",
    "TokenPairOut",
    "TokenVerifier",
    "VerificationResult",
    "normalize_email",
    "normalize_username",
    "tokens_match",
]
