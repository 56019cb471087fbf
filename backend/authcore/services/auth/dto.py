# authcore/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from authcore.services._shared.ports import Principal, TokenPairOut

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SignupIn:
    """
    Input DTO for signup.

    :param username: Requested username (normalized by the service).
    :type username: str
    :param email: Contact email (normalized by the service).
    :type email: str
    :param password: Raw password (hashed before persistence).
    :type password: str
    """

    username: str
    email: str
    password: str


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param username: Username as typed by the caller.
    :type username: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT (may be ``None`` when absent).
    :type refresh_token: str | None
    """

    refresh_token: str | None


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param refresh_token: Encoded refresh JWT identifying the session.
    :type refresh_token: str | None
    """

    refresh_token: str | None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class PrincipalPublicOut:
    """
    Public-safe principal payload (no hash, no tokens).

    :param id: Principal identifier.
    :param username: Username.
    :param email: Email address.
    :param role: Authorization role.
    """

    id: str
    username: str
    email: str
    role: str

    @classmethod
    def from_principal(cls, principal: Principal) -> PrincipalPublicOut:
        return cls(
            id=principal.id,
            username=principal.username,
            email=principal.email,
            role=principal.role,
        )


@dataclass(frozen=True, slots=True)
class LoginOut:
    """
    Output DTO for a successful login.

    :param principal: Public identity.
    :param tokens: Freshly issued token pair.
    """

    principal: PrincipalPublicOut
    tokens: TokenPairOut


# ------------------------------ Config DTO -------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenSettings:
    """
    Token signing configuration, loaded once at startup.

    :param access_secret: HMAC key for access tokens.
    :param refresh_secret: HMAC key for refresh tokens (must differ).
    :param access_ttl: Access token lifetime.
    :param refresh_ttl: Refresh token lifetime, or ``None`` for no ``exp`` claim.
    :param algorithm: JWS algorithm.
    :param issuer: ``iss`` claim.
    """

    access_secret: str = field(repr=False)
    refresh_secret: str = field(repr=False)
    access_ttl: timedelta = timedelta(minutes=5)
    refresh_ttl: timedelta | None = timedelta(days=7)
    algorithm: str = "HS256"
    issuer: str = "authcore"

    def __post_init__(self) -> None:
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("Both access and refresh signing secrets are required.")
        if self.access_secret == self.refresh_secret:
            raise ValueError("Access and refresh tokens must be signed with distinct secrets.")
        if self.access_ttl <= timedelta(0):
            raise ValueError("Access token TTL must be positive.")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> TokenSettings:
        """
        Build settings from a Flask config mapping.

        :param config: Mapping holding the ``*_TOKEN_*`` and ``JWT_*`` keys.
        :returns: Frozen settings object.
        :raises ValueError: On missing or identical secrets.
        """
        refresh_seconds = int(config.get("REFRESH_TOKEN_TTL_SECONDS") or 0)
        return cls(
            access_secret=str(config.get("ACCESS_TOKEN_SECRET") or ""),
            refresh_secret=str(config.get("REFRESH_TOKEN_SECRET") or ""),
            access_ttl=timedelta(seconds=int(config.get("ACCESS_TOKEN_TTL_SECONDS", 300))),
            refresh_ttl=timedelta(seconds=refresh_seconds) if refresh_seconds > 0 else None,
            algorithm=str(config.get("JWT_ALGORITHM", "HS256")),
            issuer=str(config.get("JWT_ISSUER", "authcore")),
        )
