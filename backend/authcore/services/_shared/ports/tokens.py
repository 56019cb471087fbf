from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class InvalidReason(Enum):
    """Why a presented token did not verify."""

    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    WRONG_TYPE = "wrong_type"
    MISSING_CLAIMS = "missing_claims"


@dataclass(frozen=True)
class PrincipalClaims:
    """
    Identity claims signed into both token classes.

    :ivar principal_id: Principal identifier (JWT ``sub``).
    :ivar username: Normalized username.
    :ivar role: Authorization role.
    """

    principal_id: str
    username: str
    role: str


@dataclass(frozen=True)
class TokenClaims:
    """
    Claims extracted from a verified token.

    :ivar identity: The principal the token speaks for.
    :ivar token_type: ``"access"`` or ``"refresh"``.
    :ivar jti: Unique token identifier.
    :ivar issued_at: ``iat`` (UTC).
    :ivar expires_at: ``exp`` (UTC) or ``None`` when the token carries no expiry.
    """

    identity: PrincipalClaims
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime | None = None

    @property
    def principal_id(self) -> str:
        return self.identity.principal_id


@dataclass(frozen=True)
class InvalidToken:
    """Typed negative verification outcome (never raised)."""

    reason: InvalidReason

    def __bool__(self) -> bool:
        return False


VerificationResult = TokenClaims | InvalidToken


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :param refresh_token: Encoded refresh JWT.
    """

    access_token: str
    refresh_token: str


class TokenIssuer(Protocol):
    """Port for minting signed access and refresh tokens."""

    def issue_access(self, claims: PrincipalClaims) -> str: ...

    def issue_refresh(self, claims: PrincipalClaims) -> str: ...

    def issue_pair(self, claims: PrincipalClaims) -> TokenPairOut: ...


class TokenVerifier(Protocol):
    """Port for verifying tokens. Pure: never touches the credential store."""

    def verify_access(self, token: str) -> VerificationResult: ...

    def verify_refresh(self, token: str) -> VerificationResult: ...


class PasswordHasher(Protocol):
    """Port for one-way salted password hashing."""

    def hash(self, plaintext: str) -> str: ...

    def verify(self, plaintext: str, password_hash: str) -> bool: ...

    def dummy_verify(self, plaintext: str) -> None: ...
