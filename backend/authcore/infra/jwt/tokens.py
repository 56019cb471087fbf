# authcore/infra/jwt/tokens.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from authcore.services._shared.ports import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    InvalidReason,
    InvalidToken,
    PrincipalClaims,
    TokenClaims,
    TokenIssuer,
    TokenPairOut,
    TokenVerifier,
    VerificationResult,
)
from authcore.services.auth.dto import TokenSettings

# Claims every token class must carry; access tokens additionally need ``exp``.
_BASE_REQUIRED_CLAIMS = ("sub", "iat", "jti", "type", "username", "role")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class JWTTokenIssuer(TokenIssuer):
    """
    Mint HMAC-signed JWTs with PyJWT.

    Access and refresh tokens are signed with the two distinct secrets held by
    :class:`TokenSettings`, so leaking one key never allows forging the other
    token class.

    :param settings: Immutable signing configuration.
    :param clock: Source of "now" (UTC); injectable for tests.
    """

    settings: TokenSettings
    clock: Callable[[], datetime] = _utcnow

    def issue_access(self, claims: PrincipalClaims) -> str:
        """Sign a short-lived access token (``exp = iat + access_ttl``)."""
        return self._encode(
            claims,
            token_type=ACCESS_TOKEN_TYPE,
            secret=self.settings.access_secret,
            ttl=self.settings.access_ttl,
        )

    def issue_refresh(self, claims: PrincipalClaims) -> str:
        """
        Sign a refresh token.

        Liveness is enforced by the credential store; ``exp`` is only added when
        a refresh TTL is configured. A random ``jti`` keeps every issued token
        distinct, which rotation relies on.
        """
        return self._encode(
            claims,
            token_type=REFRESH_TOKEN_TYPE,
            secret=self.settings.refresh_secret,
            ttl=self.settings.refresh_ttl,
        )

    def issue_pair(self, claims: PrincipalClaims) -> TokenPairOut:
        return TokenPairOut(
            access_token=self.issue_access(claims),
            refresh_token=self.issue_refresh(claims),
        )

    def _encode(
        self,
        claims: PrincipalClaims,
        *,
        token_type: str,
        secret: str,
        ttl: timedelta | None,
    ) -> str:
        now = self.clock()
        payload: dict[str, Any] = {
            "iss": self.settings.issuer,
            "sub": str(claims.principal_id),
            "username": claims.username,
            "role": claims.role,
            "type": token_type,
            "jti": uuid4().hex,
            "iat": now,
        }
        if ttl is not None:
            payload["exp"] = now + ttl
        return jwt.encode(payload, secret, algorithm=self.settings.algorithm)


@dataclass(slots=True)
class JWTTokenVerifier(TokenVerifier):
    """
    Verify tokens minted by :class:`JWTTokenIssuer`.

    Every failure is returned as :class:`InvalidToken`; nothing is raised.
    Verification is pure and never consults the credential store.
    """

    settings: TokenSettings

    def verify_access(self, token: str) -> VerificationResult:
        """Check signature (access secret), expiry and token type."""
        return self._decode(
            token,
            secret=self.settings.access_secret,
            expected_type=ACCESS_TOKEN_TYPE,
            required=(*_BASE_REQUIRED_CLAIMS, "exp"),
        )

    def verify_refresh(self, token: str) -> VerificationResult:
        """Check signature (refresh secret), token type and ``exp`` when present."""
        return self._decode(
            token,
            secret=self.settings.refresh_secret,
            expected_type=REFRESH_TOKEN_TYPE,
            required=_BASE_REQUIRED_CLAIMS,
        )

    def _decode(
        self,
        token: str,
        *,
        secret: str,
        expected_type: str,
        required: tuple[str, ...],
    ) -> VerificationResult:
        if not isinstance(token, str) or not token.strip():
            return InvalidToken(InvalidReason.MALFORMED)
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.algorithm],
                issuer=self.settings.issuer,
                options={"require": list(required)},
            )
        except jwt.ExpiredSignatureError:
            return InvalidToken(InvalidReason.EXPIRED)
        except jwt.InvalidSignatureError:
            return InvalidToken(InvalidReason.BAD_SIGNATURE)
        except jwt.MissingRequiredClaimError:
            return InvalidToken(InvalidReason.MISSING_CLAIMS)
        except jwt.InvalidTokenError:
            return InvalidToken(InvalidReason.MALFORMED)

        if payload.get("type") != expected_type:
            return InvalidToken(InvalidReason.WRONG_TYPE)

        exp = payload.get("exp")
        return TokenClaims(
            identity=PrincipalClaims(
                principal_id=str(payload["sub"]),
                username=str(payload["username"]),
                role=str(payload["role"]),
            ),
            token_type=expected_type,
            jti=str(payload["jti"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
            expires_at=datetime.fromtimestamp(int(exp), tz=UTC) if exp is not None else None,
        )
