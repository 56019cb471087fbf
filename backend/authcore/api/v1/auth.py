"""Authentication endpoints using the service layer."""

from __future__ import annotations

from dataclasses import asdict

from flask import Blueprint, current_app, request

from authcore.api.deps import (
    current_identity,
    get_auth_service,
    require_auth,
    success,
    timing,
)
from authcore.core.extensions import limiter
from authcore.schemas import (
    IdentitySchema,
    LoginSchema,
    PrincipalSchema,
    RefreshSchema,
    SignupSchema,
    TokenPairSchema,
)
from authcore.services.auth.dto import LoginIn, LogoutIn, RefreshIn, SignupIn

bp = Blueprint("auth", __name__, url_prefix="/auth")

signup_schema = SignupSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
principal_schema = PrincipalSchema()
identity_schema = IdentitySchema()
token_schema = TokenPairSchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@bp.post("/signup")
@timing
def signup():
    """Register a principal and return its public representation."""

    data = signup_schema.load(_payload())
    principal = get_auth_service().signup(SignupIn(**data))
    return success(
        "Principal registered",
        status=201,
        data={"principal": principal_schema.dump(asdict(principal))},
    )


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue an access/refresh pair."""

    data = login_schema.load(_payload())
    result = get_auth_service().login(LoginIn(**data))
    return success(
        "Logged in",
        data={"principal": principal_schema.dump(asdict(result.principal))},
        **token_schema.dump(asdict(result.tokens)),
    )


@bp.post("/refresh")
@timing
def refresh():
    """Rotate the presented refresh token into a new pair."""

    data = refresh_schema.load(_payload())
    tokens = get_auth_service().refresh(RefreshIn(refresh_token=data["refresh_token"]))
    return success("Token refreshed", **token_schema.dump(asdict(tokens)))


@bp.post("/logout")
@timing
def logout():
    """End the session identified by the presented refresh token."""

    data = refresh_schema.load(_payload())
    get_auth_service().logout(LogoutIn(refresh_token=data["refresh_token"]))
    return success("Logged out")


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the identity carried by the bearer access token."""

    return success("Authenticated", data=identity_schema.dump(asdict(current_identity())))
