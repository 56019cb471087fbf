"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    IdentitySchema,
    LoginSchema,
    PrincipalSchema,
    RefreshSchema,
    SignupSchema,
    TokenPairSchema,
)

__all__ = [
    "IdentitySchema",
    "LoginSchema",
    "PrincipalSchema",
    "RefreshSchema",
    "SignupSchema",
    "TokenPairSchema",
]
