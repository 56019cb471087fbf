"""Persistent principal record backing the SQL credential store."""

from __future__ import annotations

from sqlalchemy import Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates

from authcore.core.extensions import db
from authcore.services._shared.ports import (
    DEFAULT_ROLE,
    Principal,
    normalize_email,
    normalize_username,
)

from .base import PublicIdMixin, ReprMixin, TimestampMixin


class User(PublicIdMixin, ReprMixin, TimestampMixin, db.Model):
    """
    Authentication identity and its single active refresh session.

    Fields
    ------
    username : str
        Login handle. Stored normalized (lowercase, trimmed). Unique.
    email : str
        Contact email. Stored normalized (lowercase, trimmed). Unique.
    password_hash : str
        Salted hash produced by the password hasher; never serialized.
    role : str
        Authorization role embedded in issued tokens.
    refresh_token : str | None
        The one live refresh token, or ``None`` when signed out.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=DEFAULT_ROLE)
    refresh_token: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("email", name="uq_users_email"),
        Index("ix_users_refresh_token", "refresh_token"),
    )

    # -------------------- Validators --------------------
    @validates("username")
    def _normalize_username(self, key: str, value: str) -> str:
        """
        Normalize and validate username.

        :raises ValueError: If username is missing or only whitespace.
        """
        v = normalize_username(value)
        if not v:
            raise ValueError("Username is required.")
        return v

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        """
        Normalize and validate email.

        :raises ValueError: If email is missing or malformed.
        """
        v = normalize_email(value)
        # Minimal sanity check; full validation happens at API layer.
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("Email format looks invalid.")
        return v

    # -------------------- Mapping --------------------
    def to_principal(self) -> Principal:
        """Detach the row into the framework-free :class:`Principal` read model."""
        return Principal(
            id=self.id,
            username=self.username,
            email=self.email,
            password_hash=self.password_hash,
            role=self.role or DEFAULT_ROLE,
            active_refresh_token=self.refresh_token,
        )
