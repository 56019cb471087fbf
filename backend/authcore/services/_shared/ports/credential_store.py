from __future__ import annotations

import hmac
import threading
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import uuid4

from authcore.services._shared.errors import DuplicateIdentityError

DEFAULT_ROLE = "user"


def normalize_username(raw: str | None) -> str:
    """Trim and lowercase a username (the store's lookup key)."""
    return (raw or "").strip().lower()


def normalize_email(raw: str | None) -> str:
    """Trim and lowercase an email address."""
    return (raw or "").strip().lower()


def tokens_match(stored: str | None, presented: str | None) -> bool:
    """Constant-time token comparison that accepts any text, not just ASCII."""
    if not stored or not presented:
        return False
    return hmac.compare_digest(stored.encode(), presented.encode())


@dataclass(frozen=True)
class Principal:
    """
    Read-model for a stored principal (user account).

    :ivar id: Opaque, server-generated identifier.
    :ivar username: Normalized unique username.
    :ivar email: Normalized unique email.
    :ivar password_hash: Salted hash; never leaves the service layer.
    :ivar role: Authorization role embedded in tokens.
    :ivar active_refresh_token: The single live refresh token, if any.
    """

    id: str
    username: str
    email: str
    password_hash: str
    role: str = DEFAULT_ROLE
    active_refresh_token: str | None = None

    def __repr__(self) -> str:
        # Never leak hashes or tokens into logs.
        return f"<Principal id={self.id} username={self.username!r}>"


@dataclass(frozen=True)
class NewPrincipal:
    """Insert payload for :meth:`CredentialStore.insert` (already normalized and hashed)."""

    username: str
    email: str
    password_hash: str
    role: str = DEFAULT_ROLE


class CredentialStore(Protocol):
    """
    Persistence port holding one record per principal.

    ``update_refresh_token`` MUST be a conditional write: it only succeeds
    while the stored token still equals ``old_token_expected``. Connectivity
    failures MUST surface as ``StoreUnavailableError``.
    """

    backend: str

    def get(self, principal_id: str) -> Principal | None:
        """Fetch a principal by id."""

    def find_by_username(self, username: str) -> Principal | None:
        """Fetch a principal by normalized username."""

    def find_by_refresh_token(self, token: str) -> Principal | None:
        """Fetch the principal whose active refresh token equals ``token``."""

    def insert(self, new: NewPrincipal) -> Principal:
        """
        Persist a new principal with no active session.

        :raises DuplicateIdentityError: If the username or email is taken.
        """

    def set_refresh_token(self, principal_id: str, token: str) -> bool:
        """Unconditionally replace the active refresh token (login). :returns: True if the principal exists."""

    def update_refresh_token(
        self, principal_id: str, old_token_expected: str, new_token: str
    ) -> bool:
        """Atomically swap ``old_token_expected`` for ``new_token``. :returns: True on success."""

    def clear_refresh_token(self, token: str) -> bool:
        """Clear the session holding ``token``. :returns: True if a session was cleared."""

    def ping(self) -> bool:
        """Return True when the backend is reachable."""


class InMemoryCredentialStore(CredentialStore):
    """
    Process-local credential store.

    .. note::
       A single lock makes every operation atomic; used in unit tests and
       when ``CREDENTIAL_STORE=memory``.
    """

    backend = "memory"

    def __init__(self) -> None:
        self._by_id: dict[str, Principal] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    def _find(self, predicate) -> Principal | None:
        for principal in self._by_id.values():
            if predicate(principal):
                return principal
        return None

    # -------------------------- API ----------------------------

    def get(self, principal_id: str) -> Principal | None:
        with self._lock:
            return self._by_id.get(principal_id)

    def find_by_username(self, username: str) -> Principal | None:
        key = normalize_username(username)
        with self._lock:
            return self._find(lambda p: p.username == key)

    def find_by_refresh_token(self, token: str) -> Principal | None:
        if not token:
            return None
        with self._lock:
            return self._find(
                lambda p: tokens_match(p.active_refresh_token, token)
            )

    def insert(self, new: NewPrincipal) -> Principal:
        with self._lock:
            if self._find(lambda p: p.username == new.username):
                raise DuplicateIdentityError("Principal", "username already registered")
            if self._find(lambda p: p.email == new.email):
                raise DuplicateIdentityError("Principal", "email already registered")
            principal = Principal(
                id=uuid4().hex,
                username=new.username,
                email=new.email,
                password_hash=new.password_hash,
                role=new.role,
            )
            self._by_id[principal.id] = principal
            return principal

    def set_refresh_token(self, principal_id: str, token: str) -> bool:
        with self._lock:
            current = self._by_id.get(principal_id)
            if current is None:
                return False
            self._by_id[principal_id] = replace(current, active_refresh_token=token)
            return True

    def update_refresh_token(
        self, principal_id: str, old_token_expected: str, new_token: str
    ) -> bool:
        with self._lock:
            current = self._by_id.get(principal_id)
            if current is None or current.active_refresh_token != old_token_expected:
                return False
            self._by_id[principal_id] = replace(current, active_refresh_token=new_token)
            return True

    def clear_refresh_token(self, token: str) -> bool:
        if not token:
            return False
        with self._lock:
            current = self._find(lambda p: p.active_refresh_token == token)
            if current is None:
                return False
            self._by_id[current.id] = replace(current, active_refresh_token=None)
            return True

    def ping(self) -> bool:
        return True
