"""Salted one-way password hashing backed by :mod:`werkzeug.security`."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field

from werkzeug.security import check_password_hash, generate_password_hash

from authcore.services._shared.errors import CorruptCredentialError
from authcore.services._shared.ports import PasswordHasher

log = logging.getLogger(__name__)

SUPPORTED_METHODS = ("scrypt", "pbkdf2")


@dataclass(slots=True)
class WerkzeugPasswordHasher(PasswordHasher):
    """
    Password hasher producing ``method$salt$digest`` encodings.

    Each call to :meth:`hash` draws a fresh random salt, so the instance holds
    no mutable state beyond a lazily built dummy hash and is safe to share
    across threads.

    :param method: Werkzeug hashing method (``"scrypt"`` or
        ``"pbkdf2:sha256:<iterations>"``).
    :param salt_length: Random salt length in characters.
    """

    method: str = "scrypt"
    salt_length: int = 16
    _dummy_hash: str | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.method.split(":", 1)[0] not in SUPPORTED_METHODS:
            raise ValueError(f"Unsupported password hash method: {self.method!r}")

    def hash(self, plaintext: str) -> str:
        """
        Hash ``plaintext`` with a fresh salt.

        :param plaintext: Raw password.
        :returns: Self-describing encoding holding method, salt and digest.
        :raises ValueError: If ``plaintext`` is not a non-empty string.
        """
        if not isinstance(plaintext, str) or not plaintext:
            raise ValueError("Password must be a non-empty string.")
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """
        Recompute the digest with the embedded salt and compare in constant time.

        :param plaintext: Candidate password.
        :param password_hash: Stored encoding.
        :returns: ``True`` on match, ``False`` otherwise (including empty input).
        :raises CorruptCredentialError: If the stored encoding is malformed.
        """
        self._ensure_well_formed(password_hash)
        if not isinstance(plaintext, str) or not plaintext:
            return False
        try:
            return bool(check_password_hash(password_hash, plaintext))
        except (ValueError, TypeError) as exc:
            # Unknown digest or bad cost parameters inside a well-shaped hash
            log.error("password_hash.unusable", extra={"reason": type(exc).__name__})
            raise CorruptCredentialError("Stored password hash is unusable.") from exc

    def dummy_verify(self, plaintext: str) -> None:
        """Spend the cost of one verification against a throwaway hash."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(secrets.token_urlsafe(16))
        check_password_hash(self._dummy_hash, plaintext or "")

    # ------------------------------------------------------------------ #

    @staticmethod
    def _ensure_well_formed(password_hash: str) -> None:
        if not isinstance(password_hash, str) or not password_hash:
            raise CorruptCredentialError("Stored password hash is empty.")
        parts = password_hash.split("$", 2)
        if len(parts) != 3 or not all(parts):
            raise CorruptCredentialError("Stored password hash is malformed.")
        if parts[0].split(":", 1)[0] not in SUPPORTED_METHODS:
            raise CorruptCredentialError("Stored password hash uses an unknown method.")
