# comments in English; reST docstrings
from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import uuid4

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from authcore.services._shared.errors import DuplicateIdentityError, StoreUnavailableError
from authcore.services._shared.ports import (
    DEFAULT_ROLE,
    CredentialStore,
    NewPrincipal,
    Principal,
    normalize_username,
    tokens_match,
)

log = logging.getLogger(__name__)


def _s(value) -> str:
    """Decode a Redis reply whether or not the client decodes responses."""
    if value is None:
        return ""
    if isinstance(value, bytes | bytearray):
        return value.decode()
    return str(value)


@dataclass(slots=True)
class RedisCredentialStore(CredentialStore):
    """
    Redis-backed credential store.

    Layout
    ------
    - ``principal:{id}``: hash with the principal fields; ``refresh_token``
      is the empty string while signed out.
    - ``principal:username:{username}`` / ``principal:email:{email}``:
      uniqueness indexes pointing at the id.
    - ``principal:rt:{sha256(token)}``: reverse index from the active refresh
      token to the id.

    Multi-key writes use WATCH/MULTI/EXEC and retry on ``WatchError``.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis
    backend: str = "redis"

    # -------------------- helpers --------------------

    @staticmethod
    def _k(principal_id: str) -> str:
        return f"principal:{principal_id}"

    @staticmethod
    def _ku(username: str) -> str:
        return f"principal:username:{username}"

    @staticmethod
    def _ke(email: str) -> str:
        return f"principal:email:{email}"

    @staticmethod
    def _kt(token: str) -> str:
        digest = hashlib.sha256(token.encode()).hexdigest()
        return f"principal:rt:{digest}"

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            log.error(
                "credential_store.unavailable",
                extra={"event": "store.unavailable", "reason": type(exc).__name__},
            )
            raise StoreUnavailableError(self.backend, type(exc).__name__) from exc

    @staticmethod
    def _to_principal(h: dict) -> Principal | None:
        if not h:
            return None
        data = {_s(k): _s(v) for k, v in h.items()}
        return Principal(
            id=data["id"],
            username=data["username"],
            email=data["email"],
            password_hash=data["password_hash"],
            role=data.get("role") or DEFAULT_ROLE,
            active_refresh_token=data.get("refresh_token") or None,
        )

    # -------------------- reads ----------------------

    def get(self, principal_id: str) -> Principal | None:
        with self._guard():
            return self._to_principal(self.r.hgetall(self._k(principal_id)))

    def find_by_username(self, username: str) -> Principal | None:
        with self._guard():
            principal_id = self.r.get(self._ku(normalize_username(username)))
            if not principal_id:
                return None
            return self._to_principal(self.r.hgetall(self._k(_s(principal_id))))

    def find_by_refresh_token(self, token: str) -> Principal | None:
        if not token:
            return None
        with self._guard():
            principal_id = self.r.get(self._kt(token))
            if not principal_id:
                return None
            principal = self._to_principal(self.r.hgetall(self._k(_s(principal_id))))
        # The reverse index can lag a concurrent rotation; trust the hash.
        if principal is None or not principal.active_refresh_token:
            return None
        if not tokens_match(principal.active_refresh_token, token):
            return None
        return principal

    # -------------------- writes ---------------------

    def insert(self, new: NewPrincipal) -> Principal:
        principal_id = uuid4().hex
        k_user, k_email = self._ku(new.username), self._ke(new.email)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(k_user, k_email)
                        if p.exists(k_user):
                            p.unwatch()
                            raise DuplicateIdentityError("Principal", "username already registered")
                        if p.exists(k_email):
                            p.unwatch()
                            raise DuplicateIdentityError("Principal", "email already registered")
                        p.multi()
                        p.hset(
                            self._k(principal_id),
                            mapping={
                                "id": principal_id,
                                "username": new.username,
                                "email": new.email,
                                "password_hash": new.password_hash,
                                "role": new.role,
                                "refresh_token": "",
                            },
                        )
                        p.set(k_user, principal_id)
                        p.set(k_email, principal_id)
                        p.execute()
                    break
                except redis.WatchError:
                    # Someone touched an index key; re-check uniqueness.
                    continue
        return Principal(
            id=principal_id,
            username=new.username,
            email=new.email,
            password_hash=new.password_hash,
            role=new.role,
        )

    def set_refresh_token(self, principal_id: str, token: str) -> bool:
        key = self._k(principal_id)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        if not p.exists(key):
                            p.unwatch()
                            return False
                        previous = _s(p.hget(key, "refresh_token"))
                        p.multi()
                        p.hset(key, "refresh_token", token)
                        if previous:
                            p.delete(self._kt(previous))
                        p.set(self._kt(token), principal_id)
                        p.execute()
                    return True
                except redis.WatchError:
                    continue

    def update_refresh_token(
        self, principal_id: str, old_token_expected: str, new_token: str
    ) -> bool:
        """
        Atomically swap ``old_token_expected`` for ``new_token``.

        The principal hash is WATCHed; if another writer changes it between the
        read and EXEC the transaction aborts and the comparison is redone
        against the fresh value, which then no longer matches.
        """
        key = self._k(principal_id)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(key)
                        current = _s(p.hget(key, "refresh_token"))
                        if not tokens_match(current, old_token_expected):
                            p.unwatch()
                            return False
                        p.multi()
                        p.hset(key, "refresh_token", new_token)
                        p.delete(self._kt(old_token_expected))
                        p.set(self._kt(new_token), principal_id)
                        p.execute()
                    return True
                except redis.WatchError:
                    continue

    def clear_refresh_token(self, token: str) -> bool:
        if not token:
            return False
        k_token = self._kt(token)
        with self._guard():
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(k_token)
                        principal_id = _s(p.get(k_token))
                        if not principal_id:
                            p.unwatch()
                            return False
                        key = self._k(principal_id)
                        p.watch(key)
                        current = _s(p.hget(key, "refresh_token"))
                        p.multi()
                        p.delete(k_token)
                        if tokens_match(current, token):
                            p.hset(key, "refresh_token", "")
                        p.execute()
                    return tokens_match(current, token)
                except redis.WatchError:
                    continue

    def ping(self) -> bool:
        try:
            with self._guard():
                return bool(self.r.ping())
        except StoreUnavailableError:
            return False
