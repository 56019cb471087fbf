# authcore/infra/sql/sqlalchemy_credential_store.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from authcore.models.user import User
from authcore.services._shared.errors import (
    DuplicateIdentityError,
    StoreUnavailableError,
    violates,
)
from authcore.services._shared.ports import CredentialStore, NewPrincipal, Principal
from authcore.uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

# Errors meaning "the database could not be reached in time", not "bad data".
_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError)


@dataclass(slots=True)
class SQLAlchemyCredentialStore(CredentialStore):
    """
    Relational credential store backed by the ``users`` table.

    Each operation runs in its own :class:`SQLAlchemyUnitOfWork`. The
    conditional refresh-token swap is a single guarded ``UPDATE`` whose
    ``rowcount`` tells the caller whether it won.

    :param uow_factory: Builds a unit of work bound to the current session.
    """

    uow_factory: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork
    backend: str = "sqlalchemy"

    @contextmanager
    def _unit(self) -> Iterator[SQLAlchemyUnitOfWork]:
        try:
            with self.uow_factory() as uow:
                yield uow
        except _UNAVAILABLE as exc:
            log.error(
                "credential_store.unavailable",
                extra={"event": "store.unavailable", "reason": type(exc).__name__},
            )
            raise StoreUnavailableError(self.backend, type(exc).__name__) from exc

    # ----------------------------- reads -----------------------------

    def get(self, principal_id: str) -> Principal | None:
        with self._unit() as uow:
            user = uow.users.get(principal_id)
            return user.to_principal() if user else None

    def find_by_username(self, username: str) -> Principal | None:
        with self._unit() as uow:
            user = uow.users.get_by_username(username)
            return user.to_principal() if user else None

    def find_by_refresh_token(self, token: str) -> Principal | None:
        if not token:
            return None
        with self._unit() as uow:
            user = uow.users.get_by_refresh_token(token)
            return user.to_principal() if user else None

    # ----------------------------- writes ----------------------------

    def insert(self, new: NewPrincipal) -> Principal:
        """
        Persist a new principal with no active session.

        :raises DuplicateIdentityError: When the unique username or email
            constraint rejects the row (also under concurrent signups).
        """
        try:
            with self._unit() as uow:
                user = uow.users.add(
                    User(
                        username=new.username,
                        email=new.email,
                        password_hash=new.password_hash,
                        role=new.role,
                    )
                )
                uow.users.flush()
                principal = user.to_principal()
        except IntegrityError as exc:
            if violates(exc, "uq_users_username", "users.username"):
                raise DuplicateIdentityError("Principal", "username already registered") from exc
            if violates(exc, "uq_users_email", "users.email"):
                raise DuplicateIdentityError("Principal", "email already registered") from exc
            raise
        return principal

    def set_refresh_token(self, principal_id: str, token: str) -> bool:
        with self._unit() as uow:
            return uow.users.set_refresh_token(principal_id, token)

    def update_refresh_token(
        self, principal_id: str, old_token_expected: str, new_token: str
    ) -> bool:
        with self._unit() as uow:
            return uow.users.compare_and_set_refresh_token(
                principal_id, old_token_expected, new_token
            )

    def clear_refresh_token(self, token: str) -> bool:
        if not token:
            return False
        with self._unit() as uow:
            return uow.users.clear_refresh_token(token)

    def ping(self) -> bool:
        try:
            with self._unit() as uow:
                uow.session.execute(text("SELECT 1"))
        except StoreUnavailableError:
            return False
        return True
