"""Generic repository base for SQLAlchemy 2.x.

Repositories hold persistence-only concerns:

- No business logic, no commit/rollback; the Unit of Work owns transactions.
- Lookups return mapped entities; the credential store maps them to the
  framework-free read model.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy.orm import Session

from authcore.core.extensions import db

E = TypeVar("E")  # SQLAlchemy mapped entity type


class BaseRepository(Generic[E]):
    """Generic, persistence-only repository for a single aggregate.

    Subclasses MUST define ``model``: the SQLAlchemy mapped class.

    This class NEVER opens, commits or rolls back transactions.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """Initialise the repository with an optional SQLAlchemy session.

        When no explicit session is provided the repository falls back to the
        Flask-scoped session exposed by ``authcore.core.extensions``.

        :param session: Session shared across the Unit of Work scope.
        :type session: :class:`sqlalchemy.orm.Session` | None
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        """Return the injected session, else the Flask-scoped one."""
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    # ------------------------------ CRUD ------------------------------------

    def add(self, instance: E) -> E:
        """Stage a new entity in the session (no flush).

        :param instance: Transient entity.
        :returns: The same instance, now pending.
        """
        self.session.add(instance)
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Return the entity with primary key ``entity_id`` or ``None``."""
        return self.session.get(self.model, entity_id)

    def flush(self) -> None:
        """Flush pending changes so constraint violations surface early."""
        self.session.flush()
