"""User repository: lookups and refresh-session writes."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select, update
from sqlalchemy.engine import CursorResult

from authcore.models.user import User
from authcore.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Refresh-token writes are issued as single ``UPDATE`` statements so the
    database evaluates the guard and the assignment atomically.
    """

    model = User

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_username(self, username: str) -> User | None:
        """Fetch a user by (already normalized) username."""
        stmt = select(User).where(User.username == username)
        return self.session.execute(stmt).scalars().first()

    def get_by_refresh_token(self, token: str) -> User | None:
        """Fetch the user whose active refresh token equals ``token``."""
        stmt = select(User).where(User.refresh_token == token)
        return self.session.execute(stmt).scalars().first()

    # ---------------------------- Session writes ----------------------------

    def set_refresh_token(self, user_id: str, token: str | None) -> bool:
        """
        Overwrite the active refresh token unconditionally.

        :returns: ``True`` if a row was updated.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(refresh_token=token)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt) == 1

    def compare_and_set_refresh_token(self, user_id: str, expected: str, new: str) -> bool:
        """
        Swap ``expected`` for ``new`` only while ``expected`` is still stored.

        Two concurrent callers holding the same ``expected`` value race on the
        row lock; the loser sees ``rowcount == 0``.

        :returns: ``True`` if this call won the swap.
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.refresh_token == expected)
            .values(refresh_token=new)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt) == 1

    def clear_refresh_token(self, token: str) -> bool:
        """
        Null out the session holding ``token``.

        :returns: ``True`` if a session was cleared.
        """
        stmt = (
            update(User)
            .where(User.refresh_token == token)
            .values(refresh_token=None)
            .execution_options(synchronize_session=False)
        )
        return self._rowcount(stmt) > 0

    def _rowcount(self, stmt) -> int:
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)
