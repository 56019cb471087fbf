"""Factory Boy definition for :class:`authcore.models.user.User`."""

from __future__ import annotations

import factory

from authcore.infra.security.password_hasher import WerkzeugPasswordHasher
from authcore.models.user import User
from authcore.services._shared.ports import DEFAULT_ROLE
from tests.factories import BaseFactory

DEFAULT_PASSWORD = "Passw0rd!"

_hasher = WerkzeugPasswordHasher(method="pbkdf2:sha256:1000")


class UserFactory(BaseFactory):
    """
    Build persisted :class:`User` rows.

    ``password`` is a factory parameter: it is hashed into ``password_hash``
    and never stored in clear.
    """

    class Meta:
        model = User

    class Params:
        password = DEFAULT_PASSWORD

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    role = DEFAULT_ROLE
    refresh_token = None
    password_hash = factory.LazyAttribute(lambda o: _hasher.hash(o.password))
