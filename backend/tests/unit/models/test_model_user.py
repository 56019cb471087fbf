"""Unit tests for the User model."""

from __future__ import annotations

import pytest

from authcore.models.user import User
from tests.factories.user import UserFactory


def test_user_normalizes_username_and_email(session):
    u = User(username="  Alice ", email=" Alice@Example.COM ", password_hash="x$y$z")

    assert u.username == "alice"
    assert u.email == "alice@example.com"


@pytest.mark.parametrize("email", ["", "no-at", "a@b"])
def test_user_rejects_bad_email(session, email):
    with pytest.raises(ValueError):
        User(username="alice", email=email, password_hash="x$y$z")


def test_user_rejects_blank_username(session):
    with pytest.raises(ValueError):
        User(username="   ", email="a@example.com", password_hash="x$y$z")


def test_to_principal_carries_session_but_repr_hides_it(session):
    u = UserFactory(username="erin", refresh_token="rt-secret")

    principal = u.to_principal()
    assert principal.id == u.id
    assert principal.role == "user"
    assert principal.active_refresh_token == "rt-secret"
    assert "rt-secret" not in repr(principal)
    assert repr(u) == f"<User id={u.id}>"
