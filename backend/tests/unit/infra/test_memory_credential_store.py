"""Unit tests for InMemoryCredentialStore."""

from __future__ import annotations

import pytest

from authcore.services._shared.errors import DuplicateIdentityError
from authcore.services._shared.ports import NewPrincipal


def _new(username="alice", email="alice@x.com"):
    return NewPrincipal(username=username, email=email, password_hash="pbkdf2:sha256:1$s$d")


def test_insert_assigns_opaque_id_and_no_session(memory_store):
    principal = memory_store.insert(_new())

    assert principal.id
    assert principal.active_refresh_token is None
    assert memory_store.get(principal.id) == principal
    assert memory_store.find_by_username("  ALICE ") == principal


def test_insert_rejects_duplicates(memory_store):
    memory_store.insert(_new())
    with pytest.raises(DuplicateIdentityError):
        memory_store.insert(_new(email="other@x.com"))
    with pytest.raises(DuplicateIdentityError):
        memory_store.insert(_new(username="bob"))


def test_conditional_update(memory_store):
    principal = memory_store.insert(_new())
    memory_store.set_refresh_token(principal.id, "rt-1")

    assert memory_store.update_refresh_token(principal.id, "stale", "rt-2") is False
    assert memory_store.update_refresh_token(principal.id, "rt-1", "rt-2") is True
    assert memory_store.update_refresh_token(principal.id, "rt-1", "rt-3") is False
    assert memory_store.find_by_refresh_token("rt-2").id == principal.id
    assert memory_store.find_by_refresh_token("rt-1") is None


def test_clear_refresh_token(memory_store):
    principal = memory_store.insert(_new())
    memory_store.set_refresh_token(principal.id, "rt-1")

    assert memory_store.clear_refresh_token("rt-1") is True
    assert memory_store.clear_refresh_token("rt-1") is False
    assert memory_store.get(principal.id).active_refresh_token is None


def test_principal_repr_hides_secrets(memory_store):
    principal = memory_store.insert(_new())
    memory_store.set_refresh_token(principal.id, "rt-secret")

    text = repr(memory_store.get(principal.id))
    assert "rt-secret" not in text
    assert "pbkdf2" not in text
