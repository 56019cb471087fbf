# tests/unit/services/test_auth_service.py
from __future__ import annotations

import logging
import threading

import pytest
from freezegun import freeze_time

from authcore.services._shared.errors import (
    BadCredentialError,
    CorruptCredentialError,
    DuplicateIdentityError,
    InvalidSessionError,
    InvalidSignatureError,
    MissingTokenError,
    NotFoundError,
    ValidationError,
)
from authcore.services._shared.ports import InvalidToken, TokenClaims
from authcore.services.auth.dto import LoginIn, LogoutIn, RefreshIn, SignupIn
from tests.helpers.assertions import not_raises


# ------------------------------ Helpers ----------------------------------- #
def _signup_and_login(service, username="alice", password="pw123"):
    service.signup(SignupIn(username=username, email=f"{username}@x.com", password=password))
    return service.login(LoginIn(username=username, password=password))


# -------------------------------- Signup ---------------------------------- #
def test_signup_returns_public_identity_without_tokens(service, memory_store):
    out = service.signup(SignupIn(username="  Alice ", email="Alice@X.com", password="pw123"))

    assert out.username == "alice"
    assert out.email == "alice@x.com"
    assert out.role == "user"
    assert not hasattr(out, "password_hash")

    stored = memory_store.find_by_username("alice")
    assert stored.active_refresh_token is None
    assert stored.password_hash != "pw123"


def test_signup_duplicate_username_or_email(service):
    service.signup(SignupIn(username="alice", email="alice@x.com", password="pw123"))

    with pytest.raises(DuplicateIdentityError):
        service.signup(SignupIn(username="ALICE", email="other@x.com", password="pw123"))
    with pytest.raises(DuplicateIdentityError):
        service.signup(SignupIn(username="bob", email="alice@x.com", password="pw123"))


@pytest.mark.parametrize(
    ("username", "email", "password", "field"),
    [
        ("", "a@x.com", "pw", "username"),
        ("x" * 51, "a@x.com", "pw", "username"),
        ("alice", "", "pw", "email"),
        ("alice", "no-at-sign", "pw", "email"),
        ("alice", "a@x.com", "", "password"),
    ],
)
def test_signup_validation(service, username, email, password, field):
    with pytest.raises(ValidationError) as excinfo:
        service.signup(SignupIn(username=username, email=email, password=password))
    assert excinfo.value.name == field


# -------------------------------- Login ----------------------------------- #
def test_login_issues_pair_and_stores_refresh_token(service, memory_store, verifier):
    result = _signup_and_login(service)

    assert result.principal.username == "alice"
    assert isinstance(verifier.verify_access(result.tokens.access_token), TokenClaims)
    assert isinstance(verifier.verify_refresh(result.tokens.refresh_token), TokenClaims)
    stored = memory_store.find_by_username("alice")
    assert stored.active_refresh_token == result.tokens.refresh_token


def test_login_normalizes_username(service):
    service.signup(SignupIn(username="alice", email="alice@x.com", password="pw123"))
    result = service.login(LoginIn(username="  ALICE ", password="pw123"))
    assert result.principal.username == "alice"


def test_login_unknown_user_and_bad_password_are_distinct_internally(service, caplog):
    service.signup(SignupIn(username="alice", email="alice@x.com", password="pw123"))
    caplog.set_level(logging.INFO, logger="authcore.services.auth.service")

    with pytest.raises(NotFoundError):
        service.login(LoginIn(username="nobody", password="pw123"))
    with pytest.raises(BadCredentialError):
        service.login(LoginIn(username="alice", password="wrong"))

    reasons = [getattr(r, "reason", None) for r in caplog.records if r.msg == "auth.login.rejected"]
    assert reasons == ["not_found", "bad_password"]


def test_login_unknown_user_spends_dummy_hash(service, hasher, monkeypatch):
    calls = []
    monkeypatch.setattr(type(hasher), "dummy_verify", lambda self, pw: calls.append(pw))

    with pytest.raises(NotFoundError):
        service.login(LoginIn(username="ghost", password="pw123"))
    assert calls == ["pw123"]


def test_login_with_corrupt_stored_hash_raises(service, memory_store):
    service.signup(SignupIn(username="alice", email="alice@x.com", password="pw123"))
    principal = memory_store.find_by_username("alice")
    memory_store._by_id[principal.id] = type(principal)(
        id=principal.id,
        username=principal.username,
        email=principal.email,
        password_hash="garbage",
    )

    with pytest.raises(CorruptCredentialError):
        service.login(LoginIn(username="alice", password="pw123"))


def test_second_login_replaces_first_session(service, caplog):
    first = _signup_and_login(service)
    caplog.set_level(logging.INFO, logger="authcore.services.auth.service")

    second = service.login(LoginIn(username="alice", password="pw123"))

    assert any(r.msg == "auth.session.replaced" for r in caplog.records)
    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=first.tokens.refresh_token))
    assert service.refresh(RefreshIn(refresh_token=second.tokens.refresh_token))


# ------------------------------- Refresh ---------------------------------- #
def test_refresh_rotates_and_blocks_reuse(service, memory_store):
    """The old refresh token is dead the moment the new one is stored."""
    login = _signup_and_login(service)

    pair = service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))
    assert pair.refresh_token != login.tokens.refresh_token
    assert memory_store.find_by_username("alice").active_refresh_token == pair.refresh_token

    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))

    # The new token keeps working.
    assert service.refresh(RefreshIn(refresh_token=pair.refresh_token))


@pytest.mark.parametrize("token", [None, "", "   "])
def test_refresh_missing_token(service, token):
    with pytest.raises(MissingTokenError):
        service.refresh(RefreshIn(refresh_token=token))


def test_refresh_unknown_token(service):
    _signup_and_login(service)
    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token="never-issued"))


@pytest.mark.parametrize("token", ["été", "токен", "rt-\u2603"])
def test_refresh_non_ascii_token_is_invalid_session(service, memory_store, token):
    """Non-ASCII input is just another unknown token."""
    login = _signup_and_login(service)

    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=token))
    assert memory_store.find_by_username("alice").active_refresh_token == login.tokens.refresh_token
    assert service.logout(LogoutIn(refresh_token=token)) is False


def test_refresh_stored_but_unverifiable_token(service, memory_store):
    """A token that matches the store but fails signature checks is rejected."""
    _signup_and_login(service)
    principal = memory_store.find_by_username("alice")
    memory_store.set_refresh_token(principal.id, "forged.token.value")

    with pytest.raises(InvalidSignatureError) as excinfo:
        service.refresh(RefreshIn(refresh_token="forged.token.value"))
    assert excinfo.value.reason == "malformed"


def test_refresh_expired_token_clears_session(service, memory_store):
    with freeze_time("2026-01-01 12:00:00"):
        login = _signup_and_login(service)
    with freeze_time("2026-01-09 12:00:00"):
        with pytest.raises(InvalidSignatureError) as excinfo:
            service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))

    assert excinfo.value.reason == "expired"
    assert memory_store.find_by_username("alice").active_refresh_token is None


def test_refresh_loses_race_when_store_changed_underneath(service, memory_store, monkeypatch):
    """If the stored token moves between lookup and swap, the swap fails."""
    login = _signup_and_login(service)
    original = memory_store.update_refresh_token

    def _interleaved(principal_id, old, new):
        memory_store.set_refresh_token(principal_id, "someone-else-rotated")
        return original(principal_id, old, new)

    monkeypatch.setattr(memory_store, "update_refresh_token", _interleaved)

    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))


def test_concurrent_refresh_exactly_one_wins(service, memory_store):
    login = _signup_and_login(service)
    token = login.tokens.refresh_token
    workers = 8
    barrier = threading.Barrier(workers)
    wins, losses = [], []

    def _attempt():
        barrier.wait()
        try:
            wins.append(service.refresh(RefreshIn(refresh_token=token)))
        except InvalidSessionError:
            losses.append(True)

    threads = [threading.Thread(target=_attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(wins) == 1
    assert len(losses) == workers - 1
    assert memory_store.find_by_username("alice").active_refresh_token == wins[0].refresh_token


# -------------------------------- Logout ---------------------------------- #
def test_logout_clears_session(service, memory_store):
    login = _signup_and_login(service)

    assert service.logout(LogoutIn(refresh_token=login.tokens.refresh_token)) is True
    assert memory_store.find_by_username("alice").active_refresh_token is None
    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))


def test_logout_unknown_token_is_idempotent(service):
    login = _signup_and_login(service)
    service.logout(LogoutIn(refresh_token=login.tokens.refresh_token))

    with not_raises(Exception):
        assert service.logout(LogoutIn(refresh_token=login.tokens.refresh_token)) is False
        assert service.logout(LogoutIn(refresh_token="never-issued")) is False


def test_logout_missing_token(service):
    with pytest.raises(MissingTokenError):
        service.logout(LogoutIn(refresh_token=None))


def test_logout_does_not_invalidate_access_token(service, verifier):
    """Access tokens are stateless and live until their own expiry."""
    login = _signup_and_login(service)
    service.logout(LogoutIn(refresh_token=login.tokens.refresh_token))
    assert not isinstance(verifier.verify_access(login.tokens.access_token), InvalidToken)


# ------------------------------ Revocation -------------------------------- #
def test_revoke_sessions(service):
    login = _signup_and_login(service)

    assert service.revoke_sessions("Alice") is True
    assert service.revoke_sessions("alice") is False
    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))
    with pytest.raises(NotFoundError):
        service.revoke_sessions("ghost")


# ------------------------------ End to end -------------------------------- #
def test_end_to_end_alice(service, verifier):
    service.signup(SignupIn(username="alice", email="alice@x.com", password="pw123"))
    login = service.login(LoginIn(username="alice", password="pw123"))

    claims = verifier.verify_access(login.tokens.access_token)
    assert isinstance(claims, TokenClaims)
    assert claims.identity.username == "alice"

    with pytest.raises(BadCredentialError):
        service.login(LoginIn(username="alice", password="wrong"))

    service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))
    with pytest.raises(InvalidSessionError):
        service.refresh(RefreshIn(refresh_token=login.tokens.refresh_token))
