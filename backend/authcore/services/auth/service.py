# authcore/services/auth/service.py
from __future__ import annotations

import logging

from authcore.services._shared.errors import (
    BadCredentialError,
    InvalidSessionError,
    InvalidSignatureError,
    MissingTokenError,
    NotFoundError,
    ValidationError,
)
from authcore.services._shared.ports import (
    DEFAULT_ROLE,
    CredentialStore,
    InvalidReason,
    InvalidToken,
    NewPrincipal,
    PasswordHasher,
    Principal,
    PrincipalClaims,
    TokenIssuer,
    TokenPairOut,
    TokenVerifier,
    normalize_email,
    normalize_username,
)
from authcore.services.auth.dto import (
    LoginIn,
    LoginOut,
    LogoutIn,
    PrincipalPublicOut,
    RefreshIn,
    SignupIn,
)

log = logging.getLogger(__name__)

USERNAME_MAX = 50
EMAIL_MAX = 254
PASSWORD_MAX = 128


class AuthService:
    """
    Session lifecycle service (signup / login / refresh / logout).

    Every principal holds at most one active refresh token. Login overwrites
    it, refresh swaps it with a conditional write, logout clears it. The
    service is stateless; all state lives in the :class:`CredentialStore`.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        verifier: TokenVerifier,
    ) -> None:
        """
        Initialize the service with its collaborators.

        :param store: Persistence for principals and their active session.
        :param hasher: Salted password hashing.
        :param issuer: Mints access/refresh tokens.
        :param verifier: Checks refresh tokens presented for renewal.
        """
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.verifier = verifier

    # ------------------------------------------------------------------ #
    # Signup
    # ------------------------------------------------------------------ #

    def signup(self, dto: SignupIn) -> PrincipalPublicOut:
        """
        Register a principal. No tokens are issued; signup is not login.

        :param dto: Signup input.
        :returns: Public identity of the new principal.
        :raises ValidationError: If a field is empty, oversized or malformed.
        :raises DuplicateIdentityError: If the username or email is taken.
        """
        username = normalize_username(dto.username)
        email = normalize_email(dto.email)
        self._validate_signup(username, email, dto.password)

        principal = self.store.insert(
            NewPrincipal(
                username=username,
                email=email,
                password_hash=self.hasher.hash(dto.password),
                role=DEFAULT_ROLE,
            )
        )
        log.info(
            "auth.signup.created",
            extra={"event": "auth.signup", "principal_id": principal.id},
        )
        return PrincipalPublicOut.from_principal(principal)

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Authenticate credentials and start a new session.

        :param dto: Login input.
        :returns: Public identity plus a fresh token pair.
        :raises NotFoundError: If no principal has this username.
        :raises BadCredentialError: If the password does not match.
        """
        username = normalize_username(dto.username)
        principal = self.store.find_by_username(username) if username else None
        if principal is None:
            # Same hashing cost as a real check so timing does not reveal the miss.
            self.hasher.dummy_verify(dto.password or "")
            log.info("auth.login.rejected", extra={"event": "auth.login", "reason": "not_found"})
            raise NotFoundError("Principal", username)

        if not self.hasher.verify(dto.password or "", principal.password_hash):
            log.info(
                "auth.login.rejected",
                extra={
                    "event": "auth.login",
                    "reason": "bad_password",
                    "principal_id": principal.id,
                },
            )
            raise BadCredentialError("Invalid username or password")

        tokens = self.issuer.issue_pair(self._claims(principal))
        if not self.store.set_refresh_token(principal.id, tokens.refresh_token):
            # Deleted between lookup and write.
            raise NotFoundError("Principal", username)

        if principal.active_refresh_token:
            log.info(
                "auth.session.replaced",
                extra={"event": "auth.session.replaced", "principal_id": principal.id},
            )
        log.info("auth.login.succeeded", extra={"event": "auth.login", "principal_id": principal.id})
        return LoginOut(principal=PrincipalPublicOut.from_principal(principal), tokens=tokens)

    # ------------------------------------------------------------------ #
    # Refresh with rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Exchange the active refresh token for a new pair.

        The presented token is first matched against the store, then
        verified, then swapped for the new refresh token with a conditional
        write. Of two concurrent refreshes with the same token exactly one
        wins the swap; the other gets :class:`InvalidSessionError`.

        :param dto: Refresh input.
        :returns: New access/refresh pair.
        :raises MissingTokenError: If no token was supplied.
        :raises InvalidSessionError: If the token is not the active one.
        :raises InvalidSignatureError: If the token fails verification.
        """
        presented = (dto.refresh_token or "").strip()
        if not presented:
            raise MissingTokenError("Refresh token is required")

        principal = self.store.find_by_refresh_token(presented)
        if principal is None:
            log.info("auth.refresh.rejected", extra={"event": "auth.refresh", "reason": "no_session"})
            raise InvalidSessionError("Refresh token is not valid")

        outcome = self.verifier.verify_refresh(presented)
        if isinstance(outcome, InvalidToken):
            if outcome.reason is InvalidReason.EXPIRED:
                # Dead session; drop it so it cannot be matched again.
                self.store.clear_refresh_token(presented)
            log.warning(
                "auth.refresh.rejected",
                extra={
                    "event": "auth.refresh",
                    "reason": outcome.reason.value,
                    "principal_id": principal.id,
                },
            )
            raise InvalidSignatureError(outcome.reason.value)

        if outcome.principal_id != principal.id:
            log.warning(
                "auth.refresh.rejected",
                extra={
                    "event": "auth.refresh",
                    "reason": "subject_mismatch",
                    "principal_id": principal.id,
                },
            )
            raise InvalidSignatureError("subject_mismatch")

        tokens = self.issuer.issue_pair(self._claims(principal))
        if not self.store.update_refresh_token(principal.id, presented, tokens.refresh_token):
            log.info(
                "auth.refresh.rejected",
                extra={"event": "auth.refresh", "reason": "lost_race", "principal_id": principal.id},
            )
            raise InvalidSessionError("Refresh token is not valid")

        log.info("auth.refresh.rotated", extra={"event": "auth.refresh", "principal_id": principal.id})
        return tokens

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, dto: LogoutIn) -> bool:
        """
        End the session holding ``dto.refresh_token``.

        Unknown or already revoked tokens are accepted.

        :returns: ``True`` if a session was cleared.
        :raises MissingTokenError: If no token was supplied.
        """
        presented = (dto.refresh_token or "").strip()
        if not presented:
            raise MissingTokenError("Refresh token is required")

        cleared = self.store.clear_refresh_token(presented)
        log.info(
            "auth.logout.completed" if cleared else "auth.logout.noop",
            extra={"event": "auth.logout", "reason": None if cleared else "no_session"},
        )
        return cleared

    # ------------------------------------------------------------------ #
    # Administration
    # ------------------------------------------------------------------ #

    def revoke_sessions(self, username: str) -> bool:
        """
        Clear the active session of ``username`` (operator action).

        :returns: ``True`` if a live session was cleared.
        :raises NotFoundError: If no principal has this username.
        """
        key = normalize_username(username)
        principal = self.store.find_by_username(key)
        if principal is None:
            raise NotFoundError("Principal", key)
        if not principal.active_refresh_token:
            return False
        cleared = self.store.clear_refresh_token(principal.active_refresh_token)
        log.info(
            "auth.session.revoked",
            extra={"event": "auth.session.revoked", "principal_id": principal.id},
        )
        return cleared

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    @staticmethod
    def _claims(principal: Principal) -> PrincipalClaims:
        return PrincipalClaims(
            principal_id=principal.id,
            username=principal.username,
            role=principal.role,
        )

    @staticmethod
    def _validate_signup(username: str, email: str, password: str | None) -> None:
        if not username:
            raise ValidationError("username", "Username is required.")
        if len(username) > USERNAME_MAX:
            raise ValidationError("username", f"Username must be at most {USERNAME_MAX} characters.")
        if not email:
            raise ValidationError("email", "Email is required.")
        if len(email) > EMAIL_MAX:
            raise ValidationError("email", f"Email must be at most {EMAIL_MAX} characters.")
        local, _, domain = email.partition("@")
        if not local or "." not in domain:
            raise ValidationError("email", "Email format looks invalid.")
        if not isinstance(password, str) or not password:
            raise ValidationError("password", "Password is required.")
        if len(password) > PASSWORD_MAX:
            raise ValidationError("password", f"Password must be at most {PASSWORD_MAX} characters.")
