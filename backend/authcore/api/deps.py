"""Shared API helpers: responses, timing and the authorization gate."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request

from authcore.core.extensions import get_auth_components
from authcore.services._shared.errors import UnauthenticatedError
from authcore.services._shared.ports import InvalidToken
from authcore.services.auth.service import AuthService

F = TypeVar("F", bound=Callable[..., Any])

log = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    """Identity attached to a request that passed the gate."""

    principal_id: str
    username: str
    role: str


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` built at startup."""
    return get_auth_components()["service"]


def authenticate_request() -> AuthenticatedIdentity:
    """
    Resolve the bearer access token of the current request.

    :returns: The identity carried by a valid access token.
    :raises UnauthenticatedError: If the header is absent, not a Bearer
        credential, or the token fails verification.
    """
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise UnauthenticatedError("You are not authenticated")
    token = header[len(BEARER_PREFIX) :].strip()

    outcome = get_auth_components()["verifier"].verify_access(token)
    if isinstance(outcome, InvalidToken):
        log.info("auth.gate.rejected", extra={"event": "auth.gate", "reason": outcome.reason.value})
        raise UnauthenticatedError("You are not authenticated")

    identity = outcome.identity
    return AuthenticatedIdentity(
        principal_id=identity.principal_id,
        username=identity.username,
        role=identity.role,
    )


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token before the view runs."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        g.identity = authenticate_request()
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_identity() -> AuthenticatedIdentity:
    """Return the identity resolved by :func:`require_auth` for this request."""
    identity = getattr(g, "identity", None)
    if identity is None:
        raise UnauthenticatedError("You are not authenticated")
    return identity


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def success(message: str, *, status: int = 200, **fields: Any) -> Response:
    """Wrap ``fields`` in the ``{"status": "success", "message": ...}`` envelope."""
    return json_response({"status": "success", "message": message, **fields}, status=status)


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
