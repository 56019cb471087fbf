"""Centralized JSON error handling for the API.

Every failure leaves the service in the same envelope::

    {"status": "failure", "message": "...", "code": "...", "request_id": "..."}

Service errors are mapped in one table so that, for example, an unknown
username and a wrong password are indistinguishable to clients.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, NamedTuple

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from werkzeug.exceptions import HTTPException

from authcore.core.logger import ensure_request_id
from authcore.services._shared.errors import (
    BadCredentialError,
    CorruptCredentialError,
    DuplicateIdentityError,
    InvalidSessionError,
    InvalidSignatureError,
    MissingTokenError,
    NotFoundError,
    ServiceError,
    StoreUnavailableError,
    UnauthenticatedError,
    ValidationError,
)

log = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = 5


class ErrorSpec(NamedTuple):
    status: int
    code: str
    message: str


BAD_CREDENTIALS = ErrorSpec(HTTPStatus.UNAUTHORIZED, "bad_credentials", "Invalid username or password")
UNEXPECTED = ErrorSpec(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error")

# Order matters only for subclasses; the first isinstance match wins.
SERVICE_ERROR_MAP: tuple[tuple[type[ServiceError], ErrorSpec], ...] = (
    (DuplicateIdentityError, ErrorSpec(HTTPStatus.CONFLICT, "duplicate_identity", "Username or email already registered")),
    (NotFoundError, BAD_CREDENTIALS),
    (BadCredentialError, BAD_CREDENTIALS),
    (MissingTokenError, ErrorSpec(HTTPStatus.UNAUTHORIZED, "missing_token", "Refresh token is required")),
    (InvalidSessionError, ErrorSpec(HTTPStatus.UNAUTHORIZED, "invalid_session", "Refresh token is not valid")),
    (InvalidSignatureError, ErrorSpec(HTTPStatus.UNAUTHORIZED, "invalid_signature", "Refresh token is not valid")),
    (UnauthenticatedError, ErrorSpec(HTTPStatus.UNAUTHORIZED, "unauthenticated", "You are not authenticated")),
    (StoreUnavailableError, ErrorSpec(HTTPStatus.SERVICE_UNAVAILABLE, "store_unavailable", "Service temporarily unavailable")),
    (CorruptCredentialError, UNEXPECTED),
)


def _http_status_to_code(status_code: int) -> str:
    """Map common HTTP status codes to canonical, stable error codes."""
    mapping = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        413: "payload_too_large",
        415: "unsupported_media_type",
        429: "too_many_requests",
        500: "internal_server_error",
        503: "service_unavailable",
    }
    return mapping.get(status_code, "error")


def failure_body(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Build the uniform failure payload.

    :param code: Stable machine-consumable error code.
    :param message: Human-readable summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: JSON-ready dictionary.
    """
    body: dict[str, Any] = {"status": "failure", "message": message, "code": code}
    if details:
        body["details"] = details
    body["request_id"] = ensure_request_id()
    return body


def failure_response(
    *, status: int, code: str, message: str, details: dict[str, Any] | None = None
) -> tuple[Response, int]:
    resp = jsonify(failure_body(code=code, message=message, details=details))
    return resp, int(status)


def resolve_service_error(err: ServiceError) -> ErrorSpec:
    """Return the HTTP rendering of ``err`` (500 for unmapped subclasses)."""
    for exc_type, spec in SERVICE_ERROR_MAP:
        if isinstance(err, exc_type):
            return spec
    return UNEXPECTED


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - 4xx are logged as warnings without tracebacks.
    - 5xx are logged as errors with ``exc_info``.
    """

    @app.errorhandler(ValidationError)
    def handle_service_validation_error(err: ValidationError):
        log.warning("ValidationError: field=%s", err.name, extra={"status": 400})
        return failure_response(
            status=HTTPStatus.BAD_REQUEST,
            code="validation_error",
            message="Validation failed",
            details={"errors": {err.name: [err.detail]}},
        )

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        spec = resolve_service_error(err)
        if spec.status >= 500:
            log.error(
                "ServiceError: code=%s type=%s",
                spec.code,
                type(err).__name__,
                exc_info=err,
                extra={"status": spec.status},
            )
        else:
            log.warning(
                "ServiceError: code=%s type=%s",
                spec.code,
                type(err).__name__,
                extra={"status": spec.status},
            )
        resp, status = failure_response(status=spec.status, code=spec.code, message=spec.message)
        if isinstance(err, StoreUnavailableError):
            resp.headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
        return resp, status

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        log.warning("ValidationError: schema rejected payload", extra={"status": 400})
        return failure_response(
            status=HTTPStatus.BAD_REQUEST,
            code="validation_error",
            message="Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        error_code = _http_status_to_code(status)
        # Werkzeug may provide HTML-ish description; normalize for clients
        message = (err.description or error_code.replace("_", " ").capitalize()).strip()
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        level = log.error if status >= 500 else log.warning
        level("HTTPException: code=%s status=%s", error_code, status, extra={"status": status})
        resp, status = failure_response(status=status, code=error_code, message=message)
        retry_after = getattr(err, "retry_after", None)
        if retry_after:
            resp.headers["Retry-After"] = str(retry_after)
        return resp, status

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        log.error("Unhandled exception", exc_info=err, extra={"status": 500})
        return failure_response(status=UNEXPECTED.status, code=UNEXPECTED.code, message=UNEXPECTED.message)
