"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app

from authcore.api.deps import get_auth_service, json_response, timing

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application and credential store health information."""

    store = get_auth_service().store
    store_status = "ok" if store.ping() else "fail"
    if store_status != "ok":
        current_app.logger.error("healthcheck.store_error", extra={"reason": store.backend})
    payload = {
        "status": "ok" if store_status == "ok" else "degraded",
        "store": {"backend": store.backend, "status": store_status},
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if store_status == "ok" else 503)
