"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

from authcore.core.logger import JSONFormatter, configure_logging


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    configure_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG


def test_json_formatter_includes_auth_extras() -> None:
    record = logging.LogRecord("authcore.test", logging.INFO, __file__, 1, "auth.login.rejected", None, None)
    record.event = "auth.login"
    record.reason = "bad_password"
    record.principal_id = "p-1"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "auth.login.rejected"
    assert payload["event"] == "auth.login"
    assert payload["reason"] == "bad_password"
    assert payload["principal_id"] == "p-1"
    assert payload["request_id"] is None
