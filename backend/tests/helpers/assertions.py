"""Assertion helper utilities for tests."""

from __future__ import annotations

from contextlib import contextmanager


def assert_json_keys(data: dict, required: set[str]) -> None:
    """Ensure that all required keys are present in ``data``.

    Raises
    ------
    AssertionError
        If any required key is missing.
    """

    missing = required - data.keys()
    assert not missing, f"Missing keys: {', '.join(sorted(missing))}"


def assert_failure(resp, status: int, code: str) -> dict:
    """Check the uniform failure envelope and return the decoded body."""

    assert resp.status_code == status, resp.get_data(as_text=True)
    body = resp.get_json()
    assert_json_keys(body, {"status", "message", "code", "request_id"})
    assert body["status"] == "failure"
    assert body["code"] == code
    return body


@contextmanager
def not_raises(exception: type[BaseException]):
    """Fail the test (instead of erroring) if ``exception`` escapes the block."""
    try:
        yield
    except exception as exc:  # pragma: no cover
        raise AssertionError(f"Did raise {exception}: {exc}") from exc
