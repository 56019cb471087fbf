"""authcore: credential and session-token service."""

from __future__ import annotations

from authcore.factory import create_app

__all__ = ["create_app"]
