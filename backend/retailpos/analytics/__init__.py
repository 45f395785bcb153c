from __future__ import annotations

from flask import current_app

from .base import AnalyticsBackend, AnalyticsError
from .remote import HttpAnalyticsBackend
from .mock import MockAnalyticsBackend

__all__ = [
    "AnalyticsBackend",
    "AnalyticsError",
    "HttpAnalyticsBackend",
    "MockAnalyticsBackend",
    "get_analytics_backend",
]


def get_analytics_backend() -> AnalyticsBackend:
    """Backend selected by ANALYTICS_BACKEND ("mock" or "http"), cached per app."""
    backend = current_app.extensions.get("retailpos.analytics")
    if backend is not None:
        return backend

    kind = current_app.config.get("ANALYTICS_BACKEND", "mock")
    if kind == "mock":
        backend = MockAnalyticsBackend()
    elif kind == "http":
        backend = HttpAnalyticsBackend(
            current_app.config.get("ANALYTICS_ENDPOINT") or "",
            api_key=current_app.config.get("ANALYTICS_API_KEY"),
            timeout=float(current_app.config.get("ANALYTICS_TIMEOUT_SECONDS", 30)),
        )
    else:
        raise AnalyticsError(f"Unknown ANALYTICS_BACKEND: {kind}")

    current_app.extensions["retailpos.analytics"] = backend
    return backend
