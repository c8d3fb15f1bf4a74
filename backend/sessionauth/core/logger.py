"""Structured logging configuration with request correlation and redaction."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
CORRELATION_HEADERS = ("X-Request-ID", "X-Correlation-ID")

# ``extra=`` keys the session layer attaches to its records
EXTRA_KEYS = ("flow", "cause", "subject", "provider_status", "elapsed_ms")

# Never rendered, even if a caller passes them through ``extra=``
REDACTED_KEYS = frozenset({"token", "password", "code", "secret", "authorization"})
REDACTED = "***"


class JSONFormatter(logging.Formatter):
    """Render log records as one JSON object per line.

    :param extra_keys: Record attributes copied into the payload when present.
    """

    def __init__(self, extra_keys: tuple[str, ...] = EXTRA_KEYS) -> None:
        super().__init__()
        self.extra_keys = extra_keys

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for key in self.extra_keys:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        for key in REDACTED_KEYS:
            if hasattr(record, key):
                payload[key] = REDACTED
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RequestIdFilter(logging.Filter):
    """Ensure a ``request_id`` attribute is always present on log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = ensure_request_id()
        elif not hasattr(record, "request_id"):
            record.request_id = None
        return True


def ensure_request_id() -> str:
    """Return the current request identifier, generating one when necessary."""

    if not has_request_context():
        return str(uuid4())
    if hasattr(g, "request_id"):
        return g.request_id  # type: ignore[return-value]
    incoming = next(
        (request.headers[h] for h in CORRELATION_HEADERS if request.headers.get(h)), None
    )
    g.request_id = incoming or str(uuid4())
    return g.request_id


def mask_phone(phone_number: str | None) -> str:
    """Return ``phone_number`` with everything but the last two digits masked."""

    if not phone_number:
        return ""
    return "*" * max(0, len(phone_number) - 2) + phone_number[-2:]


def configure_logging(level: str | int = "INFO", *, stream=None) -> None:
    """Install a single JSON handler on the root logger.

    :param level: Level name or number; unknown names fall back to ``INFO``.
    :param stream: Output stream, ``sys.stdout`` by default.
    """

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestIdFilter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        level = resolved if isinstance(resolved, int) else logging.INFO
    root.setLevel(level)


def init_app(app: Flask) -> None:
    """Seed a request id per request and echo it back in the response."""

    app.logger.addFilter(RequestIdFilter())

    @app.before_request
    def _seed_request_id() -> None:  # pragma: no cover - integration glue
        ensure_request_id()

    @app.after_request
    def _inject_response_header(response):  # pragma: no cover - integration glue
        response.headers.setdefault(REQUEST_ID_HEADER, ensure_request_id())
        return response


__all__ = ["configure_logging", "init_app", "ensure_request_id", "mask_phone", "JSONFormatter"]
