from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from flask import Flask, g, request


STRUCTURED_FIELDS = (
    "event",
    "correlation_id",
    "http_method",
    "http_path",
    "status_code",
    "duration_ms",
    "paste_id",
    "reason",
    "view_count",
    "remaining_views",
    "deleted_count",
    "error_type",
)


class _RequestContextFilter(logging.Filter):
    """
    Logging filter that enriches records with request-scoped information.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            if getattr(record, "correlation_id", None) is None:
                record.correlation_id = getattr(g, "correlation_id", None)
            record.http_method = getattr(request, "method", None)
            record.http_path = getattr(request, "path", None)
        except RuntimeError:
            # No active request context; leave values as-is or None.
            record.correlation_id = getattr(record, "correlation_id", None)
        return True


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in STRUCTURED_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log[key] = value

        if record.exc_info:
            log["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log, ensure_ascii=False, default=str)


def get_correlation_id() -> str | None:
    """
    Return the current request's correlation_id, if any.
    """

    try:
        return getattr(g, "correlation_id", None)
    except RuntimeError:
        return None


def configure_logging(level: str | int = logging.INFO) -> None:
    """
    Configure application-wide structured JSON logging.
    """

    root = logging.getLogger()
    root.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(_RequestContextFilter())

    # Replace existing handlers to avoid duplicate logs.
    root.handlers = [handler]


def init_observability(app: Flask) -> None:
    """
    Initialize observability for the Flask app.

    - Configures JSON logging at ``LOG_LEVEL``.
    - Sets up per-request correlation IDs, echoed back in ``X-Correlation-ID``.
    - Emits one access log line per request.
    """

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    access_logger = logging.getLogger("ttlpaste.access")

    @app.before_request
    def _set_correlation_id() -> None:  # type: ignore[unused-variable]
        incoming = request.headers.get("X-Correlation-ID")
        g.correlation_id = incoming or str(uuid4())
        g.request_started = time.perf_counter()

    @app.after_request
    def _propagate_correlation_id(response):  # type: ignore[unused-variable]
        cid = get_correlation_id()
        if cid:
            response.headers["X-Correlation-ID"] = cid

        started = getattr(g, "request_started", None)
        access_logger.info(
            "Request handled",
            extra={
                "event": "http_request",
                "status_code": response.status_code,
                "duration_ms": (
                    round((time.perf_counter() - started) * 1000, 2)
                    if started is not None
                    else None
                ),
            },
        )
        return response
