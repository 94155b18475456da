from __future__ import annotations

import uuid
from datetime import datetime, timezone
from http import HTTPStatus

from flask import Blueprint, current_app, redirect, request, url_for
from pydantic import ValidationError

from ttlpaste.api.schemas import (
    ErrorResponse,
    HealthDetailResponse,
    HealthResponse,
    PasteCreatedResponse,
    PasteCreateRequest,
    PasteUnavailableResponse,
    PasteViewResponse,
)
from ttlpaste.clock import Clock, FixedClock
from ttlpaste.db import SessionLocal
from ttlpaste.domain.availability import UnavailabilityReason
from ttlpaste.domain.errors import (
    PasteStoreError,
    PasteUnavailableError,
    PasteValidationError,
)
from ttlpaste.services.paste_service import PasteService

api_bp = Blueprint("api", __name__, url_prefix="/api")
# Serves the ``/p/<id>`` links handed out on creation.
share_bp = Blueprint("share", __name__)

TEST_NOW_HEADER = "X-Test-Now-Ms"


def _request_clock() -> Clock:
    """
    Clock for the current request.

    With ``TEST_MODE`` on, an ``X-Test-Now-Ms`` header (epoch milliseconds)
    pins "now" for this request; otherwise the header is ignored.
    """
    app_clock: Clock = current_app.extensions["ttlpaste.clock"]
    if not current_app.config.get("TEST_MODE", False):
        return app_clock

    raw = request.headers.get(TEST_NOW_HEADER)
    if not raw:
        return app_clock
    try:
        return FixedClock.from_epoch_ms(int(raw))
    except (ValueError, OverflowError, OSError):
        return app_clock


def _paste_service() -> PasteService:
    return PasteService(session_factory=SessionLocal, clock=_request_clock())


def _error(status: HTTPStatus, error: str, message: str | None = None, field: str | None = None):
    body = ErrorResponse(error=error, message=message, field=field)
    return body.model_dump(exclude_none=True), status


def _share_url(paste_id: str) -> str:
    base = current_app.config.get("PUBLIC_BASE_URL") or request.host_url
    return f"{base.rstrip('/')}/p/{paste_id}"


def _parse_paste_id(raw: str) -> uuid.UUID | None:
    """Parse a paste id, accepting only the hyphenated 36-character form."""
    try:
        uid = uuid.UUID(raw)
    except ValueError:
        return None
    # uuid.UUID also takes braces, urn:uuid: prefixes and bare hex.
    if str(uid) != raw.lower():
        return None
    return uid


@share_bp.route("/p/<paste_id>", methods=["GET"])
def open_share_link(paste_id: str):
    """Resolve a share link to the paste's JSON view."""
    return redirect(url_for("api.view_paste", paste_id=paste_id), code=HTTPStatus.FOUND)


@api_bp.route("/healthz", methods=["GET"])
def healthz() -> tuple[dict, int]:
    """Liveness probe reporting store reachability."""

    ok = _paste_service().ping()
    body = HealthResponse(ok=ok).model_dump()
    return body, HTTPStatus.OK if ok else HTTPStatus.SERVICE_UNAVAILABLE


@api_bp.route("/health", methods=["GET"])
def health() -> tuple[dict, int]:
    ok = _paste_service().ping()
    body = HealthDetailResponse(
        ok=ok,
        database="connected" if ok else "disconnected",
        timestamp=datetime.now(timezone.utc).isoformat(),
    ).model_dump()
    return body, HTTPStatus.OK if ok else HTTPStatus.SERVICE_UNAVAILABLE


@api_bp.route("/pastes", methods=["POST"])
def create_paste() -> tuple[dict, int]:
    """
    Create a new paste.

    Request shape is validated by Pydantic; the service re-checks its own
    invariants before touching the store.
    """
    data = request.get_json(silent=True)
    if data is None:
        return _error(
            HTTPStatus.BAD_REQUEST,
            "Invalid JSON",
            "Request body must be valid JSON",
        )

    try:
        payload = PasteCreateRequest.model_validate(data)
    except ValidationError as exc:
        first = exc.errors()[0]
        return _error(
            HTTPStatus.BAD_REQUEST,
            "Validation failed",
            first["msg"],
            ".".join(str(part) for part in first["loc"]) or None,
        )

    try:
        dto = _paste_service().create_paste(
            content=payload.content,
            ttl_seconds=payload.ttl_seconds,
            max_views=payload.max_views,
        )
    except PasteValidationError as exc:
        return _error(HTTPStatus.BAD_REQUEST, "Validation failed", str(exc), exc.field)
    except PasteStoreError:
        return _error(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Database error",
            "Failed to create paste",
        )

    body = PasteCreatedResponse(id=dto["id"], url=_share_url(dto["id"]))
    return body.model_dump(mode="json"), HTTPStatus.CREATED


@api_bp.route("/pastes/<paste_id>", methods=["GET"])
def view_paste(paste_id: str) -> tuple[dict, int]:
    """Return a paste's content, consuming one view."""
    uid = _parse_paste_id(paste_id)
    if uid is None:
        return _error(HTTPStatus.BAD_REQUEST, "Validation failed", "Invalid paste ID format")

    try:
        dto = _paste_service().view_paste(uid)
    except PasteUnavailableError as exc:
        body = PasteUnavailableResponse(
            error=(
                "Paste not found"
                if exc.reason is UnavailabilityReason.NOT_FOUND
                else "Paste unavailable"
            ),
            reason=exc.reason,
            message=str(exc),
        )
        return body.model_dump(mode="json"), HTTPStatus.NOT_FOUND
    except PasteStoreError:
        return _error(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Database error",
            "Failed to fetch paste",
        )

    body = PasteViewResponse(
        content=dto["content"],
        remaining_views=dto["remaining_views"],
        expires_at=dto["expires_at"],
    )
    return body.model_dump(), HTTPStatus.OK
