from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ttlpaste.clock import Clock, SystemClock, to_utc
from ttlpaste.domain.availability import (
    UnavailabilityReason,
    is_available,
    remaining_views,
    unavailability_reason,
)
from ttlpaste.domain.errors import (
    PasteStoreError,
    PasteUnavailableError,
    PasteValidationError,
)
from ttlpaste.domain.models import Paste
from ttlpaste.observability import get_correlation_id
from ttlpaste.repositories.paste_repository import (
    PasteRepository,
    validate_paste_parameters,
)


logger = logging.getLogger(__name__)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return to_utc(value).isoformat() if value is not None else None


def _paste_to_dto(paste: Paste) -> dict[str, Any]:
    """Convert a Paste ORM entity to a plain dict DTO."""
    return {
        "id": str(paste.id),
        "content": paste.content,
        "ttl_seconds": paste.ttl_seconds,
        "max_views": paste.max_views,
        "view_count": paste.view_count,
        "remaining_views": remaining_views(paste),
        "created_at": _isoformat(paste.created_at),
        "expires_at": _isoformat(paste.expires_at),
    }


_UNAVAILABLE_MESSAGES = {
    UnavailabilityReason.NOT_FOUND: "This paste does not exist or has been deleted.",
    UnavailabilityReason.EXPIRED: "This paste has expired and is no longer available.",
    UnavailabilityReason.MAX_VIEWS_REACHED: "This paste has reached its maximum view limit.",
}


def describe_unavailability(
    reason: UnavailabilityReason,
    paste: Optional[dict[str, Any]] = None,
) -> str:
    """Human-readable message for a failed view."""
    if paste is not None:
        if reason is UnavailabilityReason.EXPIRED and paste.get("expires_at"):
            return f"This paste expired at {paste['expires_at']}."
        if reason is UnavailabilityReason.MAX_VIEWS_REACHED and paste.get("max_views") is not None:
            return (
                f"This paste has reached its maximum view limit of {paste['max_views']} "
                f"views (currently at {paste['view_count']} views)."
            )
    return _UNAVAILABLE_MESSAGES[reason]


@dataclass
class PasteService:
    """
    Application service coordinating paste use cases.

    Owns session lifecycle: creates a session per use case, commits on success,
    rolls back on exception, and closes the session afterwards. Database
    failures are re-raised as ``PasteStoreError``; "this paste is gone" is
    never reported as an error of the store. Returns plain dict DTOs; no ORM
    entities escape this layer.

    ``now`` may be passed explicitly to every operation; when omitted the
    injected ``clock`` supplies it.
    """

    session_factory: Callable[[], Session]
    clock: Clock = field(default_factory=SystemClock)

    def _now(self, now: Optional[datetime]) -> datetime:
        return to_utc(now) if now is not None else self.clock.now()

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[PasteRepository]:
        session = self.session_factory()
        try:
            yield PasteRepository(session=session)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(
                "Paste store failure",
                exc_info=True,
                extra={
                    "event": f"{operation}_store_error",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise PasteStoreError(f"Paste store failed during {operation}.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Create a new paste.

        Parameters are validated before any session is opened, so an invalid
        request never reaches the store.
        """
        try:
            validate_paste_parameters(content, ttl_seconds, max_views)
        except PasteValidationError as exc:
            logger.warning(
                "Invalid parameters when creating paste",
                extra={
                    "event": "paste_create_invalid_parameters",
                    "error_type": type(exc).__name__,
                    "correlation_id": get_correlation_id(),
                },
            )
            raise

        created_at = self._now(now)
        with self._unit_of_work("paste_create") as repo:
            paste = repo.insert(
                content=content,
                ttl_seconds=ttl_seconds,
                max_views=max_views,
                now=created_at,
            )
            dto = _paste_to_dto(paste)

        logger.info(
            "Paste created",
            extra={
                "event": "paste_created",
                "paste_id": dto["id"],
                "correlation_id": get_correlation_id(),
            },
        )
        return dto

    # -------------------------------------------------------------------------
    # Side-effect-free reads
    # -------------------------------------------------------------------------
    def find_paste(self, paste_id: uuid.UUID) -> Optional[dict[str, Any]]:
        with self._unit_of_work("paste_find") as repo:
            paste = repo.find(paste_id)
            return _paste_to_dto(paste) if paste is not None else None

    def check_availability(
        self,
        paste_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> bool:
        """Dry-run availability check; never consumes a view."""
        at = self._now(now)
        with self._unit_of_work("paste_check") as repo:
            return is_available(repo.find(paste_id), at)

    # -------------------------------------------------------------------------
    # Consumption
    # -------------------------------------------------------------------------
    def try_consume(
        self,
        paste_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Consume one view of a paste.

        The availability check and the increment are one conditional UPDATE
        in the repository. Do not split this into "check, then increment":
        that reintroduces the race on the last view. The row is re-read in
        the same transaction to build the response.

        Returns the paste DTO (with the new ``view_count``) or ``None`` when
        the paste is missing, expired or exhausted.
        """
        at = self._now(now)
        with self._unit_of_work("paste_consume") as repo:
            new_count = repo.conditionally_increment_view(paste_id, at)
            if new_count is None:
                return None

            paste = repo.find(paste_id)
            if paste is None:
                # Deleted between the UPDATE and the re-read; only possible
                # with external housekeeping running.
                return None
            dto = _paste_to_dto(paste)

        logger.info(
            "Paste view consumed",
            extra={
                "event": "paste_view_consumed",
                "paste_id": dto["id"],
                "view_count": dto["view_count"],
                "remaining_views": dto["remaining_views"],
                "correlation_id": get_correlation_id(),
            },
        )
        return dto

    def diagnose_unavailability(
        self,
        paste_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> UnavailabilityReason:
        """
        Explain why ``try_consume`` failed.

        This is a second, separate read and is intentionally not atomic with
        the consume: state may have moved in between. The result only picks
        the wording of an error message and must never drive an access
        decision, so do not fold it into the consume query.
        """
        reason, _ = self._diagnose(paste_id, self._now(now))
        return reason

    def _diagnose(
        self,
        paste_id: uuid.UUID,
        at: datetime,
    ) -> tuple[UnavailabilityReason, Optional[dict[str, Any]]]:
        with self._unit_of_work("paste_diagnose") as repo:
            paste = repo.find(paste_id)
            reason = unavailability_reason(paste, at)
            return reason, _paste_to_dto(paste) if paste is not None else None

    def view_paste(
        self,
        paste_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Consume a view, or raise ``PasteUnavailableError`` carrying the
        diagnosed reason.
        """
        at = self._now(now)

        logger.info(
            "Paste access attempt",
            extra={
                "event": "paste_access_attempt",
                "paste_id": str(paste_id),
                "correlation_id": get_correlation_id(),
            },
        )

        dto = self.try_consume(paste_id, at)
        if dto is not None:
            return dto

        reason, paste = self._diagnose(paste_id, at)
        logger.info(
            "Paste unavailable",
            extra={
                "event": "paste_unavailable",
                "paste_id": str(paste_id),
                "reason": reason.value,
                "correlation_id": get_correlation_id(),
            },
        )
        raise PasteUnavailableError(
            describe_unavailability(reason, paste),
            reason=reason,
            paste=paste,
        )

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------
    def ping(self) -> bool:
        """Return whether the store answers a trivial query."""
        try:
            with self._unit_of_work("store_ping") as repo:
                repo.ping()
        except PasteStoreError:
            return False
        return True
