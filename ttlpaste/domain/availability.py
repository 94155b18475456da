from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional, Protocol

from ttlpaste.clock import to_utc


class PasteState(str, enum.Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"


class UnavailabilityReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MAX_VIEWS_REACHED = "max_views_reached"


class PasteLimits(Protocol):
    """Anything carrying the fields availability depends on (ORM row or stand-in)."""

    expires_at: Optional[datetime]
    max_views: Optional[int]
    view_count: int


def _is_time_expired(paste: PasteLimits, now: datetime) -> bool:
    if paste.expires_at is None:
        return False
    return to_utc(now) >= to_utc(paste.expires_at)


def _is_view_exhausted(paste: PasteLimits) -> bool:
    if paste.max_views is None:
        return False
    return paste.view_count >= paste.max_views


def paste_state(paste: PasteLimits, now: datetime) -> PasteState:
    """
    Conceptual lifecycle state of a paste at ``now``.

    ACTIVE → EXPIRED (ttl elapsed) and ACTIVE → EXHAUSTED (view budget spent)
    are the only transitions; both targets are absorbing. Expiry is reported
    first when both hold.
    """
    if _is_time_expired(paste, now):
        return PasteState.EXPIRED
    if _is_view_exhausted(paste):
        return PasteState.EXHAUSTED
    return PasteState.ACTIVE


def is_available(paste: Optional[PasteLimits], now: datetime) -> bool:
    """Non-consuming availability check. Has no side effects."""
    if paste is None:
        return False
    return paste_state(paste, now) is PasteState.ACTIVE


def remaining_views(paste: PasteLimits) -> Optional[int]:
    """``None`` for unlimited pastes, otherwise the non-negative views left."""
    if paste.max_views is None:
        return None
    return max(0, paste.max_views - paste.view_count)


def unavailability_reason(
    paste: Optional[PasteLimits],
    now: datetime,
) -> UnavailabilityReason:
    """
    Explain why a paste could not be consumed.

    - Missing paste → NOT_FOUND.
    - ``now >= expires_at`` → EXPIRED, regardless of view count.
    - ``view_count >= max_views`` → MAX_VIEWS_REACHED.
    - Otherwise NOT_FOUND as a fallback (the paste looks available again,
      which can only happen if state moved between the failed consume and
      this read).
    """
    if paste is None:
        return UnavailabilityReason.NOT_FOUND

    state = paste_state(paste, now)
    if state is PasteState.EXPIRED:
        return UnavailabilityReason.EXPIRED
    if state is PasteState.EXHAUSTED:
        return UnavailabilityReason.MAX_VIEWS_REACHED
    return UnavailabilityReason.NOT_FOUND
