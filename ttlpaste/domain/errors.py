from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .availability import UnavailabilityReason


class PasteError(Exception):
    """Base class for paste-related errors."""


class PasteValidationError(PasteError):
    """Raised when a paste is created with invalid parameters (caller's fault)."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PasteUnavailableError(PasteError):
    """
    Raised when a paste cannot be viewed: it does not exist, it has expired,
    or its view budget is spent.

    ``reason`` is diagnostic only and never used for access decisions.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: "UnavailabilityReason",
        paste: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.paste = paste


class PasteStoreError(PasteError):
    """Raised when the persistence layer fails (connectivity, constraints, conflicts)."""
