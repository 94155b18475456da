from __future__ import annotations

from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ttlpaste.domain.availability import UnavailabilityReason
from ttlpaste.domain.models import MAX_LIMIT


class PasteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, strict=True, description="Paste content")
    ttl_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_LIMIT,
        description="Seconds until the paste expires (>= 1)",
    )
    max_views: Optional[int] = Field(
        default=None,
        ge=1,
        le=MAX_LIMIT,
        description="Maximum allowed views (>= 1)",
    )

    @field_validator("ttl_seconds", "max_views", mode="before")
    @classmethod
    def _require_json_number(cls, value: Any) -> Any:
        # Whole floats such as 5.0 are accepted; strings and booleans are not.
        if isinstance(value, (bool, str)):
            raise ValueError("must be a number")
        return value


class PasteCreatedResponse(BaseModel):
    id: UUID
    url: str


class PasteViewResponse(BaseModel):
    content: str
    remaining_views: Optional[int]
    expires_at: Optional[str]


class PasteUnavailableResponse(BaseModel):
    error: Literal["Paste not found", "Paste unavailable"]
    reason: UnavailabilityReason
    message: str


class ErrorResponse(BaseModel):
    error: str
    message: Optional[str] = None
    field: Optional[str] = None


class HealthResponse(BaseModel):
    ok: bool


class HealthDetailResponse(HealthResponse):
    database: Literal["connected", "disconnected"]
    timestamp: str
