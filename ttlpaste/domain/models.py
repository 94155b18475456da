from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text, inspect, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, validates

from ttlpaste.db import Base


IMMUTABLE_FIELDS = ("content", "ttl_seconds", "max_views", "created_at", "expires_at")

# Upper bound for ttl_seconds and max_views; both are stored in INTEGER columns.
MAX_LIMIT = 2_147_483_647


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint("length(content) > 0", name="ck_pastes_content_non_empty"),
        CheckConstraint(
            "ttl_seconds IS NULL OR ttl_seconds >= 1",
            name="ck_pastes_ttl_seconds_min_1",
        ),
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint(
            "view_count >= 0",
            name="ck_pastes_view_count_non_negative",
        ),
        Index(
            "ix_pastes_expires_at",
            "expires_at",
            postgresql_where=text("expires_at IS NOT NULL"),
            sqlite_where=text("expires_at IS NOT NULL"),
        ),
        Index("ix_pastes_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    ttl_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    # Derived from created_at + ttl_seconds once, at insert time.
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @validates(*IMMUTABLE_FIELDS)
    def _validate_immutable(self, key: str, value: Any) -> Any:
        """
        Enforce that creation-time fields never change once the row exists.

        Values can be set freely on new (transient/pending) instances; any
        attempt to change them on a persisted paste raises ``ValueError``.
        """

        if inspect(self).has_identity and getattr(self, key) != value:
            raise ValueError(f"Paste {key} is immutable and cannot be modified.")
        return value

    def __repr__(self) -> str:
        return (
            f"<Paste id={self.id} view_count={self.view_count} "
            f"max_views={self.max_views} expires_at={self.expires_at}>"
        )
