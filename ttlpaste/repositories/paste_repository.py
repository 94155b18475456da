from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import Delete, Select, Update, delete, or_, select, update
from sqlalchemy.orm import Session

from ttlpaste.clock import to_utc
from ttlpaste.domain.errors import PasteValidationError
from ttlpaste.domain.models import MAX_LIMIT, Paste
from ttlpaste.observability import get_correlation_id


logger = logging.getLogger(__name__)


def _validate_optional_limit(value: Any, field: str) -> None:
    if value is None:
        return
    # bool is an int subclass; True must not sneak in as 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise PasteValidationError(f"{field} must be an integer.", field=field)
    if value < 1:
        raise PasteValidationError(f"{field} must be >= 1.", field=field)
    if value > MAX_LIMIT:
        raise PasteValidationError(f"{field} must be <= {MAX_LIMIT}.", field=field)


def validate_paste_parameters(
    content: Any,
    ttl_seconds: Any = None,
    max_views: Any = None,
) -> None:
    """Raise ``PasteValidationError`` unless the creation parameters are acceptable."""

    if not isinstance(content, str) or len(content) == 0:
        raise PasteValidationError("content must be a non-empty string.", field="content")
    _validate_optional_limit(ttl_seconds, "ttl_seconds")
    _validate_optional_limit(max_views, "max_views")


class PasteRepository:
    """
    Repository for Paste records.

    All database interaction for Paste should go through this class. The
    caller owns the session and is responsible for committing.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(
        self,
        *,
        content: str,
        now: datetime,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> Paste:
        """
        Create and persist a new Paste.

        ``expires_at`` is derived here, once, from ``now`` and ``ttl_seconds``.
        """

        validate_paste_parameters(content, ttl_seconds, max_views)

        created_at = to_utc(now)
        expires_at = (
            created_at + timedelta(seconds=ttl_seconds)
            if ttl_seconds is not None
            else None
        )
        paste = Paste(
            id=uuid.uuid4(),
            content=content,
            ttl_seconds=ttl_seconds,
            max_views=max_views,
            view_count=0,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._session.add(paste)
        # Flush so that constraint violations surface inside the caller's unit of work.
        self._session.flush()
        return paste

    def find(self, paste_id: uuid.UUID) -> Optional[Paste]:
        """Return a Paste by its id, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = (
            select(Paste)
            .where(Paste.id == paste_id)
            .execution_options(populate_existing=True)
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def conditionally_increment_view(
        self,
        paste_id: uuid.UUID,
        now: datetime,
    ) -> Optional[int]:
        """
        Consume one view if, at the moment of the UPDATE, the paste still has
        views left and has not expired.

        This is a single conditioned ``UPDATE ... RETURNING`` evaluated by the
        database, so concurrent callers can never overspend ``max_views``.
        Returns the new ``view_count``, or ``None`` when the guard failed or
        the row does not exist.
        """

        now_utc = to_utc(now)
        stmt: Update = (
            update(Paste)
            .where(
                Paste.id == paste_id,
                or_(Paste.max_views.is_(None), Paste.view_count < Paste.max_views),
                or_(Paste.expires_at.is_(None), Paste.expires_at > now_utc),
            )
            .values(view_count=Paste.view_count + 1)
            .returning(Paste.view_count)
            .execution_options(synchronize_session=False)
        )
        row = self._session.execute(stmt).one_or_none()
        if row is None:
            return None

        (new_count,) = row
        return int(new_count)

    def ping(self) -> None:
        """Round-trip to the database; raises if it is unreachable."""

        self._session.execute(select(1)).scalar_one()

    def purge_unavailable(
        self,
        now: datetime,
        *,
        grace_seconds: float = 0,
        limit: Optional[int] = None,
    ) -> int:
        """
        Delete pastes that can never be served again.

        Time-expired rows are removed once ``expires_at`` is more than
        ``grace_seconds`` in the past; view-exhausted rows are removed
        immediately. Returns the number of rows deleted.
        """

        cutoff = to_utc(now) - timedelta(seconds=grace_seconds)
        condition = or_(
            Paste.expires_at <= cutoff,
            Paste.view_count >= Paste.max_views,
        )

        ids_stmt: Select[tuple[uuid.UUID]] = select(Paste.id).where(condition)
        if limit is not None:
            ids_stmt = ids_stmt.limit(limit)
        ids = list(self._session.execute(ids_stmt).scalars())
        if not ids:
            return 0

        stmt: Delete = (
            delete(Paste)
            .where(Paste.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        deleted = self._session.execute(stmt).rowcount or 0

        logger.info(
            "Purged unavailable pastes",
            extra={
                "event": "paste_purge",
                "deleted_count": deleted,
                "correlation_id": get_correlation_id(),
            },
        )
        return deleted
