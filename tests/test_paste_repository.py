from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ttlpaste.clock import to_utc
from ttlpaste.domain.errors import PasteValidationError
from ttlpaste.domain.models import MAX_LIMIT, Paste
from ttlpaste.repositories.paste_repository import PasteRepository

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_insert_derives_expiry_once(paste_repo: PasteRepository, session: Session) -> None:
    paste = paste_repo.insert(content="hello", ttl_seconds=30, max_views=2, now=T0)
    session.commit()

    assert isinstance(paste.id, uuid.UUID)
    assert paste.view_count == 0
    assert to_utc(paste.created_at) == T0
    assert to_utc(paste.expires_at) == T0 + timedelta(seconds=30)


def test_insert_without_ttl_has_no_expiry(paste_repo: PasteRepository) -> None:
    paste = paste_repo.insert(content="forever", now=T0)
    assert paste.expires_at is None
    assert paste.max_views is None


def test_insert_accepts_limits_at_the_upper_bound(paste_repo: PasteRepository) -> None:
    paste = paste_repo.insert(content="x", ttl_seconds=MAX_LIMIT, max_views=MAX_LIMIT, now=T0)
    assert to_utc(paste.expires_at) == T0 + timedelta(seconds=MAX_LIMIT)
    assert paste.max_views == MAX_LIMIT


def test_insert_assigns_distinct_ids(paste_repo: PasteRepository) -> None:
    ids = {paste_repo.insert(content=f"paste {i}", now=T0).id for i in range(50)}
    assert len(ids) == 50


@pytest.mark.parametrize(
    ("kwargs", "field"),
    [
        ({"content": ""}, "content"),
        ({"content": "x", "ttl_seconds": 0}, "ttl_seconds"),
        ({"content": "x", "ttl_seconds": -5}, "ttl_seconds"),
        ({"content": "x", "max_views": 0}, "max_views"),
        ({"content": "x", "max_views": True}, "max_views"),
        ({"content": "x", "ttl_seconds": 1.5}, "ttl_seconds"),
        ({"content": "x", "ttl_seconds": MAX_LIMIT + 1}, "ttl_seconds"),
        ({"content": "x", "ttl_seconds": 10**15}, "ttl_seconds"),
        ({"content": "x", "max_views": MAX_LIMIT + 1}, "max_views"),
    ],
)
def test_insert_rejects_invalid_parameters(
    paste_repo: PasteRepository,
    kwargs: dict,
    field: str,
) -> None:
    with pytest.raises(PasteValidationError) as excinfo:
        paste_repo.insert(now=T0, **kwargs)
    assert excinfo.value.field == field


def test_find_has_no_side_effects(paste_repo: PasteRepository, session: Session) -> None:
    paste = paste_repo.insert(content="peek", max_views=1, now=T0)
    session.commit()

    for _ in range(3):
        found = paste_repo.find(paste.id)
        assert found is not None
        assert found.view_count == 0


def test_find_unknown_id_returns_none(paste_repo: PasteRepository) -> None:
    assert paste_repo.find(uuid.uuid4()) is None


def test_conditional_increment_respects_view_limit(
    paste_repo: PasteRepository,
    session: Session,
) -> None:
    paste = paste_repo.insert(content="twice", max_views=2, now=T0)
    session.commit()

    assert paste_repo.conditionally_increment_view(paste.id, T0) == 1
    assert paste_repo.conditionally_increment_view(paste.id, T0) == 2
    assert paste_repo.conditionally_increment_view(paste.id, T0) is None
    session.commit()

    refreshed = paste_repo.find(paste.id)
    assert refreshed is not None
    assert refreshed.view_count == 2


def test_conditional_increment_respects_expiry(
    paste_repo: PasteRepository,
    session: Session,
) -> None:
    paste = paste_repo.insert(content="brief", ttl_seconds=5, now=T0)
    session.commit()

    assert paste_repo.conditionally_increment_view(paste.id, T0 + timedelta(seconds=4.999)) == 1
    assert paste_repo.conditionally_increment_view(paste.id, T0 + timedelta(seconds=5)) is None
    assert paste_repo.conditionally_increment_view(paste.id, T0 + timedelta(seconds=60)) is None


def test_conditional_increment_on_missing_row(paste_repo: PasteRepository) -> None:
    assert paste_repo.conditionally_increment_view(uuid.uuid4(), T0) is None


def test_paste_content_is_immutable(paste_repo: PasteRepository) -> None:
    paste = paste_repo.insert(content="immutable content", ttl_seconds=10, now=T0)

    # Attempting to modify creation-time fields after insert should fail via validator.
    with pytest.raises(ValueError):
        paste.content = "new content"
    with pytest.raises(ValueError):
        paste.expires_at = T0 + timedelta(days=1)


def test_database_rejects_negative_view_count(session: Session) -> None:
    session.add(
        Paste(
            id=uuid.uuid4(),
            content="bad",
            view_count=-1,
            created_at=T0,
        )
    )
    with pytest.raises(IntegrityError):
        session.flush()


def test_purge_unavailable(paste_repo: PasteRepository, session: Session) -> None:
    # Capture ids up front; deleted rows cannot be refreshed after commit.
    expired_id = paste_repo.insert(content="old", ttl_seconds=1, now=T0).id
    recently_expired_id = paste_repo.insert(content="recent", ttl_seconds=50, now=T0).id
    exhausted_id = paste_repo.insert(content="spent", max_views=1, now=T0).id
    active_id = paste_repo.insert(content="live", ttl_seconds=3600, max_views=5, now=T0).id
    session.commit()
    assert paste_repo.conditionally_increment_view(exhausted_id, T0) == 1
    session.commit()

    deleted = paste_repo.purge_unavailable(T0 + timedelta(seconds=60), grace_seconds=30)
    session.commit()

    assert deleted == 2
    assert paste_repo.find(expired_id) is None
    assert paste_repo.find(exhausted_id) is None
    assert paste_repo.find(recently_expired_id) is not None
    assert paste_repo.find(active_id) is not None
