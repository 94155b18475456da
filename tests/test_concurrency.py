from __future__ import annotations

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine, pool
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ttlpaste.clock import FixedClock
from ttlpaste.db import create_schema
from ttlpaste.services.paste_service import PasteService

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def file_engine(tmp_path) -> Generator[Engine, None, None]:
    """
    File-backed SQLite so every thread gets its own connection; writers are
    serialized by SQLite's database lock, waiting up to ``timeout`` seconds.
    """
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=pool.NullPool,
    )
    create_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def service(file_engine: Engine) -> PasteService:
    return PasteService(
        session_factory=sessionmaker(bind=file_engine, autoflush=False),
        clock=FixedClock(T0),
    )


def _race(service: PasteService, paste_id: uuid.UUID, callers: int) -> list:
    barrier = threading.Barrier(callers)

    def consume(_: int):
        barrier.wait()
        return service.try_consume(paste_id)

    with ThreadPoolExecutor(max_workers=callers) as executor:
        return list(executor.map(consume, range(callers)))


@pytest.mark.parametrize(("max_views", "callers"), [(1, 12), (5, 16)])
def test_concurrent_consumers_never_overspend(
    service: PasteService,
    max_views: int,
    callers: int,
) -> None:
    created = service.create_paste(content="contended", max_views=max_views)
    paste_id = uuid.UUID(created["id"])

    results = _race(service, paste_id, callers)

    winners = [r for r in results if r is not None]
    assert len(winners) == max_views
    assert results.count(None) == callers - max_views
    # Every winner observed a distinct count; the last one saw exactly max_views.
    assert sorted(w["view_count"] for w in winners) == list(range(1, max_views + 1))

    final = service.find_paste(paste_id)
    assert final is not None
    assert final["view_count"] == max_views


def test_concurrent_consumers_on_unlimited_paste_lose_no_updates(service: PasteService) -> None:
    created = service.create_paste(content="free for all")
    paste_id = uuid.UUID(created["id"])

    results = _race(service, paste_id, 10)

    assert all(r is not None for r in results)
    final = service.find_paste(paste_id)
    assert final is not None
    assert final["view_count"] == 10
