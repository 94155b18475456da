from __future__ import annotations

from datetime import datetime, timezone
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ttlpaste import create_app
from ttlpaste.clock import ManualClock
from ttlpaste.db import build_engine, create_schema, get_engine
from ttlpaste.repositories.paste_repository import PasteRepository
from ttlpaste.services.paste_service import PasteService


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database / service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory SQLite engine for each test function.

    This keeps tests focused on domain behavior while using a real database
    session for repository/service operations.
    """

    engine = build_engine("sqlite+pysqlite:///:memory:")
    create_schema(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def session(engine: Engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    with SessionLocal() as session:
        yield session
        session.rollback()


@pytest.fixture
def paste_repo(session: Session) -> PasteRepository:
    return PasteRepository(session=session)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def paste_service(engine: Engine, clock: ManualClock) -> PasteService:
    """Service with its own session factory; each call gets a new session from the test engine."""

    session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return PasteService(session_factory=session_factory, clock=clock)


# ---------------------------------------------------------------------------
# Flask fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_app(tmp_path, clock: ManualClock):
    """Build a testing app backed by a throwaway SQLite file."""

    def _make(*, with_schema: bool = True, **overrides) -> Flask:
        config = {
            "SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'ttlpaste.db'}",
            "PUBLIC_BASE_URL": "http://paste.test",
        }
        config.update(overrides)
        app = create_app("testing", test_config=config, clock=clock)
        if with_schema:
            create_schema(get_engine())
        return app

    return _make


@pytest.fixture
def app(make_app) -> Flask:
    return make_app()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
