from __future__ import annotations

import typing as t

from flask import Flask
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker


Base = declarative_base()

_engine: Engine | None = None
SessionLocal: scoped_session = scoped_session(
    sessionmaker(autocommit=False, autoflush=False)
)


def get_engine() -> Engine:
    """
    Return the global SQLAlchemy engine.

    This expects that ``init_db(app)`` has been called during application
    startup to configure the engine from Flask config.
    """
    if _engine is None:  # type: ignore[truthy-function]
        raise RuntimeError("Database engine is not initialized. Call init_db(app) first.")
    return t.cast(Engine, _engine)


def build_engine(database_uri: str, *, echo: bool = False) -> Engine:
    """Create an engine, letting SQLite connections cross threads (sweeper, tests)."""
    connect_args: dict[str, t.Any] = {}
    if make_url(database_uri).get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False

    return create_engine(database_uri, echo=echo, connect_args=connect_args)


def has_pastes_table(engine: Engine) -> bool:
    return inspect(engine).has_table("pastes")


def create_schema(engine: Engine) -> None:
    """Create all tables directly from the models (local development and tests)."""
    # Import models so that Base.metadata is populated.
    from ttlpaste.domain import models as _models  # noqa: F401

    Base.metadata.create_all(engine)


def init_db(app: Flask) -> None:
    """
    Initialize the SQLAlchemy engine and session factory for the Flask app.

    Reads the database URL from ``app.config['SQLALCHEMY_DATABASE_URI']``.
    """
    global _engine

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI")
    if not database_uri:
        raise RuntimeError(
            "SQLALCHEMY_DATABASE_URI is not configured on the Flask app."
        )

    if _engine is not None:
        SessionLocal.remove()
        _engine.dispose()

    _engine = build_engine(
        database_uri,
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal.configure(bind=_engine)

    @app.teardown_appcontext
    def remove_session(_exc: BaseException | None) -> None:  # type: ignore[unused-variable]
        """Remove the scoped session at the end of the request."""

        SessionLocal.remove()
