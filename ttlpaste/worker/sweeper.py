from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import NoReturn

from flask import Flask
from sqlalchemy.exc import ProgrammingError, SQLAlchemyError
from sqlalchemy.orm import Session

from ttlpaste.clock import Clock
from ttlpaste.db import SessionLocal, has_pastes_table
from ttlpaste.repositories.paste_repository import PasteRepository


logger = logging.getLogger(__name__)

_worker_started = False
_worker_lock = threading.Lock()


def run_sweep_once(
    session_factory: Callable[[], Session],
    clock: Clock,
    *,
    grace_seconds: float = 0,
) -> int:
    """
    Delete pastes that can never be served again and return how many went.

    Housekeeping only: the read path never depends on rows being purged.
    """

    session = session_factory()
    try:
        # If tables haven't been created yet (no migrations run), skip work
        # instead of spamming errors.
        if not has_pastes_table(session.get_bind()):
            logger.info(
                "Sweeper: 'pastes' table not found; skipping cycle",
                extra={
                    "event": "sweeper_no_table",
                    "correlation_id": "sweeper",
                },
            )
            return 0

        repo = PasteRepository(session=session)
        deleted = repo.purge_unavailable(clock.now(), grace_seconds=grace_seconds)
        session.commit()
        return deleted
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _sweep_loop(app: Flask) -> NoReturn:
    """Background loop that periodically purges unavailable pastes."""

    interval = float(app.config.get("SWEEPER_INTERVAL_SECONDS", 60))
    grace = float(app.config.get("SWEEPER_GRACE_SECONDS", 0))
    clock: Clock = app.extensions["ttlpaste.clock"]

    with app.app_context():
        while True:
            try:
                run_sweep_once(SessionLocal, clock, grace_seconds=grace)
            except ProgrammingError:
                # If the table goes missing for some reason, avoid noisy stack traces.
                logger.warning(
                    "Sweeper: database schema not ready; skipping cycle",
                    extra={
                        "event": "sweeper_schema_error",
                        "correlation_id": "sweeper",
                    },
                )
            except SQLAlchemyError:
                logger.exception(
                    "Error in sweeper loop",
                    extra={
                        "event": "sweeper_error",
                        "correlation_id": "sweeper",
                    },
                )
            finally:
                SessionLocal.remove()

            time.sleep(interval)


def start_sweeper(app: Flask) -> bool:
    """
    Start the housekeeping sweeper in a background thread.

    This function is idempotent and will only start a single worker thread.
    Returns whether a thread was started by this call.
    """

    global _worker_started
    with _worker_lock:
        if _worker_started:
            return False

        thread = threading.Thread(
            target=_sweep_loop,
            args=(app,),
            name="paste-sweeper",
            daemon=True,
        )
        thread.start()
        _worker_started = True
        return True
