"""
Worker-related setup.

The only background job is the housekeeping sweeper in ``sweeper.py``; run
it as a standalone process with ``python -m ttlpaste.worker``.
"""

from __future__ import annotations

import logging
import os
import time

from flask import Flask


logger = logging.getLogger(__name__)


def create_worker_app() -> Flask:
    """
    Create and return a Flask application instance suitable for worker
    processes.
    """
    from ttlpaste import create_app  # local import to avoid circular dependency

    return create_app(os.getenv("APP_ENV", "development"))


def main() -> None:
    from ttlpaste.worker.sweeper import start_sweeper

    app = create_worker_app()
    start_sweeper(app)
    logger.info("Sweeper process running", extra={"event": "sweeper_process_started"})
    while True:
        time.sleep(3600)
