from __future__ import annotations

import os
from typing import Any, Mapping, Optional

from flask import Flask
from flask_cors import CORS

from .clock import Clock, SystemClock
from .config import get_config
from .db import init_db
from .observability import init_observability
from .api.pastes import api_bp, share_bp
from .cli import register_cli
from .worker.sweeper import start_sweeper


def create_app(
    env_name: str | None = None,
    test_config: Optional[Mapping[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> Flask:
    """
    Application factory for the paste service.

    The configuration is selected based on the provided ``env_name`` or,
    if not given, the ``APP_ENV`` environment variable (falling back to
    ``development``). ``test_config`` overrides individual keys, and
    ``clock`` replaces the wall clock used to decide expiry.
    """
    if env_name is None:
        env_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    app_config = get_config(env_name)
    app.config.from_object(app_config)
    if test_config is not None:
        app.config.from_mapping(test_config)

    app.extensions["ttlpaste.clock"] = clock or SystemClock()

    CORS(app)

    # Initialize infrastructure layers
    init_db(app)
    init_observability(app)

    # Register API blueprints and CLI commands
    app.register_blueprint(api_bp)
    app.register_blueprint(share_bp)
    register_cli(app)

    # Housekeeping is opt-in and never runs under tests.
    if app.config.get("SWEEPER_ENABLED", False) and not app.config.get("TESTING", False):
        start_sweeper(app)

    return app
