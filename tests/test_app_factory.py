from __future__ import annotations

from flask import Flask

from ttlpaste import create_app
from ttlpaste.clock import SystemClock
from ttlpaste.config import ProductionConfig, TestingConfig, get_config


def test_create_app_returns_flask_instance() -> None:
    app = create_app("testing")
    assert isinstance(app, Flask)
    assert app.config["TESTING"] is True
    assert isinstance(app.extensions["ttlpaste.clock"], SystemClock)


def test_test_config_overrides_class_config() -> None:
    app = create_app("testing", test_config={"PUBLIC_BASE_URL": "https://p.example"})
    assert app.config["PUBLIC_BASE_URL"] == "https://p.example"


def test_clock_override_is_never_enabled_in_production() -> None:
    assert TestingConfig.TEST_MODE is True
    assert ProductionConfig.TEST_MODE is False
    assert get_config("prod") is ProductionConfig


def test_unknown_env_falls_back_to_development() -> None:
    assert get_config("staging").DEBUG is True
    assert get_config(None).DEBUG is True
