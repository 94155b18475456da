from __future__ import annotations

import click
from flask import Flask, current_app
from flask.cli import with_appcontext

from ttlpaste.db import SessionLocal, create_schema, get_engine, has_pastes_table
from ttlpaste.worker.sweeper import run_sweep_once


@click.command("init-db")
@with_appcontext
def init_db_command() -> None:
    """Create the pastes table directly from the models (local development)."""
    create_schema(get_engine())
    click.echo("Database schema created.")


@click.command("check-schema")
@with_appcontext
def check_schema_command() -> None:
    """Exit non-zero when the pastes table is missing."""
    if has_pastes_table(get_engine()):
        click.echo("Database schema is set up correctly.")
        return

    click.echo("Database schema not found. Run `alembic upgrade head`.", err=True)
    raise SystemExit(1)


@click.command("sweep")
@with_appcontext
@click.option(
    "--grace-seconds",
    type=float,
    default=None,
    help="Keep time-expired pastes this long past expiry (defaults to SWEEPER_GRACE_SECONDS).",
)
def sweep_command(grace_seconds: float | None) -> None:
    """Run one housekeeping pass over unavailable pastes."""
    if grace_seconds is None:
        grace_seconds = float(current_app.config.get("SWEEPER_GRACE_SECONDS", 0))

    deleted = run_sweep_once(
        SessionLocal,
        current_app.extensions["ttlpaste.clock"],
        grace_seconds=grace_seconds,
    )
    click.echo(f"Purged {deleted} paste(s).")


def register_cli(app: Flask) -> None:
    app.cli.add_command(init_db_command)
    app.cli.add_command(check_schema_command)
    app.cli.add_command(sweep_command)
