#!/usr/bin/env python3
"""Submit one match payload file to the store."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.ingest import UnauthorizedSubmissionError, ingest_match
from show_stats import DEFAULT_CONFIG_PATH, open_session_factory

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Store Bullseye match payloads.",
)


@app.command()
def ingest(
    payload_path: Annotated[
        Path,
        typer.Argument(help="JSON file holding one match payload.", exists=True, dir_okay=False),
    ],
    authorization: Annotated[
        str | None,
        typer.Option(
            "--authorization",
            help="Authorization value, for example 'Bearer <key>'. Required when an API key is configured.",
        ),
    ] = None,
    config_path: Annotated[
        Path,
        typer.Option("--config", help="Path to the stats TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL. Overrides the config file."),
    ] = None,
) -> None:
    """Store one payload and print the new match id."""
    config, session_factory = open_session_factory(config_path, db_url)
    try:
        match_id = ingest_match(
            payload_path.read_text(encoding="utf-8"),
            session_factory=session_factory,
            api_key=config.api_key,
            authorization=authorization,
        )
    except UnauthorizedSubmissionError as exc:
        typer.echo(f"unauthorized: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"stored match_id={match_id} file={payload_path.name}")


if __name__ == "__main__":
    app()
