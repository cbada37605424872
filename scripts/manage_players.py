#!/usr/bin/env python3
"""Admin commands: player directory, alias links and match deletion."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from domain.admin import link_player, list_admin_players, unlink_alias
from domain.ingest import delete_match
from domain.stats.identity import IdentityLinkError
from show_stats import DEFAULT_CONFIG_PATH, open_session_factory

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Manage players, aliases and stored matches.",
)

ConfigOption = Annotated[
    Path,
    typer.Option("--config", help="Path to the stats TOML config."),
]
DbUrlOption = Annotated[
    str | None,
    typer.Option("--db-url", help="Database URL. Overrides the config file."),
]


@app.command("list")
def list_players(
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
) -> None:
    """Backfill the directory from stored matches and list every player."""
    _, session_factory = open_session_factory(config_path, db_url)
    players = list_admin_players(session_factory=session_factory)
    if not players:
        typer.echo("no players known")
        return
    for player in players:
        relation = ""
        if player.primary_id is not None:
            relation = f" alias_of={player.primary_id}"
        elif player.aliases:
            relation = f" aliases={','.join(player.aliases)}"
        typer.echo(f"{player.id:<36} {player.name}{relation}")


@app.command()
def link(
    alias_id: Annotated[str, typer.Argument(help="Player id to redirect.")],
    primary_id: Annotated[str, typer.Argument(help="Primary identity to redirect to.")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
) -> None:
    """Make ALIAS_ID an alias of PRIMARY_ID."""
    _, session_factory = open_session_factory(config_path, db_url)
    try:
        link_player(alias_id, primary_id, session_factory=session_factory)
    except IdentityLinkError as exc:
        typer.echo(f"rejected reason={exc.reason}: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    typer.echo(f"linked alias_id={alias_id} primary_id={primary_id}")


@app.command()
def unlink(
    alias_id: Annotated[str, typer.Argument(help="Alias id to detach.")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
) -> None:
    """Remove an alias link (no error when it does not exist)."""
    _, session_factory = open_session_factory(config_path, db_url)
    unlink_alias(alias_id, session_factory=session_factory)
    typer.echo(f"unlinked alias_id={alias_id}")


@app.command("delete-match")
def delete_match_command(
    match_id: Annotated[int, typer.Argument(help="Stored match id.")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
) -> None:
    """Delete one stored match."""
    _, session_factory = open_session_factory(config_path, db_url)
    if not delete_match(match_id, session_factory=session_factory):
        typer.echo(f"match_id={match_id} not found", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"deleted match_id={match_id}")


if __name__ == "__main__":
    app()
