#!/usr/bin/env python3
"""Query games, leaderboards and player/team statistics."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory, ensure_schema
from domain.config_base import StatsConfig, load_stats_config
from domain.pipeline import (
    StatsQuery,
    get_game_stats,
    get_player_stats,
    get_team_leaderboard,
    get_team_stats,
    list_games,
)
from domain.stats.aggregation import CountryStat
from domain.stats.protocol import ScoreMode

DEFAULT_CONFIG_PATH = ROOT_DIR / "configs" / "stats" / "default.toml"

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Bullseye match statistics queries.",
)

ConfigOption = Annotated[
    Path,
    typer.Option("--config", help="Path to the stats TOML config."),
]
DbUrlOption = Annotated[
    str | None,
    typer.Option("--db-url", help="Database URL. Overrides the config file."),
]
ExcludeAbandonsOption = Annotated[
    bool,
    typer.Option("--exclude-abandons", help="Skip games whose status is not finished."),
]
MapOption = Annotated[
    str | None,
    typer.Option("--map", help="Case-insensitive substring the map name must contain."),
]
ScoreTypeOption = Annotated[
    ScoreMode | None,
    typer.Option("--score-type", help="Score used for player stats (game, personal)."),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Print the raw result as JSON."),
]


def open_session_factory(
    config_path: Path,
    db_url: str | None,
) -> tuple[StatsConfig, sessionmaker[Session]]:
    """Load config, create the schema if needed and return a session factory."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    config = load_stats_config(config_path if config_path.exists() else None)
    engine = create_db_engine(db_url or config.db_url)
    ensure_schema(engine)
    return config, create_session_factory(engine)


def _echo_json(result: Any) -> None:
    if isinstance(result, list):
        payload = [asdict(item) for item in result]
    else:
        payload = asdict(result)
    typer.echo(json.dumps(payload, indent=2, default=str))


def _render_countries(label: str, countries: list[CountryStat]) -> None:
    if not countries:
        typer.echo(f"{label}: none")
        return
    typer.echo(f"{label}:")
    for index, country in enumerate(countries, start=1):
        typer.echo(
            f"  {index:2d}. {country.country_code:<4} "
            f"avg={country.average:8.1f} rounds={country.count:4d} total={country.total_score}"
        )


@app.command()
def games(
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
    as_json: JsonOption = False,
) -> None:
    """List stored games, newest first."""
    _, session_factory = open_session_factory(config_path, db_url)
    summaries = list_games(session_factory=session_factory)
    if as_json:
        _echo_json(summaries)
        return
    if not summaries:
        typer.echo("no games stored")
        return
    for summary in summaries:
        players = ", ".join(player.name for player in summary.players) or "-"
        status = "finished" if summary.is_finished else "abandoned"
        typer.echo(
            f"#{summary.id:<5} {summary.played_at} map={summary.map_name or '-'} "
            f"score={summary.score}/{summary.max_score} rounds={summary.round_count} "
            f"{status} players=[{players}]"
        )


@app.command("global")
def global_stats(
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
    exclude_abandons: ExcludeAbandonsOption = False,
    map_name: MapOption = None,
    as_json: JsonOption = False,
) -> None:
    """Print global totals and the best countries."""
    config, session_factory = open_session_factory(config_path, db_url)
    stats = get_game_stats(
        session_factory=session_factory,
        query=StatsQuery(exclude_abandons=exclude_abandons, map=map_name),
        country_limit=config.leaderboard_limit,
    )
    if as_json:
        _echo_json(stats)
        return
    typer.echo(
        f"total_games={stats.total_games} average_score={stats.average_score:.1f} "
        f"total_duration_seconds={stats.total_duration_seconds}"
    )
    _render_countries("best_countries", stats.best_country_guesses)


@app.command()
def leaderboard(
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
    exclude_abandons: ExcludeAbandonsOption = False,
    map_name: MapOption = None,
    as_json: JsonOption = False,
) -> None:
    """Print the team leaderboard by average score."""
    config, session_factory = open_session_factory(config_path, db_url)
    teams = get_team_leaderboard(
        session_factory=session_factory,
        query=StatsQuery(exclude_abandons=exclude_abandons, map=map_name),
        limit=config.leaderboard_limit,
    )
    if as_json:
        _echo_json(teams)
        return
    if not teams:
        typer.echo("no teams found")
        return
    for index, team in enumerate(teams, start=1):
        typer.echo(
            f"{index:2d}. {team.team_name:<30} avg={team.average_score:8.1f} "
            f"games={team.games_played:3d} team_id={team.team_id}"
        )


@app.command()
def player(
    player_id: Annotated[str, typer.Argument(help="Player id (an alias resolves to its primary).")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
    exclude_abandons: ExcludeAbandonsOption = False,
    map_name: MapOption = None,
    score_type: ScoreTypeOption = None,
    as_json: JsonOption = False,
) -> None:
    """Print detailed statistics for one player identity."""
    config, session_factory = open_session_factory(config_path, db_url)
    stats = get_player_stats(
        player_id,
        session_factory=session_factory,
        query=StatsQuery(exclude_abandons=exclude_abandons, map=map_name, score_type=score_type),
        country_limit=config.country_limit,
    )
    if as_json:
        _echo_json(stats)
        return
    typer.echo(
        f"player_id={stats.player_id} name={stats.player_name or '-'} "
        f"games={stats.total_games} average_score={stats.average_score:.1f} "
        f"total_duration={stats.total_duration}"
    )
    _render_countries("best_countries", stats.best_countries)
    _render_countries("worst_countries", stats.worst_countries)
    for team in stats.best_teams:
        typer.echo(f"  team {team.team_name:<30} avg={team.average_score:8.1f} games={team.games_played}")


@app.command()
def team(
    team_id: Annotated[str, typer.Argument(help="Comma-separated player ids.")],
    config_path: ConfigOption = DEFAULT_CONFIG_PATH,
    db_url: DbUrlOption = None,
    exclude_abandons: ExcludeAbandonsOption = False,
    map_name: MapOption = None,
    as_json: JsonOption = False,
) -> None:
    """Print detailed statistics for one roster."""
    config, session_factory = open_session_factory(config_path, db_url)
    stats = get_team_stats(
        team_id,
        session_factory=session_factory,
        query=StatsQuery(exclude_abandons=exclude_abandons, map=map_name),
        country_limit=config.country_limit,
    )
    if as_json:
        _echo_json(stats)
        return
    typer.echo(
        f"team={stats.team_name or stats.team_id} games={stats.total_games} "
        f"average_score={stats.average_score:.1f} total_duration={stats.total_duration}"
    )
    _render_countries("best_countries", stats.best_countries)
    _render_countries("worst_countries", stats.worst_countries)


if __name__ == "__main__":
    app()
