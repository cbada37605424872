"""Per-request statistics queries over the match, player and alias stores.

Each query opens its own session, loads the current record set, alias edges
and player directory, and recomputes every rollup from scratch. Nothing is
cached between calls, so a committed write is visible to the next query.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.common import GameFact, PlayerRef
from domain.stats.aggregation import (
    AggregationEngine,
    CountryStat,
    QualifyingGame,
    ScorePoint,
    StatsFilters,
    StatsScope,
    TeamPartition,
)
from domain.stats.identity import IdentityResolver
from domain.stats.names import learn_nicknames, resolve_display_name
from domain.stats.normalizer import normalize_record
from domain.stats.protocol import RankOrder, ScalarAggregates, ScoreMode
from domain.stats.ranking import COUNTRY_LIMIT, LEADERBOARD_LIMIT, rank
from repositories import SqlAliasStore, SqlMatchStore, SqlPlayerDirectory

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionFactory = Callable[[], Session]


@dataclass(frozen=True)
class StatsQuery:
    """Filter parameters accepted by every statistics query."""

    exclude_abandons: bool | None = None
    map: str | None = None
    score_type: str | ScoreMode | None = None

    def to_filters(self) -> StatsFilters:
        return StatsFilters.from_query(
            exclude_abandons=self.exclude_abandons,
            map_name=self.map,
            score_type=self.score_type,
        )


@dataclass(frozen=True)
class PlayerInfo:
    id: str
    name: str


@dataclass(frozen=True)
class GameSummary:
    id: int | None
    game_id: str | None
    map_name: str | None
    score: int | None
    round_time: int | None
    total_duration: int | None
    played_at: datetime | None
    players: list[PlayerInfo]
    country_codes: list[str]
    round_count: int
    max_score: int
    is_finished: bool


@dataclass(frozen=True)
class GameStats:
    total_games: int
    average_score: float
    total_duration_seconds: int
    best_country_guesses: list[CountryStat]


@dataclass(frozen=True)
class TeamStats:
    team_id: str
    team_name: str
    members: list[PlayerInfo]
    games_played: int
    average_score: float
    total_score: int
    total_duration: int


@dataclass(frozen=True)
class TeamStatSimple:
    team_id: str
    team_name: str
    members: list[PlayerInfo]
    average_score: float
    games_played: int


@dataclass(frozen=True)
class PlayerStatsDetailed:
    player_id: str
    player_name: str | None
    total_games: int
    average_score: float
    total_duration: int
    best_countries: list[CountryStat]
    worst_countries: list[CountryStat]
    best_teams: list[TeamStatSimple]
    score_history: list[ScorePoint]
    games: list[GameSummary]


@dataclass(frozen=True)
class TeamStatsDetailed:
    team_id: str
    team_name: str
    members: list[PlayerInfo]
    total_games: int
    average_score: float
    total_duration: int
    best_countries: list[CountryStat]
    worst_countries: list[CountryStat]
    score_history: list[ScorePoint]
    games: list[GameSummary]


@dataclass
class StatsContext:
    """Request-scoped snapshot of the three stores."""

    facts: list[GameFact]
    resolver: IdentityResolver
    directory: dict[str, str] = field(default_factory=dict)

    def roster_info(self, roster: Iterable[PlayerRef]) -> list[PlayerInfo]:
        """Resolved, de-duplicated roster with display names."""
        members: list[PlayerInfo] = []
        seen: set[str] = set()
        for player in roster:
            primary_id = self.resolver.resolve(player.player_id)
            if primary_id in seen:
                continue
            seen.add(primary_id)
            members.append(
                PlayerInfo(
                    id=primary_id,
                    name=resolve_display_name(
                        player.player_id,
                        primary_id,
                        player.nick,
                        self.directory,
                    ),
                )
            )
        return members

    def summarize(self, game: QualifyingGame) -> GameSummary:
        return _summarize_fact(game.fact, game.score, self.roster_info(game.fact.players))


def _degrade(session: Session, label: str, load: Callable[[], T], default: T) -> T:
    try:
        return load()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Degrading %s to its empty value: %s", label, exc)
        return default


def _summarize_fact(fact: GameFact, score: int | None, players: list[PlayerInfo]) -> GameSummary:
    return GameSummary(
        id=fact.record_id,
        game_id=fact.game_id,
        map_name=fact.map_name,
        score=score,
        round_time=fact.round_time,
        total_duration=fact.total_duration,
        played_at=fact.played_at,
        players=players,
        country_codes=fact.country_codes,
        round_count=fact.round_count,
        max_score=fact.max_score,
        is_finished=fact.finished,
    )


def _load_facts(session: Session) -> list[GameFact]:
    return [normalize_record(record) for record in SqlMatchStore(session).list_all()]


def load_context(session: Session, *, degrade_records: bool = False) -> StatsContext:
    """Load records, alias edges and the player directory for one request."""
    if degrade_records:
        facts = _degrade(session, "match records", lambda: _load_facts(session), [])
    else:
        facts = _load_facts(session)
    edges = _degrade(session, "alias edges", SqlAliasStore(session).get_all_edges, [])
    directory = _degrade(session, "player directory", SqlPlayerDirectory(session).get_all, {})
    return StatsContext(
        facts=facts,
        resolver=IdentityResolver(edges),
        directory=learn_nicknames(directory, facts),
    )


def _team_name(members: Sequence[PlayerInfo]) -> str:
    return ", ".join(member.name for member in members)


def _best_and_worst(countries: list[CountryStat], limit: int) -> tuple[list[CountryStat], list[CountryStat]]:
    return rank(countries, RankOrder.BEST, limit), rank(countries, RankOrder.WORST, limit)


def list_games(*, session_factory: SessionFactory) -> list[GameSummary]:
    """Every stored match, newest first, with rosters and resolved fields."""
    with session_factory() as session:
        context = load_context(session)
    logger.info("Listing %d games", len(context.facts))
    return [
        _summarize_fact(fact, fact.score, context.roster_info(fact.players))
        for fact in context.facts
    ]


def get_game_stats(
    *,
    session_factory: SessionFactory,
    query: StatsQuery | None = None,
    country_limit: int = LEADERBOARD_LIMIT,
) -> GameStats:
    """Global totals and the top countries by average round points."""
    filters = (query or StatsQuery()).to_filters()
    with session_factory() as session:
        context = load_context(session, degrade_records=True)
        rollup = AggregationEngine(context.resolver, filters).aggregate(
            context.facts,
            StatsScope.global_scope(),
        )
        if filters.is_default:
            aggregates = _degrade(
                session,
                "scalar aggregates",
                SqlMatchStore(session).scalar_aggregates,
                ScalarAggregates(count=0, avg_score=0.0, sum_duration=0),
            )
        else:
            aggregates = ScalarAggregates(
                count=rollup.total_games,
                avg_score=rollup.average_score,
                sum_duration=rollup.total_duration,
            )

    return GameStats(
        total_games=aggregates.count,
        average_score=aggregates.avg_score,
        total_duration_seconds=aggregates.sum_duration,
        best_country_guesses=rank(rollup.country_stats(), RankOrder.BEST, country_limit),
    )


def get_team_leaderboard(
    *,
    session_factory: SessionFactory,
    query: StatsQuery | None = None,
    limit: int = LEADERBOARD_LIMIT,
) -> list[TeamStats]:
    """Rosters ranked by average game score."""
    filters = (query or StatsQuery()).to_filters()
    with session_factory() as session:
        context = load_context(session)

    partitions = AggregationEngine(context.resolver, filters).team_leaderboard(context.facts)
    return [_team_stats(partition, context) for partition in rank(partitions, RankOrder.BEST, limit)]


def _team_stats(partition: TeamPartition, context: StatsContext) -> TeamStats:
    members = context.roster_info(partition.roster)
    return TeamStats(
        team_id=partition.key,
        team_name=_team_name(members),
        members=members,
        games_played=partition.games_played,
        average_score=partition.average,
        total_score=partition.total_score,
        total_duration=partition.total_duration,
    )


def _team_stat_simple(partition: TeamPartition, context: StatsContext) -> TeamStatSimple:
    members = context.roster_info(partition.roster)
    return TeamStatSimple(
        team_id=partition.key,
        team_name=_team_name(members),
        members=members,
        average_score=partition.average,
        games_played=partition.games_played,
    )


def get_player_stats(
    player_id: str,
    *,
    session_factory: SessionFactory,
    query: StatsQuery | None = None,
    country_limit: int = COUNTRY_LIMIT,
) -> PlayerStatsDetailed:
    """Stats for one identity, merging games played under any of its aliases."""
    filters = (query or StatsQuery()).to_filters()
    with session_factory() as session:
        context = load_context(session)
        scope = StatsScope.for_player(player_id, context.resolver)
        primary_id = scope.key or player_id
        player_name = _degrade(
            session,
            "player name",
            lambda: SqlPlayerDirectory(session).get(primary_id),
            None,
        )

    if player_name is None:
        player_name = context.directory.get(primary_id)

    rollup = AggregationEngine(context.resolver, filters).aggregate(context.facts, scope)
    best_countries, worst_countries = _best_and_worst(rollup.country_stats(), country_limit)
    best_teams = [
        _team_stat_simple(partition, context)
        for partition in rank(rollup.team_partitions.values(), RankOrder.BEST)
    ]

    return PlayerStatsDetailed(
        player_id=primary_id,
        player_name=player_name,
        total_games=rollup.total_games,
        average_score=rollup.average_score,
        total_duration=rollup.total_duration,
        best_countries=best_countries,
        worst_countries=worst_countries,
        best_teams=best_teams,
        score_history=rollup.score_history(),
        games=[context.summarize(game) for game in rollup.games],
    )


def get_team_stats(
    team_id: str,
    *,
    session_factory: SessionFactory,
    query: StatsQuery | None = None,
    country_limit: int = COUNTRY_LIMIT,
) -> TeamStatsDetailed:
    """Stats for one roster given as comma-joined player ids (aliases allowed)."""
    # Team scope always ranks by game score.
    filters = (query or StatsQuery()).to_filters()
    with session_factory() as session:
        context = load_context(session)

    engine = AggregationEngine(context.resolver, filters)
    scope = StatsScope.for_team(team_id, engine.team_keys)
    rollup = engine.aggregate(context.facts, scope)

    if rollup.roster:
        members = context.roster_info(rollup.roster)
    else:
        members = context.roster_info(PlayerRef(player_id=member_id) for member_id in scope.member_ids)
    best_countries, worst_countries = _best_and_worst(rollup.country_stats(), country_limit)

    return TeamStatsDetailed(
        team_id=team_id,
        team_name=_team_name(members),
        members=members,
        total_games=rollup.total_games,
        average_score=rollup.average_score,
        total_duration=rollup.total_duration,
        best_countries=best_countries,
        worst_countries=worst_countries,
        score_history=rollup.score_history(),
        games=[context.summarize(game) for game in rollup.games],
    )


__all__ = [
    "GameStats",
    "GameSummary",
    "PlayerInfo",
    "PlayerStatsDetailed",
    "StatsContext",
    "StatsQuery",
    "TeamStatSimple",
    "TeamStats",
    "TeamStatsDetailed",
    "get_game_stats",
    "get_player_stats",
    "get_team_leaderboard",
    "get_team_stats",
    "list_games",
    "load_context",
]
