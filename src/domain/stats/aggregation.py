"""Filtered fold of game facts into global, player and team rollups."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from domain.common import GameFact, PlayerRef
from domain.stats.identity import IdentityResolver
from domain.stats.protocol import ScoreMode
from domain.stats.ranking import safe_average
from domain.stats.team_key import TeamKeyBuilder


class ScopeKind(str, Enum):
    GLOBAL = "global"
    PLAYER = "player"
    TEAM = "team"


def parse_score_mode(value: str | ScoreMode | None) -> ScoreMode | None:
    """Only an explicit "game" selects game scores; anything else is personal."""
    if value is None:
        return None
    if isinstance(value, ScoreMode):
        return value
    if value.strip().lower() == ScoreMode.GAME.value:
        return ScoreMode.GAME
    return ScoreMode.PERSONAL


@dataclass(frozen=True)
class StatsFilters:
    """Per-query filter configuration."""

    exclude_abandons: bool = False
    map_substring: str | None = None
    score_mode: ScoreMode | None = None

    @classmethod
    def from_query(
        cls,
        *,
        exclude_abandons: bool | None = None,
        map_name: str | None = None,
        score_type: str | ScoreMode | None = None,
    ) -> StatsFilters:
        return cls(
            exclude_abandons=bool(exclude_abandons),
            map_substring=map_name if map_name else None,
            score_mode=parse_score_mode(score_type),
        )

    @property
    def is_default(self) -> bool:
        return not self.exclude_abandons and self.map_substring is None

    def matches_map(self, fact: GameFact) -> bool:
        if self.map_substring is None:
            return True
        if fact.map_name is None:
            return False
        return self.map_substring.casefold() in fact.map_name.casefold()

    def keeps_status(self, fact: GameFact) -> bool:
        return fact.finished or not self.exclude_abandons


@dataclass(frozen=True)
class StatsScope:
    """What a query aggregates over: everything, one identity or one roster."""

    kind: ScopeKind
    key: str | None = None
    identity_ids: frozenset[str] = frozenset()
    member_ids: tuple[str, ...] = ()

    @classmethod
    def global_scope(cls) -> StatsScope:
        return cls(kind=ScopeKind.GLOBAL)

    @classmethod
    def for_player(cls, player_id: str, resolver: IdentityResolver) -> StatsScope:
        primary_id = resolver.resolve(player_id)
        return cls(
            kind=ScopeKind.PLAYER,
            key=primary_id,
            identity_ids=resolver.expand(primary_id),
        )

    @classmethod
    def for_team(cls, team_id: str, team_keys: TeamKeyBuilder) -> StatsScope:
        key, member_ids = team_keys.parse_team_id(team_id)
        return cls(kind=ScopeKind.TEAM, key=key, member_ids=member_ids)


@dataclass(frozen=True)
class CountryStat:
    country_code: str
    total_score: int
    count: int
    average: float

    @property
    def rank_key(self) -> str:
        return self.country_code


@dataclass(frozen=True)
class ScorePoint:
    date: datetime | None
    score: int
    map_name: str


@dataclass(frozen=True)
class QualifyingGame:
    """A fact that passed every filter, with the score attributed to it."""

    fact: GameFact
    score: int


@dataclass
class TeamPartition:
    """Running totals for one canonical roster."""

    key: str
    roster: tuple[PlayerRef, ...]
    total_score: int = 0
    games_played: int = 0
    total_duration: int = 0

    @property
    def average(self) -> float:
        return safe_average(self.total_score, self.games_played)

    @property
    def rank_key(self) -> str:
        return self.key

    def add(self, score: int, duration: int) -> None:
        self.total_score += score
        self.games_played += 1
        self.total_duration += duration


@dataclass
class ScopeRollup:
    """Everything folded for one scope under one filter configuration."""

    scope: StatsScope
    total_games: int = 0
    total_score: int = 0
    total_duration: int = 0
    games: list[QualifyingGame] = field(default_factory=list)
    country_totals: dict[str, list[int]] = field(default_factory=dict)
    team_partitions: dict[str, TeamPartition] = field(default_factory=dict)
    roster: tuple[PlayerRef, ...] = ()

    @property
    def average_score(self) -> float:
        return safe_average(self.total_score, self.total_games)

    def country_stats(self) -> list[CountryStat]:
        return [
            CountryStat(
                country_code=code,
                total_score=total,
                count=count,
                average=safe_average(total, count),
            )
            for code, (total, count) in self.country_totals.items()
        ]

    def score_history(self) -> list[ScorePoint]:
        ordered = sorted(
            self.games,
            key=lambda game: (game.fact.played_at or datetime.min, game.fact.record_id or 0),
        )
        return [
            ScorePoint(
                date=game.fact.played_at,
                score=game.score,
                map_name=game.fact.map_name or "",
            )
            for game in ordered
        ]


def _unique_roster(roster: Iterable[PlayerRef], resolver: IdentityResolver) -> tuple[PlayerRef, ...]:
    seen: set[str] = set()
    unique: list[PlayerRef] = []
    for player in roster:
        resolved = resolver.resolve(player.player_id)
        if resolved in seen:
            continue
        seen.add(resolved)
        unique.append(player)
    return tuple(unique)


class AggregationEngine:
    """Stateless per-request fold; one instance per identity snapshot and filter set."""

    def __init__(self, resolver: IdentityResolver, filters: StatsFilters | None = None) -> None:
        self.resolver = resolver
        self.filters = filters or StatsFilters()
        self.team_keys = TeamKeyBuilder(resolver)

    def aggregate(self, facts: Iterable[GameFact], scope: StatsScope) -> ScopeRollup:
        rollup = ScopeRollup(scope=scope)
        for fact in facts:
            if not self.filters.matches_map(fact):
                continue

            matched_player: PlayerRef | None = None
            if scope.kind is ScopeKind.PLAYER:
                matched_player = self._match_player(fact, scope)
                if matched_player is None:
                    continue
            elif scope.kind is ScopeKind.TEAM:
                if not fact.players:
                    continue
                roster_key, _ = self.team_keys.build(player.player_id for player in fact.players)
                if roster_key != scope.key:
                    continue
                if not rollup.roster:
                    rollup.roster = _unique_roster(fact.players, self.resolver)

            if not self.filters.keeps_status(fact):
                continue

            score = self._select_score(fact, scope, matched_player)
            self._accumulate(rollup, fact, score)
        return rollup

    def team_leaderboard(self, facts: Iterable[GameFact]) -> list[TeamPartition]:
        """Fold every non-empty roster, solo sessions included, under its team key."""
        partitions: dict[str, TeamPartition] = {}
        for fact in facts:
            if not self.filters.matches_map(fact) or not self.filters.keeps_status(fact):
                continue
            if not fact.players:
                continue
            key, _ = self.team_keys.build(player.player_id for player in fact.players)
            partition = partitions.get(key)
            if partition is None:
                partition = TeamPartition(
                    key=key,
                    roster=_unique_roster(fact.players, self.resolver),
                )
                partitions[key] = partition
            partition.add(fact.score, fact.total_duration)
        return list(partitions.values())

    def _match_player(self, fact: GameFact, scope: StatsScope) -> PlayerRef | None:
        # First matching entry only, so one person listed twice counts once.
        for player in fact.players:
            if player.player_id and player.player_id in scope.identity_ids:
                return player
        return None

    def _select_score(
        self,
        fact: GameFact,
        scope: StatsScope,
        matched_player: PlayerRef | None,
    ) -> int:
        if scope.kind is not ScopeKind.PLAYER or matched_player is None:
            return fact.score
        # Player scope ignores the explicit lobby score: game mode and the
        # missing-guess fallback both use the round sum.
        mode = self.filters.score_mode or ScoreMode.PERSONAL
        if mode is ScoreMode.PERSONAL and matched_player.guess_points is not None:
            return matched_player.guess_points
        return fact.round_points

    def _accumulate(
        self,
        rollup: ScopeRollup,
        fact: GameFact,
        score: int,
    ) -> None:
        rollup.total_games += 1
        rollup.total_score += score
        rollup.total_duration += fact.total_duration
        rollup.games.append(QualifyingGame(fact=fact, score=score))

        for round_fact in fact.rounds:
            if not round_fact.country_code:
                continue
            bucket = rollup.country_totals.setdefault(round_fact.country_code.lower(), [0, 0])
            bucket[0] += round_fact.points
            bucket[1] += 1

        if rollup.scope.kind is ScopeKind.PLAYER:
            key, member_ids = self.team_keys.build(player.player_id for player in fact.players)
            if len(member_ids) > 1:
                partition = rollup.team_partitions.get(key)
                if partition is None:
                    partition = TeamPartition(
                        key=key,
                        roster=_unique_roster(fact.players, self.resolver),
                    )
                    rollup.team_partitions[key] = partition
                partition.add(score, fact.total_duration)


__all__ = [
    "AggregationEngine",
    "CountryStat",
    "QualifyingGame",
    "ScopeKind",
    "ScopeRollup",
    "ScorePoint",
    "StatsFilters",
    "StatsScope",
    "TeamPartition",
    "parse_score_mode",
]
