"""Shared types for normalized match facts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ROUND_MAX_POINTS = 5000


@dataclass(frozen=True)
class RoundFact:
    """One guessing round: target country and points awarded to the lobby."""

    round_number: int | None
    country_code: str | None
    points: int
    start_time: datetime | None = None


@dataclass(frozen=True)
class PlayerRef:
    """One roster entry as listed in the payload.

    ``guess_points`` is ``None`` when the payload carries no guess list for the
    player, which is distinct from an empty list summing to zero.
    """

    player_id: str
    nick: str | None = None
    guess_points: int | None = None


@dataclass(frozen=True)
class GameFact:
    """Canonical, transient view of one stored match."""

    record_id: int | None
    game_id: str | None
    map_name: str | None
    finished: bool
    total_duration: int
    played_at: datetime | None
    score: int
    round_time: int | None = None
    rounds: tuple[RoundFact, ...] = ()
    players: tuple[PlayerRef, ...] = ()

    @property
    def round_count(self) -> int:
        return len(self.rounds)

    @property
    def max_score(self) -> int:
        return self.round_count * ROUND_MAX_POINTS

    @property
    def country_codes(self) -> list[str]:
        return [round_fact.country_code for round_fact in self.rounds if round_fact.country_code]

    @property
    def round_points(self) -> int:
        return sum(round_fact.points for round_fact in self.rounds)


@dataclass(frozen=True)
class RecordFields:
    """Column values derived from a payload at ingestion time."""

    game_id: str | None
    map_name: str | None
    score: int
    round_time: int | None
    total_duration: int | None
    played_at: datetime | None


__all__ = [
    "GameFact",
    "PlayerRef",
    "ROUND_MAX_POINTS",
    "RecordFields",
    "RoundFact",
]
