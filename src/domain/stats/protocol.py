"""Store contracts consumed by the statistics pipeline."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from domain.common import RecordFields
from models import MatchRecord


class ScoreMode(str, Enum):
    """Which score a player-scoped query attributes to each game."""

    GAME = "game"
    PERSONAL = "personal"


class RankOrder(str, Enum):
    """Leaderboard direction by average."""

    BEST = "best"
    WORST = "worst"


@dataclass(frozen=True)
class ScalarAggregates:
    """Store-side totals over every match record."""

    count: int
    avg_score: float
    sum_duration: int


@runtime_checkable
class MatchStore(Protocol):
    def insert(self, fields: RecordFields, raw_blob: str) -> int: ...

    def list_all(self) -> Sequence[MatchRecord]: ...

    def delete(self, match_id: int) -> bool: ...

    def scalar_aggregates(self) -> ScalarAggregates: ...


@runtime_checkable
class PlayerDirectory(Protocol):
    def upsert(self, player_id: str, name: str, *, touch: bool = True) -> None: ...

    def get_all(self) -> Mapping[str, str]: ...

    def get(self, player_id: str) -> str | None: ...


@runtime_checkable
class AliasStore(Protocol):
    def get_all_edges(self) -> Sequence[tuple[str, str]]: ...

    def upsert_edge(self, alias_id: str, primary_id: str) -> None: ...

    def delete_edge(self, alias_id: str) -> None: ...

    def aliases_of(self, primary_id: str) -> Sequence[str]: ...

    def primary_of(self, alias_id: str) -> str | None: ...


__all__ = [
    "AliasStore",
    "MatchStore",
    "PlayerDirectory",
    "RankOrder",
    "ScalarAggregates",
    "ScoreMode",
]
