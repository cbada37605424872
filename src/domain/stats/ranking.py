"""Leaderboard ordering and truncation for averaged rollups."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol, TypeVar

from domain.stats.protocol import RankOrder

LEADERBOARD_LIMIT = 10
COUNTRY_LIMIT = 3


class Averaged(Protocol):
    @property
    def average(self) -> float: ...

    @property
    def rank_key(self) -> str: ...


R = TypeVar("R", bound=Averaged)


def safe_average(total: float, count: int) -> float:
    """Average that is 0.0 for an empty bucket."""
    if count <= 0:
        return 0.0
    return float(total) / float(count)


def rank(
    rollups: Iterable[R],
    order: RankOrder | str = RankOrder.BEST,
    limit: int | None = None,
) -> list[R]:
    """Sort by average (desc for best, asc for worst), ties by ascending key."""
    resolved_order = RankOrder(order)
    sort_key: Callable[[R], tuple[float, str]]
    if resolved_order is RankOrder.BEST:
        sort_key = lambda item: (-item.average, item.rank_key)
    else:
        sort_key = lambda item: (item.average, item.rank_key)

    ranked = sorted(rollups, key=sort_key)
    if limit is not None:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        ranked = ranked[:limit]
    return ranked


__all__ = ["COUNTRY_LIMIT", "LEADERBOARD_LIMIT", "rank", "safe_average"]
