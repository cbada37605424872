"""Statistics aggregation and identity-resolution engine."""

from domain.stats.aggregation import (
    AggregationEngine,
    CountryStat,
    ScopeKind,
    ScopeRollup,
    ScorePoint,
    StatsFilters,
    StatsScope,
    TeamPartition,
)
from domain.stats.identity import IdentityLinkError, IdentityResolver, link_players, unlink_player
from domain.stats.names import resolve_display_name
from domain.stats.normalizer import extract_record_fields, normalize_payload, normalize_record
from domain.stats.protocol import RankOrder, ScoreMode
from domain.stats.ranking import rank, safe_average
from domain.stats.team_key import TeamKeyBuilder

__all__ = [
    "AggregationEngine",
    "CountryStat",
    "IdentityLinkError",
    "IdentityResolver",
    "RankOrder",
    "ScopeKind",
    "ScopeRollup",
    "ScoreMode",
    "ScorePoint",
    "StatsFilters",
    "StatsScope",
    "TeamKeyBuilder",
    "TeamPartition",
    "extract_record_fields",
    "link_players",
    "normalize_payload",
    "normalize_record",
    "rank",
    "resolve_display_name",
    "safe_average",
    "unlink_player",
]
