"""Canonical, order- and alias-independent team keys."""

from __future__ import annotations

from collections.abc import Iterable

from domain.stats.identity import IdentityResolver

TEAM_KEY_SEPARATOR = ","


class TeamKeyBuilder:
    """Derive team keys from raw roster ids via one identity snapshot."""

    def __init__(self, resolver: IdentityResolver) -> None:
        self.resolver = resolver

    def resolve_roster(self, raw_player_ids: Iterable[str]) -> tuple[str, ...]:
        return tuple(sorted({self.resolver.resolve(player_id) for player_id in raw_player_ids}))

    def build(self, raw_player_ids: Iterable[str]) -> tuple[str, tuple[str, ...]]:
        resolved = self.resolve_roster(raw_player_ids)
        return TEAM_KEY_SEPARATOR.join(resolved), resolved

    def parse_team_id(self, team_id: str) -> tuple[str, tuple[str, ...]]:
        """Build the key for a requested comma-joined list of player ids."""
        raw_ids = [part.strip() for part in team_id.split(TEAM_KEY_SEPARATOR)]
        return self.build(player_id for player_id in raw_ids if player_id)


__all__ = ["TEAM_KEY_SEPARATOR", "TeamKeyBuilder"]
