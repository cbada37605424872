"""SQLAlchemy-backed player directory and alias store."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from models import Player, PlayerAlias


class SqlPlayerDirectory:
    """Last known display name per raw player id."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(self, player_id: str, name: str, *, touch: bool = True) -> None:
        """Create or rename a player; ``touch`` refreshes ``last_seen``."""
        player = self.session.get(Player, player_id)
        now = datetime.now(UTC).replace(tzinfo=None)
        if player is None:
            self.session.add(Player(id=player_id, name=name, last_seen=now))
        else:
            player.name = name
            if touch:
                player.last_seen = now
        self.session.flush()

    def get_all(self) -> dict[str, str]:
        rows = self.session.execute(select(Player.id, Player.name)).all()
        return {player_id: name for player_id, name in rows}

    def get(self, player_id: str) -> str | None:
        return self.session.scalar(select(Player.name).where(Player.id == player_id))


class SqlAliasStore:
    """``player_aliases`` edges (alias_id -> primary_id)."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get_all_edges(self) -> list[tuple[str, str]]:
        rows = self.session.execute(
            select(PlayerAlias.alias_id, PlayerAlias.primary_id).order_by(PlayerAlias.alias_id)
        ).all()
        return [(alias_id, primary_id) for alias_id, primary_id in rows]

    def upsert_edge(self, alias_id: str, primary_id: str) -> None:
        edge = self.session.get(PlayerAlias, alias_id)
        if edge is None:
            self.session.add(PlayerAlias(alias_id=alias_id, primary_id=primary_id))
        else:
            edge.primary_id = primary_id
        self.session.flush()

    def delete_edge(self, alias_id: str) -> None:
        self.session.execute(delete(PlayerAlias).where(PlayerAlias.alias_id == alias_id))

    def aliases_of(self, primary_id: str) -> Sequence[str]:
        statement = (
            select(PlayerAlias.alias_id)
            .where(PlayerAlias.primary_id == primary_id)
            .order_by(PlayerAlias.alias_id)
        )
        return list(self.session.execute(statement).scalars())

    def primary_of(self, alias_id: str) -> str | None:
        return self.session.scalar(
            select(PlayerAlias.primary_id).where(PlayerAlias.alias_id == alias_id)
        )
