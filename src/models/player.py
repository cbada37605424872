"""players and player_aliases table models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Player(Base):
    """Last known display name for one raw player id."""

    __tablename__ = "players"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )


class PlayerAlias(Base):
    """Alias edge redirecting one raw player id to its primary identity."""

    __tablename__ = "player_aliases"
    __table_args__ = (Index("idx_player_aliases_primary", "primary_id"),)

    alias_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    primary_id: Mapped[str] = mapped_column(String(255), nullable=False)
