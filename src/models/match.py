"""matches table model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class MatchRecord(Base):
    """One submitted match with its raw payload (immutable once inserted)."""

    __tablename__ = "matches"
    __table_args__ = (
        Index("idx_matches_played_at", "played_at"),
        Index("idx_matches_game_id", "game_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    map_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    round_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    played_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        nullable=False,
        server_default=func.now(),
    )
    data: Mapped[str | None] = mapped_column(Text, nullable=True)
