"""SQLAlchemy-backed match record store."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from domain.common import RecordFields
from domain.stats.protocol import ScalarAggregates
from models import MatchRecord


class SqlMatchStore:
    """Insert, list, delete and summarize ``matches`` rows within one session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert(self, fields: RecordFields, raw_blob: str) -> int:
        record = MatchRecord(
            game_id=fields.game_id,
            map_name=fields.map_name,
            score=fields.score,
            round_time=fields.round_time,
            total_duration=fields.total_duration,
            data=raw_blob,
        )
        if fields.played_at is not None:
            record.played_at = fields.played_at
        self.session.add(record)
        self.session.flush()
        return int(record.id)

    def list_all(self) -> Sequence[MatchRecord]:
        """All records, newest first (ties by descending id)."""
        statement = select(MatchRecord).order_by(
            MatchRecord.played_at.desc(),
            MatchRecord.id.desc(),
        )
        return list(self.session.execute(statement).scalars())

    def delete(self, match_id: int) -> bool:
        result = self.session.execute(delete(MatchRecord).where(MatchRecord.id == match_id))
        return bool(result.rowcount)

    def scalar_aggregates(self) -> ScalarAggregates:
        statement = select(
            func.count(MatchRecord.id),
            func.avg(MatchRecord.score),
            func.sum(MatchRecord.total_duration),
        )
        count, avg_score, sum_duration = self.session.execute(statement).one()
        return ScalarAggregates(
            count=int(count or 0),
            avg_score=float(avg_score or 0.0),
            sum_duration=int(sum_duration or 0),
        )
