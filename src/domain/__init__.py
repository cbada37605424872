"""Match-statistics domain modules."""

from domain.common import GameFact, PlayerRef, RecordFields, RoundFact

__all__ = ["GameFact", "PlayerRef", "RecordFields", "RoundFact"]
