"""ORM models."""

from models.base import Base
from models.match import MatchRecord
from models.player import Player, PlayerAlias

__all__ = [
    "Base",
    "MatchRecord",
    "Player",
    "PlayerAlias",
]
