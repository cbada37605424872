"""Database repository helpers."""

from repositories.matches import SqlMatchStore
from repositories.players import SqlAliasStore, SqlPlayerDirectory

__all__ = [
    "SqlAliasStore",
    "SqlMatchStore",
    "SqlPlayerDirectory",
]
