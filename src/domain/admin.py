"""Player directory administration and alias management."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.orm import Session

from domain.stats.identity import IdentityResolver, link_players, unlink_player
from domain.stats.names import learn_nicknames
from domain.stats.normalizer import normalize_record
from repositories import SqlAliasStore, SqlMatchStore, SqlPlayerDirectory

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


@dataclass(frozen=True)
class AdminPlayerInfo:
    id: str
    name: str
    primary_id: str | None
    aliases: list[str]


def backfill_player_directory(session: Session) -> int:
    """Upsert every (id, nick) pair found in stored payloads; returns pairs seen."""
    facts = [normalize_record(record) for record in SqlMatchStore(session).list_all()]
    found = learn_nicknames({}, facts)
    directory = SqlPlayerDirectory(session)
    for player_id, name in found.items():
        directory.upsert(player_id, name, touch=False)
    return len(found)


def list_admin_players(*, session_factory: SessionFactory) -> list[AdminPlayerInfo]:
    """All known players with their alias relations, after a directory backfill."""
    with session_factory() as session:
        try:
            found = backfill_player_directory(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
        logger.info("Backfilled %d players from stored matches", found)

        directory = SqlPlayerDirectory(session).get_all()
        resolver = IdentityResolver.from_store(SqlAliasStore(session))

    return [
        AdminPlayerInfo(
            id=player_id,
            name=name,
            primary_id=resolver.primary_of(player_id),
            aliases=list(resolver.aliases_of(player_id)),
        )
        for player_id, name in sorted(directory.items())
    ]


def link_player(alias_id: str, primary_id: str, *, session_factory: SessionFactory) -> None:
    """Make ``alias_id`` an alias of ``primary_id``; raises ``IdentityLinkError``."""
    with session_factory() as session:
        try:
            link_players(SqlAliasStore(session), alias_id, primary_id)
            session.commit()
        except Exception:
            session.rollback()
            raise


def unlink_alias(alias_id: str, *, session_factory: SessionFactory) -> None:
    with session_factory() as session:
        try:
            unlink_player(SqlAliasStore(session), alias_id)
            session.commit()
        except Exception:
            session.rollback()
            raise


__all__ = [
    "AdminPlayerInfo",
    "backfill_player_directory",
    "link_player",
    "list_admin_players",
    "unlink_alias",
]
