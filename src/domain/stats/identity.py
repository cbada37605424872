"""Player identity resolution through a depth-1 alias relation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from domain.stats.protocol import AliasStore

logger = logging.getLogger(__name__)

SELF_LINK = "self_link"
PRIMARY_IS_ALIAS = "primary_is_alias"
ALIAS_HAS_CHILDREN = "alias_has_children"


class IdentityLinkError(ValueError):
    """Raised when an alias link would break the depth-1 forest."""

    def __init__(self, reason: str, alias_id: str, primary_id: str) -> None:
        self.reason = reason
        self.alias_id = alias_id
        self.primary_id = primary_id
        super().__init__(
            f"Cannot link alias_id={alias_id!r} to primary_id={primary_id!r}: {reason}"
        )


def validate_link(
    alias_id: str,
    primary_id: str,
    *,
    primary_is_alias: bool,
    alias_has_children: bool,
) -> None:
    """Raise ``IdentityLinkError`` for self-links, chains and group merges."""
    if alias_id == primary_id:
        raise IdentityLinkError(SELF_LINK, alias_id, primary_id)
    if primary_is_alias:
        raise IdentityLinkError(PRIMARY_IS_ALIAS, alias_id, primary_id)
    if alias_has_children:
        raise IdentityLinkError(ALIAS_HAS_CHILDREN, alias_id, primary_id)


class IdentityResolver:
    """Immutable, request-scoped snapshot of alias -> primary edges."""

    def __init__(self, edges: Iterable[tuple[str, str]] = ()) -> None:
        alias_to_primary: dict[str, str] = {}
        primary_to_aliases: dict[str, list[str]] = {}
        for alias_id, primary_id in edges:
            alias_to_primary[alias_id] = primary_id
        for alias_id, primary_id in sorted(alias_to_primary.items()):
            primary_to_aliases.setdefault(primary_id, []).append(alias_id)
        self._alias_to_primary = MappingProxyType(alias_to_primary)
        self._primary_to_aliases = MappingProxyType(
            {primary_id: tuple(aliases) for primary_id, aliases in primary_to_aliases.items()}
        )

    @classmethod
    def from_store(cls, store: AliasStore) -> IdentityResolver:
        return cls(store.get_all_edges())

    def resolve(self, player_id: str) -> str:
        return self._alias_to_primary.get(player_id, player_id)

    def expand(self, primary_id: str) -> frozenset[str]:
        """Every raw id belonging to one identity, the primary included."""
        return frozenset((primary_id, *self.aliases_of(primary_id)))

    def aliases_of(self, primary_id: str) -> tuple[str, ...]:
        return self._primary_to_aliases.get(primary_id, ())

    def primary_of(self, alias_id: str) -> str | None:
        return self._alias_to_primary.get(alias_id)

    def is_alias(self, player_id: str) -> bool:
        return player_id in self._alias_to_primary

    def has_aliases(self, player_id: str) -> bool:
        return player_id in self._primary_to_aliases

    def check_link(self, alias_id: str, primary_id: str) -> None:
        validate_link(
            alias_id,
            primary_id,
            primary_is_alias=self.is_alias(primary_id),
            alias_has_children=self.has_aliases(alias_id),
        )


def link_players(store: AliasStore, alias_id: str, primary_id: str) -> None:
    """Point ``alias_id`` at ``primary_id`` after checking the current store state."""
    try:
        validate_link(
            alias_id,
            primary_id,
            primary_is_alias=store.primary_of(primary_id) is not None,
            alias_has_children=bool(store.aliases_of(alias_id)),
        )
    except IdentityLinkError as exc:
        logger.warning("Rejected alias link: %s", exc)
        raise
    store.upsert_edge(alias_id, primary_id)
    logger.info("Linked alias_id=%s to primary_id=%s", alias_id, primary_id)


def unlink_player(store: AliasStore, alias_id: str) -> None:
    """Remove an alias edge; a missing edge is not an error."""
    store.delete_edge(alias_id)
    logger.info("Unlinked alias_id=%s", alias_id)


__all__ = [
    "ALIAS_HAS_CHILDREN",
    "IdentityLinkError",
    "IdentityResolver",
    "PRIMARY_IS_ALIAS",
    "SELF_LINK",
    "link_players",
    "unlink_player",
    "validate_link",
]
