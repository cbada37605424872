"""Display-name resolution shared by every rollup producer."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from domain.common import GameFact

UNKNOWN_PLAYER_NAME = "Unknown"


def resolve_display_name(
    raw_id: str | None,
    primary_id: str | None,
    nick: str | None,
    directory: Mapping[str, str],
) -> str:
    """Payload nick, then directory[primary], then directory[raw], then the raw id."""
    if nick:
        return nick
    if primary_id and primary_id in directory:
        return directory[primary_id]
    if raw_id and raw_id in directory:
        return directory[raw_id]
    if raw_id:
        return raw_id
    return UNKNOWN_PLAYER_NAME


def learn_nicknames(directory: Mapping[str, str], facts: Iterable[GameFact]) -> dict[str, str]:
    """Overlay every (id, nick) pair seen in payloads on a directory snapshot."""
    learned = dict(directory)
    for fact in facts:
        for player in fact.players:
            if player.player_id and player.nick:
                learned[player.player_id] = player.nick
    return learned


__all__ = ["UNKNOWN_PLAYER_NAME", "learn_nicknames", "resolve_display_name"]
