"""Schema-tolerant normalization of raw Bullseye match payloads.

Payloads arrive from several generations of the browser extension, so every
nested field is optional and may carry an unexpected type. Each accessor below
degrades to ``None`` instead of raising, which keeps normalization a total
function: the worst outcome for a stored blob is an empty ``GameFact``.

Payload layout (all keys optional)::

    {
      "gameId": str, "timestamp": str, "totalDuration": int,
      "bullseye": {
        "guess": {"score": {"points": int}},
        "state": {
          "gameId": str, "status": str, "mapName": str,
          "options": {"roundTime": int},
          "rounds": [{"roundNumber": int, "startTime": str,
                      "panorama": {"countryCode": str},
                      "score": {"points": int}}],
          "players": [{"playerId": str, "nick": str,
                       "guesses": [{"score": {"points": int}}]}]
        }
      }
    }
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from domain.common import GameFact, PlayerRef, RecordFields, RoundFact
from models import MatchRecord

FINISHED_STATUS = "finished"


def _mapping(value: object) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value
    return None


def _sequence(value: object) -> list[Any] | None:
    if isinstance(value, list):
        return value
    return None


def _optional_str(value: object) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _optional_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed


def _dig(value: object, *keys: str) -> object:
    current = value
    for key in keys:
        mapping = _mapping(current)
        if mapping is None:
            return None
        current = mapping.get(key)
    return current


def _points(value: object) -> int | None:
    return _optional_int(_dig(value, "score", "points"))


def decode_payload(raw: str | bytes | Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    """Decode a stored blob; ``None`` when it is not a JSON object."""
    if raw is None:
        return None
    if isinstance(raw, Mapping):
        return raw
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return _mapping(decoded)


def _parse_rounds(state: object) -> tuple[RoundFact, ...]:
    raw_rounds = _sequence(_dig(state, "rounds")) or []
    rounds: list[RoundFact] = []
    for raw_round in raw_rounds:
        if _mapping(raw_round) is None:
            continue
        rounds.append(
            RoundFact(
                round_number=_optional_int(_dig(raw_round, "roundNumber")),
                country_code=_optional_str(_dig(raw_round, "panorama", "countryCode")),
                points=_points(raw_round) or 0,
                start_time=_optional_timestamp(_dig(raw_round, "startTime")),
            )
        )
    return tuple(rounds)


def _parse_players(state: object) -> tuple[PlayerRef, ...]:
    raw_players = _sequence(_dig(state, "players")) or []
    players: list[PlayerRef] = []
    for raw_player in raw_players:
        if _mapping(raw_player) is None:
            continue
        guesses = _sequence(_dig(raw_player, "guesses"))
        guess_points = None
        if guesses is not None:
            guess_points = sum(_points(guess) or 0 for guess in guesses)
        players.append(
            PlayerRef(
                player_id=_optional_str(_dig(raw_player, "playerId")) or "",
                nick=_optional_str(_dig(raw_player, "nick")),
                guess_points=guess_points,
            )
        )
    return tuple(players)


def _game_score(payload: Mapping[str, Any], rounds: tuple[RoundFact, ...]) -> int:
    explicit = _points(_dig(payload, "bullseye", "guess"))
    if explicit:
        return explicit
    return sum(round_fact.points for round_fact in rounds)


def _played_at_from_payload(
    payload: Mapping[str, Any],
    rounds: tuple[RoundFact, ...],
) -> datetime | None:
    explicit = _optional_timestamp(payload.get("timestamp"))
    if explicit is not None:
        return explicit
    first_round = next((round_fact for round_fact in rounds if round_fact.round_number == 1), None)
    if first_round is not None and first_round.start_time is not None:
        return first_round.start_time
    if rounds:
        return rounds[0].start_time
    return None


def _is_finished(state: object) -> bool:
    status = _optional_str(_dig(state, "status"))
    return status is not None and status.casefold() == FINISHED_STATUS


def empty_fact(
    *,
    record_id: int | None = None,
    stored_played_at: datetime | None = None,
) -> GameFact:
    """Fact used for blobs that cannot be decoded at all."""
    return GameFact(
        record_id=record_id,
        game_id=None,
        map_name=None,
        finished=False,
        total_duration=0,
        played_at=_optional_timestamp(stored_played_at),
        score=0,
    )


def normalize_payload(
    raw: str | bytes | Mapping[str, Any] | None,
    *,
    record_id: int | None = None,
    stored_played_at: datetime | None = None,
) -> GameFact:
    """Turn one raw payload into a ``GameFact``; never raises on bad content."""
    payload = decode_payload(raw)
    if payload is None:
        return empty_fact(record_id=record_id, stored_played_at=stored_played_at)

    state = _dig(payload, "bullseye", "state")
    rounds = _parse_rounds(state)
    played_at = _played_at_from_payload(payload, rounds)
    if played_at is None:
        played_at = _optional_timestamp(stored_played_at)

    return GameFact(
        record_id=record_id,
        game_id=_optional_str(payload.get("gameId")) or _optional_str(_dig(state, "gameId")),
        map_name=_optional_str(_dig(state, "mapName")),
        finished=_is_finished(state),
        total_duration=_optional_int(payload.get("totalDuration")) or 0,
        played_at=played_at,
        score=_game_score(payload, rounds),
        round_time=_optional_int(_dig(state, "options", "roundTime")),
        rounds=rounds,
        players=_parse_players(state),
    )


def normalize_record(record: MatchRecord) -> GameFact:
    """Normalize a stored record, keeping its columns for undecodable blobs."""
    payload = decode_payload(record.data)
    fact = normalize_payload(
        payload,
        record_id=record.id,
        stored_played_at=record.played_at,
    )
    if payload is not None:
        return fact
    return replace(
        fact,
        game_id=record.game_id,
        map_name=record.map_name,
        score=record.score or 0,
        round_time=record.round_time,
        total_duration=record.total_duration or 0,
    )


def extract_record_fields(raw: str | bytes | Mapping[str, Any] | None) -> RecordFields:
    """Derive the column values stored alongside a newly submitted payload."""
    payload = decode_payload(raw)
    if payload is None:
        return RecordFields(
            game_id=None,
            map_name=None,
            score=0,
            round_time=None,
            total_duration=None,
            played_at=None,
        )

    state = _dig(payload, "bullseye", "state")
    rounds = _parse_rounds(state)
    return RecordFields(
        game_id=_optional_str(payload.get("gameId")) or _optional_str(_dig(state, "gameId")),
        map_name=_optional_str(_dig(state, "mapName")),
        score=_game_score(payload, rounds),
        round_time=_optional_int(_dig(state, "options", "roundTime")),
        total_duration=_optional_int(payload.get("totalDuration")),
        played_at=_played_at_from_payload(payload, rounds),
    )


__all__ = [
    "decode_payload",
    "empty_fact",
    "extract_record_fields",
    "normalize_payload",
    "normalize_record",
]
