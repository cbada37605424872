"""Match submission and deletion."""

from __future__ import annotations

import hmac
import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy.orm import Session

from domain.stats.normalizer import decode_payload, extract_record_fields, normalize_payload
from repositories import SqlMatchStore, SqlPlayerDirectory

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class UnauthorizedSubmissionError(PermissionError):
    """Raised when a configured API key does not match the submitted credentials."""


def authorize_submission(api_key: str | None, authorization: str | None) -> None:
    """Require ``Authorization: Bearer <api_key>`` when an API key is configured."""
    if not api_key:
        return
    expected = f"Bearer {api_key}"
    if authorization is None or not hmac.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Unauthorized match submission attempt")
        raise UnauthorizedSubmissionError("missing or invalid bearer token")


def _serialize(payload: str | bytes | Mapping[str, Any]) -> str:
    if isinstance(payload, Mapping):
        return json.dumps(payload, separators=(",", ":"))
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("Match payload is not valid UTF-8, storing with replacement characters: %s", exc)
            return payload.decode("utf-8", errors="replace")
    return payload


def ingest_match(
    payload: str | bytes | Mapping[str, Any],
    *,
    session_factory: SessionFactory,
    api_key: str | None = None,
    authorization: str | None = None,
) -> int:
    """Store one submitted payload and refresh the player directory from its roster.

    The raw blob is kept even when it cannot be decoded; such records still
    count toward global totals.
    """
    authorize_submission(api_key, authorization)

    raw_blob = _serialize(payload)
    decoded = decode_payload(raw_blob)
    if decoded is None:
        logger.warning("Storing match payload that is not a JSON object")
    fields = extract_record_fields(decoded)
    fact = normalize_payload(decoded)

    with session_factory() as session:
        try:
            match_id = SqlMatchStore(session).insert(fields, raw_blob)
            directory = SqlPlayerDirectory(session)
            for player in fact.players:
                if player.player_id and player.nick:
                    directory.upsert(player.player_id, player.nick)
            session.commit()
        except Exception:
            session.rollback()
            raise

    logger.info(
        "Stored match id=%s game_id=%s score=%s rounds=%d",
        match_id,
        fields.game_id,
        fields.score,
        fact.round_count,
    )
    return match_id


def delete_match(match_id: int, *, session_factory: SessionFactory) -> bool:
    """Delete one record; ``False`` when it did not exist."""
    with session_factory() as session:
        try:
            existed = SqlMatchStore(session).delete(match_id)
            session.commit()
        except Exception:
            session.rollback()
            raise
    if existed:
        logger.info("Deleted match id=%s", match_id)
    return existed


__all__ = [
    "UnauthorizedSubmissionError",
    "authorize_submission",
    "delete_match",
    "ingest_match",
]
