"""End-to-end tests: ingest payloads, manage aliases and query statistics."""

from __future__ import annotations

import json
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from db import create_db_engine, create_session_factory, ensure_schema
from domain.admin import link_player, list_admin_players, unlink_alias
from domain.common import RecordFields
from domain.ingest import UnauthorizedSubmissionError, delete_match, ingest_match
from domain.pipeline import (
    StatsQuery,
    get_game_stats,
    get_player_stats,
    get_team_leaderboard,
    get_team_stats,
    list_games,
)
from domain.stats.identity import SELF_LINK, IdentityLinkError
from repositories import SqlAliasStore, SqlMatchStore, SqlPlayerDirectory


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    engine = create_db_engine("sqlite://")
    ensure_schema(engine)
    return create_session_factory(engine)


def _player(player_id: str, nick: str | None, *guess_points: int) -> dict[str, Any]:
    entry: dict[str, Any] = {"playerId": player_id, "guesses": [{"score": {"points": p}} for p in guess_points]}
    if nick is not None:
        entry["nick"] = nick
    return entry


def _payload(
    game_id: str,
    players: list[dict[str, Any]],
    round_points: list[int],
    *,
    countries: list[str] | None = None,
    status: str = "finished",
    map_name: str = "A Diverse World",
    timestamp: str = "2024-05-01T10:00:00",
    duration: int = 300,
) -> dict[str, Any]:
    codes = countries or ["se"] * len(round_points)
    return {
        "gameId": game_id,
        "timestamp": timestamp,
        "totalDuration": duration,
        "bullseye": {
            "state": {
                "status": status,
                "mapName": map_name,
                "options": {"roundTime": 60},
                "rounds": [
                    {
                        "roundNumber": index + 1,
                        "panorama": {"countryCode": code},
                        "score": {"points": points},
                    }
                    for index, (code, points) in enumerate(zip(codes, round_points))
                ],
                "players": players,
            }
        },
    }


def test_ingest_then_list_games(session_factory: sessionmaker[Session]) -> None:
    match_id = ingest_match(
        json.dumps(_payload("g1", [_player("p1", "Alice", 1000, 1500, 2500)], [1000, 1500, 2500])),
        session_factory=session_factory,
    )

    games = list_games(session_factory=session_factory)

    assert len(games) == 1
    game = games[0]
    assert game.id == match_id
    assert game.game_id == "g1"
    assert game.score == 5000
    assert game.max_score == 15000
    assert game.round_count == 3
    assert game.is_finished is True
    assert game.country_codes == ["se", "se", "se"]
    assert [(player.id, player.name) for player in game.players] == [("p1", "Alice")]


def test_list_games_is_newest_first(session_factory: sessionmaker[Session]) -> None:
    ingest_match(_payload("old", [], [100], timestamp="2024-01-01T00:00:00"), session_factory=session_factory)
    ingest_match(_payload("new", [], [100], timestamp="2024-03-01T00:00:00"), session_factory=session_factory)

    assert [game.game_id for game in list_games(session_factory=session_factory)] == ["new", "old"]


def test_unauthorized_ingest_stores_nothing(session_factory: sessionmaker[Session]) -> None:
    payload = _payload("g1", [_player("p1", "Alice", 100)], [100])

    with pytest.raises(UnauthorizedSubmissionError):
        ingest_match(payload, session_factory=session_factory, api_key="secret")
    with pytest.raises(UnauthorizedSubmissionError):
        ingest_match(payload, session_factory=session_factory, api_key="secret", authorization="Bearer nope")

    assert list_games(session_factory=session_factory) == []
    assert list_admin_players(session_factory=session_factory) == []

    ingest_match(payload, session_factory=session_factory, api_key="secret", authorization="Bearer secret")
    assert len(list_games(session_factory=session_factory)) == 1


def test_global_stats_count_malformed_records_only_without_filters(
    session_factory: sessionmaker[Session],
) -> None:
    ingest_match(
        _payload("g1", [], [4000, 2000, 3000], countries=["SE", "fr", "se"], duration=100),
        session_factory=session_factory,
    )
    ingest_match("not json", session_factory=session_factory)

    unfiltered = get_game_stats(session_factory=session_factory)
    assert unfiltered.total_games == 2
    assert unfiltered.average_score == pytest.approx(4500.0)
    assert unfiltered.total_duration_seconds == 100
    assert [(country.country_code, country.count) for country in unfiltered.best_country_guesses] == [
        ("se", 2),
        ("fr", 1),
    ]

    filtered = get_game_stats(session_factory=session_factory, query=StatsQuery(exclude_abandons=True))
    assert filtered.total_games == 1
    assert filtered.average_score == pytest.approx(9000.0)


def test_alias_merges_player_stats(session_factory: sessionmaker[Session]) -> None:
    ingest_match(
        _payload("g1", [_player("p1", "Alice", 1000)], [1000], timestamp="2024-05-01T10:00:00"),
        session_factory=session_factory,
    )
    ingest_match(
        _payload("g2", [_player("p2", "Alice (laptop)", 3000)], [3000], timestamp="2024-05-02T10:00:00"),
        session_factory=session_factory,
    )

    link_player("p2", "p1", session_factory=session_factory)
    stats = get_player_stats("p2", session_factory=session_factory)

    assert stats.player_id == "p1"
    assert stats.player_name == "Alice"
    assert stats.total_games == 2
    assert stats.average_score == pytest.approx(2000.0)
    assert [point.score for point in stats.score_history] == [1000, 3000]
    assert [game.game_id for game in stats.games] == ["g2", "g1"]
    assert [country.country_code for country in stats.best_countries] == ["se"]


def test_player_stats_score_type_and_best_teams(session_factory: sessionmaker[Session]) -> None:
    ingest_match(
        _payload("duo", [_player("p1", "Alice", 1000), _player("p3", "Cid", 4000)], [5000]),
        session_factory=session_factory,
    )
    ingest_match(_payload("solo", [_player("p1", "Alice", 2000)], [2000]), session_factory=session_factory)

    personal = get_player_stats("p1", session_factory=session_factory)
    game = get_player_stats("p1", session_factory=session_factory, query=StatsQuery(score_type="game"))

    assert personal.average_score == pytest.approx(1500.0)
    assert game.average_score == pytest.approx(3500.0)
    assert [team.team_id for team in personal.best_teams] == ["p1,p3"]
    assert personal.best_teams[0].team_name == "Alice, Cid"


def test_unknown_player_has_empty_stats(session_factory: sessionmaker[Session]) -> None:
    stats = get_player_stats("ghost", session_factory=session_factory)

    assert stats.player_id == "ghost"
    assert stats.player_name is None
    assert stats.total_games == 0
    assert stats.average_score == 0.0
    assert stats.best_teams == []


def test_unlink_splits_team_keys_again(session_factory: sessionmaker[Session]) -> None:
    ingest_match(
        _payload("g1", [_player("p1", "Alice", 500), _player("p3", "Cid", 500)], [1000]),
        session_factory=session_factory,
    )
    ingest_match(
        _payload("g2", [_player("p3", "Cid", 1500), _player("p2", "Alt", 1500)], [3000]),
        session_factory=session_factory,
    )

    link_player("p2", "p1", session_factory=session_factory)
    merged = get_team_stats("p3,p2", session_factory=session_factory)
    assert merged.total_games == 2
    assert merged.average_score == pytest.approx(2000.0)
    assert [team.team_id for team in get_team_leaderboard(session_factory=session_factory)] == ["p1,p3"]

    unlink_alias("p2", session_factory=session_factory)
    assert get_team_stats("p1,p3", session_factory=session_factory).total_games == 1
    leaderboard = get_team_leaderboard(session_factory=session_factory)
    assert [team.team_id for team in leaderboard] == ["p2,p3", "p1,p3"]
    assert leaderboard[0].team_name == "Cid, Alt"


def test_team_stats_without_games_uses_requested_members(session_factory: sessionmaker[Session]) -> None:
    stats = get_team_stats("x, y", session_factory=session_factory)

    assert stats.team_id == "x, y"
    assert stats.total_games == 0
    assert [member.id for member in stats.members] == ["x", "y"]
    assert stats.team_name == "x, y"


def test_leaderboard_honours_limit_and_map_filter(session_factory: sessionmaker[Session]) -> None:
    ingest_match(_payload("g1", [_player("a", "A")], [1000], map_name="Europe"), session_factory=session_factory)
    ingest_match(_payload("g2", [_player("b", "B")], [2000], map_name="World"), session_factory=session_factory)
    ingest_match(_payload("g3", [_player("c", "C")], [3000], map_name="World"), session_factory=session_factory)

    assert [team.team_id for team in get_team_leaderboard(session_factory=session_factory, limit=2)] == ["c", "b"]
    europe = get_team_leaderboard(session_factory=session_factory, query=StatsQuery(map="EUROPE"))
    assert [team.team_id for team in europe] == ["a"]


def test_rejected_link_leaves_aliases_unchanged(session_factory: sessionmaker[Session]) -> None:
    with pytest.raises(IdentityLinkError) as exc_info:
        link_player("p1", "p1", session_factory=session_factory)
    assert exc_info.value.reason == SELF_LINK

    link_player("p2", "p1", session_factory=session_factory)
    with pytest.raises(IdentityLinkError):
        link_player("p3", "p2", session_factory=session_factory)

    ingest_match(_payload("g1", [_player("p3", "Cid", 100)], [100]), session_factory=session_factory)
    assert get_player_stats("p3", session_factory=session_factory).player_id == "p3"


def test_admin_list_backfills_directory_from_stored_matches(
    session_factory: sessionmaker[Session],
) -> None:
    with session_factory() as session:
        SqlMatchStore(session).insert(
            RecordFields(game_id="legacy", map_name=None, score=0, round_time=None, total_duration=None, played_at=None),
            json.dumps(_payload("legacy", [_player("p9", "Nine"), _player("p8", "Eight")], [0])),
        )
        session.commit()

    link_player("p8", "p9", session_factory=session_factory)
    players = list_admin_players(session_factory=session_factory)

    assert [(player.id, player.name) for player in players] == [("p8", "Eight"), ("p9", "Nine")]
    assert players[0].primary_id == "p9"
    assert players[1].aliases == ["p8"]


def test_delete_match_removes_it_from_every_query(session_factory: sessionmaker[Session]) -> None:
    match_id = ingest_match(_payload("g1", [_player("p1", "Alice", 100)], [100]), session_factory=session_factory)

    assert delete_match(match_id, session_factory=session_factory) is True
    assert delete_match(match_id, session_factory=session_factory) is False
    assert list_games(session_factory=session_factory) == []
    assert get_player_stats("p1", session_factory=session_factory).total_games == 0


def test_player_scores_ignore_explicit_lobby_score(session_factory: sessionmaker[Session]) -> None:
    payload = _payload("g1", [{"playerId": "p1", "nick": "Alice"}], [1000, 1500, 2500])
    payload["bullseye"]["guess"] = {"score": {"points": 4000}}
    ingest_match(payload, session_factory=session_factory)

    assert list_games(session_factory=session_factory)[0].score == 4000
    assert get_player_stats("p1", session_factory=session_factory).average_score == pytest.approx(5000.0)
    game_mode = get_player_stats("p1", session_factory=session_factory, query=StatsQuery(score_type="game"))
    assert game_mode.average_score == pytest.approx(5000.0)
    assert get_team_stats("p1", session_factory=session_factory).average_score == pytest.approx(4000.0)


def test_store_failures_degrade_to_empty_values(
    session_factory: sessionmaker[Session],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    ingest_match(
        _payload("g1", [_player("p1", "Alice", 1000), _player("p2", "Bob", 2000)], [3000]),
        session_factory=session_factory,
    )
    link_player("p2", "p1", session_factory=session_factory)

    def fail(*args: object, **kwargs: object) -> None:
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(SqlMatchStore, "scalar_aggregates", fail)
    monkeypatch.setattr(SqlAliasStore, "get_all_edges", fail)
    monkeypatch.setattr(SqlPlayerDirectory, "get", fail)

    stats = get_game_stats(session_factory=session_factory)
    assert stats.total_games == 0
    assert stats.average_score == 0.0
    assert [country.country_code for country in stats.best_country_guesses] == ["se"]

    player = get_player_stats("p2", session_factory=session_factory)
    assert player.player_id == "p2"
    assert player.player_name == "Bob"
    assert player.total_games == 1
    assert [team.team_id for team in player.best_teams] == ["p1,p2"]


def test_record_load_failure_propagates_for_player_queries(
    session_factory: sessionmaker[Session],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def fail(*args: object, **kwargs: object) -> None:
        raise OperationalError("SELECT 1", {}, Exception("no such table: matches"))

    monkeypatch.setattr(SqlMatchStore, "list_all", fail)

    assert get_game_stats(session_factory=session_factory).best_country_guesses == []
    with pytest.raises(OperationalError):
        get_player_stats("p1", session_factory=session_factory)


def test_ingest_bytes_keeps_utf8_text_and_warns_on_invalid_bytes(
    session_factory: sessionmaker[Session],
    caplog: pytest.LogCaptureFixture,
) -> None:
    payload = json.dumps(_payload("g1", [_player("p1", "Zoë", 100)], [100]), ensure_ascii=False)
    match_id = ingest_match(payload.encode("utf-8"), session_factory=session_factory)
    with session_factory() as session:
        stored = SqlMatchStore(session).list_all()[0]
    assert stored.id == match_id
    assert stored.data == payload
    assert not [record for record in caplog.records if "UTF-8" in record.getMessage()]

    with caplog.at_level("WARNING", logger="domain.ingest"):
        ingest_match(b"\xff\xfe{}", session_factory=session_factory)
    assert any("not valid UTF-8" in record.getMessage() for record in caplog.records)
    assert len(list_games(session_factory=session_factory)) == 2
