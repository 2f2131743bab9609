"""Tests for the versioned room store and document serialization."""

import pytest

from notabot.game.models import Answer, Player, Question, Room
from notabot.game.store import InMemoryRoomStore, VersionConflict


def _room(room_id="room_1", code="ABC234"):
    return Room(
        id=room_id,
        code=code,
        host_player_id="player_1",
        players=[Player(id="player_1", name="Alice", alias="HappyFox", is_host=True)],
    )


def test_put_bumps_version():
    store = InMemoryRoomStore()
    room = store.put(_room(), expected_version=0)
    assert room.version == 1

    room.status = "answering"
    room = store.put(room, expected_version=1)
    assert room.version == 2
    assert store.get("room_1").status == "answering"


def test_stale_write_raises_conflict():
    store = InMemoryRoomStore()
    store.put(_room(), expected_version=0)

    first = store.get("room_1")
    second = store.get("room_1")
    store.put(first, expected_version=first.version)

    with pytest.raises(VersionConflict) as exc:
        store.put(second, expected_version=second.version)
    assert exc.value.expected == 1
    assert exc.value.actual == 2


def test_create_twice_conflicts():
    store = InMemoryRoomStore()
    store.put(_room(), expected_version=0)
    with pytest.raises(VersionConflict):
        store.put(_room(), expected_version=0)


def test_reads_are_independent_copies():
    store = InMemoryRoomStore()
    store.put(_room(), expected_version=0)

    room = store.get("room_1")
    room.players[0].votes.append("someone")

    assert store.get("room_1").players[0].votes == []


def test_find_by_field():
    store = InMemoryRoomStore()
    store.put(_room("room_1", "AAAAAA"), expected_version=0)
    store.put(_room("room_2", "BBBBBB"), expected_version=0)

    assert [r.id for r in store.find_by_field("code", "BBBBBB")] == ["room_2"]
    assert store.find_by_field("code", "CCCCCC") == []
    assert len(store.list_rooms()) == 2


def test_document_shape_round_trip():
    room = _room()
    room.status = "voting"
    room.current_round = 2
    room.current_question = Question("q5", "What's your favorite childhood memory?")
    room.players[0].answers.append(Answer("q5", "the beach", 2))
    room.humans_won = None

    doc = room.to_dict()
    assert doc["hostPlayerId"] == "player_1"
    assert doc["players"][0]["answers"] == [{"questionId": "q5", "content": "the beach", "round": 2}]
    assert Room.from_dict(doc) == room


def test_unknown_status_is_rejected():
    doc = _room().to_dict()
    doc["status"] = "results"
    with pytest.raises(ValueError):
        Room.from_dict(doc)
