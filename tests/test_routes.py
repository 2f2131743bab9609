"""Tests for the HTTP and socket driver."""

import threading

import pytest

from conftest import make_started
from notabot.realtime import handlers
from notabot.server import create_app


@pytest.fixture
def app_and_socketio(service):
    return create_app(game_service=service, start_pollers=False)


@pytest.fixture
def client(app_and_socketio):
    app, _ = app_and_socketio
    return app.test_client()


def _create(client, name="Alice", ai_count=2):
    res = client.post("/api/rooms", json={"name": name, "aiCount": ai_count})
    assert res.status_code == 201
    return res.get_json()


def _join(client, code, name):
    res = client.post("/api/rooms/join", json={"code": code, "name": name})
    assert res.status_code == 200
    return res.get_json()


def test_health(client):
    assert client.get("/api/health").get_json() == {"ok": True}


def test_create_validates_payload(client):
    assert client.post("/api/rooms", json={"name": "", "aiCount": 1}).status_code == 400
    assert client.post("/api/rooms", json={"name": "<b>", "aiCount": 1}).status_code == 400
    assert client.post("/api/rooms", json={"name": "Alice", "aiCount": 0}).status_code == 400
    assert client.post("/api/rooms", json={"name": "Alice", "aiCount": "x"}).status_code == 400


def test_join_unknown_room(client):
    res = client.post("/api/rooms/join", json={"code": "ZZZZZZ", "name": "Bob"})
    assert res.status_code == 404
    assert res.get_json() == {"error": "room_not_found"}


def test_full_round_over_http(client, service):
    created = _create(client)
    room_id, host_id = created["roomId"], created["playerId"]
    bob = _join(client, created["roomCode"], "Bob")["playerId"]
    carol = _join(client, created["roomCode"].lower(), "Carol")["playerId"]

    res = client.post(f"/api/rooms/{room_id}/start", json={"playerId": bob})
    assert res.status_code == 403

    res = client.post(f"/api/rooms/{room_id}/start", json={"playerId": host_id})
    assert res.status_code == 200
    assert client.post(f"/api/rooms/{room_id}/start", json={"playerId": host_id}).status_code == 409

    for pid in (host_id, bob, carol):
        res = client.post(f"/api/rooms/{room_id}/answers", json={"playerId": pid, "answer": "sure"})
        assert res.status_code == 200

    res = client.post(f"/api/rooms/{room_id}/answers", json={"playerId": bob, "answer": "again"})
    assert res.status_code == 409

    state = client.get(f"/api/rooms/{room_id}?playerId={bob}").get_json()
    assert state["status"] == "voting"
    assert len(state["answers"]) == 5

    ai_id = service.get_room(room_id).ai_players[0].id
    for pid in (host_id, bob, carol):
        res = client.post(f"/api/rooms/{room_id}/votes", json={"playerId": pid, "targetId": ai_id})
        assert res.status_code == 200
    res = client.post(f"/api/rooms/{room_id}/votes", json={"playerId": bob, "targetId": carol})
    assert res.status_code == 409

    res = client.post(f"/api/rooms/{room_id}/end-voting", json={"playerId": host_id})
    assert res.status_code == 200
    state = res.get_json()["room"]
    assert state["currentRound"] == 2
    assert "was eliminated" in state["roundResult"]


def test_start_needs_enough_players(client):
    created = _create(client, ai_count=1)
    res = client.post(f"/api/rooms/{created['roomId']}/start", json={"playerId": created["playerId"]})
    assert res.status_code == 400
    assert res.get_json() == {"error": "not_enough_players"}


def test_tick_drives_timeouts(client, service, clock):
    created = _create(client)
    room_id, host_id = created["roomId"], created["playerId"]
    _join(client, created["roomCode"], "Bob")
    client.post(f"/api/rooms/{room_id}/start", json={"playerId": host_id})

    clock.advance(45_000)
    state = client.post(f"/api/rooms/{room_id}/tick").get_json()
    assert state["status"] == "voting"
    assert state["timeLeft"] == 30


def test_socket_subscribe(app_and_socketio, client):
    app, socketio = app_and_socketio
    created = _create(client)

    sock = socketio.test_client(app)
    ack = sock.emit(
        "room:subscribe",
        {"roomId": created["roomId"], "playerId": created["playerId"]},
        callback=True,
    )
    assert ack == {"ok": True}

    received = sock.get_received()
    states = [m for m in received if m["name"] == "room:state"]
    assert states[0]["args"][0]["code"] == created["roomCode"]

    bad = sock.emit("room:subscribe", {"roomId": created["roomId"], "playerId": "nobody"}, callback=True)
    assert bad == {"ok": False, "error": "not_in_room"}


class CountingSocketIO:
    """Records background tasks without running them."""

    def __init__(self):
        self.started = []

    def start_background_task(self, target, *args, **kwargs):
        self.started.append(target)


def test_concurrent_ensure_starts_one_poller(service, monkeypatch):
    fake = CountingSocketIO()
    monkeypatch.setattr(handlers, "_socketio", fake)
    monkeypatch.setattr(handlers, "_pollers_enabled", True)
    monkeypatch.setattr(handlers, "_room_tasks", {})
    room = make_started(service)

    barrier = threading.Barrier(8)

    def _ensure():
        barrier.wait()
        handlers.ensure_room_task(service, room.id)

    threads = [threading.Thread(target=_ensure) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(fake.started) == 1
    assert handlers._room_tasks == {room.id: True}
