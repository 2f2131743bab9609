from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ..config import Config
from ..game.service import GameService, room_public_state
from ..realtime.handlers import broadcast_room_state, ensure_room_task

bp = Blueprint("rooms", __name__)


def _service() -> GameService:
    return current_app.extensions["game_service"]


def _validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > 16:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def _payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _error(code: str, status: int):
    return jsonify({"error": code}), status


def _state(room, viewer_id: str | None):
    return room_public_state(room, viewer_id=viewer_id, now=_service().clock.now())


def _after_change(room) -> None:
    broadcast_room_state(_service(), room)


@bp.post("/rooms")
def create_room():
    payload = _payload()
    name = str(payload.get("name", "")).strip()
    if not _validate_name(name):
        return _error("invalid_name", 400)

    try:
        ai_count = int(payload.get("aiCount", 1))
    except (TypeError, ValueError):
        return _error("invalid_ai_count", 400)
    if ai_count < 1 or ai_count > Config.MAX_AI_COUNT:
        return _error("invalid_ai_count", 400)

    room = _service().create_room(name, ai_count)
    host_id = room.host_player_id
    return jsonify({
        "roomId": room.id,
        "roomCode": room.code,
        "playerId": host_id,
        "room": _state(room, host_id),
    }), 201


@bp.post("/rooms/join")
def join_room():
    payload = _payload()
    code = str(payload.get("code", "")).strip()
    name = str(payload.get("name", "")).strip()
    if not code or not _validate_name(name):
        return _error("invalid_payload", 400)

    room = _service().join_room(code, name)
    if room is None:
        return _error("room_not_found", 404)

    # The joining player is always appended last.
    player_id = room.players[-1].id
    _after_change(room)
    return jsonify({"roomId": room.id, "playerId": player_id, "room": _state(room, player_id)})


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    room = _service().get_room(room_id)
    if not room:
        return _error("room_not_found", 404)
    return jsonify(_state(room, request.args.get("playerId")))


@bp.post("/rooms/<room_id>/start")
def start_game(room_id: str):
    payload = _payload()
    service = _service()
    room = service.get_room(room_id)
    if not room:
        return _error("room_not_found", 404)
    if str(payload.get("playerId", "")) != room.host_player_id:
        return _error("only_host", 403)
    if len(room.players) + room.ai_count < Config.MIN_PLAYERS:
        return _error("not_enough_players", 400)

    room = service.start_game(room_id)
    if room is None:
        return _error("already_started", 409)

    _after_change(room)
    ensure_room_task(service, room.id)
    return jsonify({"ok": True})


@bp.post("/rooms/<room_id>/answers")
async def submit_answer(room_id: str):
    payload = _payload()
    player_id = str(payload.get("playerId", "")).strip()
    answer = str(payload.get("answer", "")).strip()
    if not player_id or not answer:
        return _error("invalid_payload", 400)
    if len(answer) > 280:
        return _error("answer_too_long", 400)

    service = _service()
    ok = await service.submit_answer(room_id, player_id, answer)
    if not ok:
        return _error("answer_rejected", 409)

    room = service.get_room(room_id)
    if room:
        _after_change(room)
    return jsonify({"ok": True})


@bp.post("/rooms/<room_id>/votes")
def submit_vote(room_id: str):
    payload = _payload()
    player_id = str(payload.get("playerId", "")).strip()
    target_id = str(payload.get("targetId", "")).strip()
    add = payload.get("add", True)
    if not player_id or not target_id or not isinstance(add, bool):
        return _error("invalid_payload", 400)

    service = _service()
    ok = service.submit_vote(room_id, player_id, target_id, add)
    if not ok:
        return _error("vote_rejected", 409)

    room = service.get_room(room_id)
    if room:
        _after_change(room)
    return jsonify({"ok": True})


@bp.post("/rooms/<room_id>/end-voting")
def end_voting(room_id: str):
    payload = _payload()
    service = _service()
    room = service.get_room(room_id)
    if not room:
        return _error("room_not_found", 404)
    if str(payload.get("playerId", "")) != room.host_player_id:
        return _error("only_host", 403)

    room = service.end_voting_round(room_id)
    if room is None:
        return _error("not_voting", 409)

    _after_change(room)
    return jsonify({"ok": True, "room": _state(room, room.host_player_id)})


@bp.post("/rooms/<room_id>/tick")
async def tick(room_id: str):
    service = _service()
    before = service.get_room(room_id)
    if not before:
        return _error("room_not_found", 404)

    room = await service.check_and_update_game_state(room_id)
    if room is None:
        return _error("room_not_found", 404)
    if room.version != before.version:
        _after_change(room)
    return jsonify(_state(room, request.args.get("playerId")))
