from __future__ import annotations

import asyncio
import logging
import threading

from flask_socketio import SocketIO, emit, join_room, leave_room

from ..config import Config
from ..game.models import Room
from ..game.service import GameService, room_public_state


logger = logging.getLogger(__name__)

_room_tasks: dict[str, bool] = {}
_room_tasks_lock = threading.Lock()
_socketio: SocketIO | None = None
_pollers_enabled = True


def _viewer_channel(room_id: str, player_id: str) -> str:
    return f"{room_id}:{player_id}"


def broadcast_room_state(service: GameService, room: Room) -> None:
    """Push each human player their own view of the room."""
    if _socketio is None:
        return

    now = service.clock.now()
    for p in room.players:
        if p.is_ai:
            continue
        _socketio.emit(
            "room:state",
            room_public_state(room, viewer_id=p.id, now=now),
            to=_viewer_channel(room.id, p.id),
        )


def ensure_room_task(service: GameService, room_id: str) -> None:
    """Start the clock-driven poller for a room unless one is running."""
    if _socketio is None or not _pollers_enabled:
        return
    with _room_tasks_lock:
        if _room_tasks.get(room_id):
            return
        _room_tasks[room_id] = True
    socketio = _socketio

    def _runner() -> None:
        while True:
            room = service.get_room(room_id)
            if not room or room.status == "ended":
                break

            try:
                updated = asyncio.run(service.check_and_update_game_state(room_id))
            except Exception:
                # A failed tick is retried on the next one.
                logger.exception(f"Poll of room {room_id} failed")
                updated = None

            if updated is not None and updated.version != room.version:
                broadcast_room_state(service, updated)
                if updated.status == "ended":
                    break

            socketio.sleep(Config.POLL_INTERVAL_SEC)

        with _room_tasks_lock:
            _room_tasks.pop(room_id, None)
        logger.debug(f"Poller for room {room_id} stopped")

    socketio.start_background_task(_runner)


def register_socketio_handlers(socketio: SocketIO, service: GameService, start_pollers: bool = True) -> None:
    global _socketio, _pollers_enabled
    _socketio = socketio
    _pollers_enabled = start_pollers

    @socketio.on("room:subscribe")
    def room_subscribe(data):
        payload = data or {}
        room_id = str(payload.get("roomId", "")).strip()
        player_id = str(payload.get("playerId", "")).strip()
        if not room_id or not player_id:
            emit("room:error", {"error": "invalid_payload"})
            return {"ok": False, "error": "invalid_payload"}

        room = service.get_room(room_id)
        if not room:
            emit("room:error", {"error": "room_not_found"})
            return {"ok": False, "error": "room_not_found"}

        if room.get_player(player_id) is None:
            emit("room:error", {"error": "not_in_room"})
            return {"ok": False, "error": "not_in_room"}

        join_room(room_id)
        join_room(_viewer_channel(room_id, player_id))
        emit("room:state", room_public_state(room, viewer_id=player_id, now=service.clock.now()))

        if room.status in ("answering", "voting"):
            ensure_room_task(service, room_id)
        return {"ok": True}

    @socketio.on("room:unsubscribe")
    def room_unsubscribe(data):
        payload = data or {}
        room_id = str(payload.get("roomId", "")).strip()
        player_id = str(payload.get("playerId", "")).strip()
        if not room_id:
            return

        leave_room(room_id)
        if player_id:
            leave_room(_viewer_channel(room_id, player_id))
