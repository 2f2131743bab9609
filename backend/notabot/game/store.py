from __future__ import annotations

import copy
from threading import RLock
from typing import Any, Protocol

from .models import Room


class VersionConflict(Exception):
    def __init__(self, room_id: str, expected: int, actual: int | None):
        super().__init__(f"room {room_id}: expected version {expected}, found {actual}")
        self.room_id = room_id
        self.expected = expected
        self.actual = actual


class RoomStore(Protocol):
    def get(self, room_id: str) -> Room | None: ...

    def put(self, room: Room, expected_version: int) -> Room: ...

    def find_by_field(self, field_name: str, value: Any) -> list[Room]: ...


class InMemoryRoomStore:
    """Whole-document room store with a version check on every write.

    Documents are kept in their serialized shape, so every read hands out an
    independent copy and a caller can only publish changes through ``put``.
    A new room is written with ``expected_version=0``.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._docs: dict[str, dict] = {}

    def get(self, room_id: str) -> Room | None:
        with self._lock:
            doc = self._docs.get(room_id)
            if doc is None:
                return None
            return Room.from_dict(copy.deepcopy(doc))

    def put(self, room: Room, expected_version: int) -> Room:
        with self._lock:
            current = self._docs.get(room.id)
            actual = int(current["version"]) if current is not None else None
            if (actual or 0) != expected_version:
                raise VersionConflict(room.id, expected_version, actual)

            room.version = expected_version + 1
            self._docs[room.id] = room.to_dict()
            return room

    def find_by_field(self, field_name: str, value: Any) -> list[Room]:
        with self._lock:
            return [
                Room.from_dict(copy.deepcopy(doc))
                for doc in self._docs.values()
                if doc.get(field_name) == value
            ]

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return [Room.from_dict(copy.deepcopy(doc)) for doc in self._docs.values()]
