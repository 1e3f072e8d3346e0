"""Per-network room registry stored as one JSON list per network key.

Every mutating call re-reads the list and writes it back whole, so two writers
sharing a key can lose each other's updates. Callers are expected to be a
single user session.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Mapping

from tttroom.backend.models import ROOM_JSON_KEYS, STATUS_ORDER, Room
from tttroom.backend.store import KeyValueStore

logger = logging.getLogger(__name__)


class StatusRegressionError(ValueError):
    def __init__(self, room_id: str, current: str, requested: str) -> None:
        super().__init__(f"room {room_id} cannot move from {current!r} back to {requested!r}")
        self.room_id = room_id
        self.current = current
        self.requested = requested


def rooms_key(network: str) -> str:
    return f"ttt.rooms.{network}"


class RoomStore:
    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def _read_entries(self, network: str) -> list[Any]:
        """Raw stored entries; backend errors propagate, malformed data is []."""
        raw = self._kv.get(rooms_key(network))
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed room data for %s", network)
            return []
        if not isinstance(parsed, list):
            return []
        return parsed

    def _write_entries(self, network: str, entries: list[Any]) -> None:
        self._kv.set(rooms_key(network), json.dumps(entries))

    def list_rooms(self, network: str) -> list[Room]:
        """Return rooms newest first; missing or unreadable data yields []."""
        try:
            entries = self._read_entries(network)
        except Exception:
            logger.exception("Failed to read rooms for %s", network)
            return []

        rooms: list[Room] = []
        for entry in entries:
            try:
                rooms.append(Room.from_json(entry))
            except (ValueError, TypeError) as exc:
                logger.warning("Skipping invalid room record on %s: %s", network, exc)
        return rooms

    def save_rooms(self, network: str, rooms: list[Room]) -> None:
        self._write_entries(network, [room.to_json() for room in rooms])

    # Mutations re-read strictly and keep entries they cannot parse.
    def add_room(self, network: str, room: Room) -> None:
        entries = self._read_entries(network)
        entries.insert(0, room.to_json())
        self._write_entries(network, entries)

    def get_room(self, network: str, room_id: str) -> Room | None:
        for room in self.list_rooms(network):
            if room.id == room_id:
                return room
        return None

    def find_by_control_id(self, network: str, control_id: str) -> Room | None:
        for room in self.list_rooms(network):
            if room.control_id == control_id:
                return room
        return None

    def remove_room(self, network: str, room_id: str) -> None:
        entries = [
            entry
            for entry in self._read_entries(network)
            if not (isinstance(entry, dict) and entry.get("id") == room_id)
        ]
        self._write_entries(network, entries)

    def update_room(self, network: str, room_id: str, patch: Mapping[str, Any]) -> Room | None:
        unknown = set(patch) - set(ROOM_JSON_KEYS)
        if unknown:
            raise ValueError(f"unknown room fields: {sorted(unknown)}")
        if "id" in patch and patch["id"] != room_id:
            raise ValueError("room id is immutable")

        entries = self._read_entries(network)
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict) or entry.get("id") != room_id:
                continue
            try:
                room = Room.from_json(entry)
            except (ValueError, TypeError):
                continue
            requested = patch.get("status", room.status)
            if requested not in STATUS_ORDER:
                raise ValueError(f"unknown room status {requested!r}")
            if STATUS_ORDER[requested] < STATUS_ORDER[room.status]:
                raise StatusRegressionError(room_id, room.status, requested)
            updated = dataclasses.replace(room, **patch)
            entries[index] = updated.to_json()
            self._write_entries(network, entries)
            return updated
        return None
