"""Domain models for rooms, resolved chain objects and poll results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Mapping

Network = Literal["mainnet", "testnet"]
RoomStatus = Literal["waiting", "active", "closed"]

NETWORKS: tuple[str, ...] = ("mainnet", "testnet")
STATUS_ORDER: dict[str, int] = {"waiting": 0, "active": 1, "closed": 2}

# Python attribute name -> persisted JSON key
ROOM_JSON_KEYS: dict[str, str] = {
    "id": "id",
    "name": "name",
    "stake_mist": "stakeMist",
    "creator": "creator",
    "network": "network",
    "status": "status",
    "created_at": "createdAt",
    "tx_digest": "txDigest",
    "control_id": "controlId",
    "game_id": "gameId",
}
_OPTIONAL_KEYS = ("tx_digest", "control_id", "game_id")


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    stake_mist: str
    creator: str
    network: Network
    status: RoomStatus
    created_at: int
    tx_digest: str | None = None
    control_id: str | None = None
    game_id: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for attr, key in ROOM_JSON_KEYS.items():
            value = getattr(self, attr)
            if value is None and attr in _OPTIONAL_KEYS:
                continue
            payload[key] = value
        return payload

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> "Room":
        """Build a room from its stored shape; raises ValueError on bad records."""
        if not isinstance(payload, Mapping):
            raise ValueError("room record must be an object")
        values: dict[str, Any] = {}
        for attr, key in ROOM_JSON_KEYS.items():
            value = payload.get(key)
            if value is None and attr not in _OPTIONAL_KEYS:
                raise ValueError(f"room record missing {key!r}")
            values[attr] = value
        if not isinstance(values["id"], str) or not values["id"]:
            raise ValueError("room id must be a non-empty string")
        if values["network"] not in NETWORKS:
            raise ValueError(f"unknown room network {values['network']!r}")
        if values["status"] not in STATUS_ORDER:
            raise ValueError(f"unknown room status {values['status']!r}")
        values["stake_mist"] = str(values["stake_mist"])
        values["created_at"] = int(values["created_at"])
        return cls(**values)


@dataclass(frozen=True)
class ResolvedObject:
    id: str
    type: str
    fields: dict[str, Any] | None

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "fields": self.fields}


@dataclass(frozen=True)
class GameView:
    object_id: str
    players: list[Any]
    board: list[Any] | None
    turn: Any

    def to_json(self) -> dict[str, Any]:
        return {
            "objectId": self.object_id,
            "players": self.players,
            "board": self.board,
            "turn": self.turn,
        }


@dataclass(frozen=True)
class PollObservation:
    control_id: str
    joined: bool = False
    started: bool = False
    game_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class PollOutcome:
    room: Room
    changed: bool
    navigate: bool
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "room": self.room.to_json(),
            "changed": self.changed,
            "navigate": self.navigate,
            "error": self.error,
        }
