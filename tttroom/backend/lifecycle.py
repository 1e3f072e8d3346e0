"""Room lifecycle: poll a room's Control object and advance its status.

A room starts ``waiting``. A poll that sees a second player or a started
state moves it to ``active`` and, when a game object can be found among the
ids referenced by the Control object, records its ``gameId``. ``closed`` is
reached only by the creator deleting the room.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable

from tttroom.backend.chain import ChainClient, ChainError
from tttroom.backend.config import BackendSettings
from tttroom.backend.models import PollObservation, PollOutcome, Room
from tttroom.backend.resolver import extract_fields, find_candidate_ids, looks_like_game
from tttroom.backend.rooms import RoomStore

logger = logging.getLogger(__name__)

ZERO_ADDRESS = re.compile(r"^0x0*$")

OnUpdate = Callable[[PollOutcome], Awaitable[None]]


class RoomNotFoundError(LookupError):
    pass


class NotRoomCreatorError(PermissionError):
    pass


def second_player(fields: dict[str, Any]) -> Any:
    if fields.get("player2") is not None:
        return fields["player2"]
    players = fields.get("players")
    if isinstance(players, list) and len(players) > 1:
        return players[1]
    return None


def is_present_address(value: Any) -> bool:
    # Option<address> arrives as {"vec": []} or {"vec": [addr]}
    if isinstance(value, dict) and isinstance(value.get("vec"), list):
        value = value["vec"][0] if value["vec"] else None
    if not isinstance(value, str):
        return False
    text = value.strip()
    return text != "" and ZERO_ADDRESS.match(text) is None


class RoomLifecycleController:
    def __init__(self, rooms: RoomStore, chain: ChainClient, settings: BackendSettings) -> None:
        self.rooms = rooms
        self.chain = chain
        self.settings = settings

    def is_started_state(self, fields: dict[str, Any]) -> bool:
        value = fields.get("state")
        if value is None:
            value = fields.get("status")
        if value is None or isinstance(value, (dict, list)):
            return False
        return str(value).strip().lower() in self.settings.started_states

    async def observe(self, network: str, room: Room) -> PollObservation:
        """Fetch the room's Control object and describe what it shows."""
        if not room.control_id:
            raise ValueError(f"room {room.id} has no control object")
        control_id = room.control_id
        try:
            payload = await self.chain.get_object(network, control_id)
        except ChainError as exc:
            logger.warning("Failed to fetch control object %s: %s", control_id, exc)
            return PollObservation(control_id=control_id, error=str(exc))

        fields = extract_fields(payload) or {}
        joined = is_present_address(second_player(fields))
        started = self.is_started_state(fields)
        game_id: str | None = None
        if (joined or started) and not room.game_id:
            game_id = await self.discover_game_id(network, control_id, payload)
        return PollObservation(control_id=control_id, joined=joined, started=started, game_id=game_id)

    async def discover_game_id(self, network: str, control_id: str, payload: Any) -> str | None:
        """Fetch ids referenced by the control object, in order, for a game."""
        for candidate in find_candidate_ids(payload):
            if candidate == control_id:
                continue
            try:
                candidate_payload = await self.chain.get_object(network, candidate)
            except ChainError as exc:
                logger.debug("Skipping candidate %s: %s", candidate, exc)
                continue
            if looks_like_game(extract_fields(candidate_payload)):
                logger.info("Found game object %s for control %s", candidate, control_id)
                return candidate
        return None

    def apply(self, network: str, room_id: str, observation: PollObservation) -> PollOutcome | None:
        room = self.rooms.get_room(network, room_id)
        if room is None:
            return None
        if observation.error is not None:
            return PollOutcome(room=room, changed=False, navigate=False, error=observation.error)

        patch: dict[str, Any] = {}
        if observation.joined or observation.started:
            if room.status == "waiting":
                patch["status"] = "active"
            if observation.game_id and not room.game_id:
                patch["game_id"] = observation.game_id

        if patch:
            updated = self.rooms.update_room(network, room_id, patch)
            if updated is None:
                return None
            logger.info("Room %s updated: %s", room_id, patch)
            room = updated

        navigate = bool(room.game_id) or observation.started
        return PollOutcome(room=room, changed=bool(patch), navigate=navigate)

    async def poll_once(self, network: str, room_id: str) -> PollOutcome | None:
        room = self.rooms.get_room(network, room_id)
        if room is None:
            return None
        if not room.control_id:
            logger.debug("Room %s has no control object; not polling", room_id)
            return PollOutcome(room=room, changed=False, navigate=bool(room.game_id))
        observation = await self.observe(network, room)
        return self.apply(network, room_id, observation)

    def close_room(self, network: str, room_id: str, requester: str | None) -> Room:
        room = self.rooms.get_room(network, room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        if not requester or requester != room.creator:
            raise NotRoomCreatorError("Only the room creator can delete this room")
        self.rooms.remove_room(network, room_id)
        logger.info("Room %s closed by creator", room_id)
        return room


class RoomPollTask:
    """Periodic poll of one room, bound to a single view."""

    def __init__(
        self,
        controller: RoomLifecycleController,
        network: str,
        room_id: str,
        interval_s: float,
        on_update: OnUpdate | None = None,
    ) -> None:
        self.controller = controller
        self.network = network
        self.room_id = room_id
        self.interval_s = interval_s
        self.on_update = on_update
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> bool:
        room = self.controller.rooms.get_room(self.network, self.room_id)
        if room is None or not room.control_id:
            return False
        if self.running:
            return True
        self._task = asyncio.create_task(self._run(), name=f"poll-{self.network}-{self.room_id}")
        return True

    def stop(self) -> None:
        self._stop_event.set()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def poll(self) -> PollOutcome | None:
        room = self.controller.rooms.get_room(self.network, self.room_id)
        if room is None or not room.control_id:
            return None
        observation = await self.controller.observe(self.network, room)
        if self.stopped:
            logger.debug("Discarding poll result for stopped room %s", self.room_id)
            return None
        outcome = self.controller.apply(self.network, self.room_id, observation)
        if outcome is not None and self.on_update is not None:
            await self.on_update(outcome)
        return outcome

    async def _run(self) -> None:
        while not self.stopped:
            try:
                await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Poll of room %s failed", self.room_id)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_s)
            except asyncio.TimeoutError:
                continue

