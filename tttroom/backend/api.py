"""FastAPI endpoints for rooms, control object proxying and websocket polling."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .chain import ChainClient, ChainError
from .config import BackendSettings, load_settings
from .controls import controls_by_owner, controls_by_type
from .lifecycle import NotRoomCreatorError, RoomLifecycleController, RoomNotFoundError, RoomPollTask
from .lobby import RoomInputError, check_join, create_room
from .models import NETWORKS, Network, PollOutcome
from .resolver import read_game_view
from .rooms import RoomStore
from .store import KeyValueStore, create_store

logger = logging.getLogger(__name__)


class CreateRoomRequest(BaseModel):
    network: Network = "testnet"
    creator: str = Field(min_length=1)
    stake: str = Field(min_length=1)
    name: str = Field(default="", max_length=200)
    transaction: dict[str, Any] = Field(default_factory=dict)


class JoinCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    network: Network = "testnet"
    control_id: str = Field(alias="controlId", min_length=1)
    stake: str = Field(min_length=1)


class JoinCheckResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    control_id: str = Field(alias="controlId")
    stake_mist: str = Field(alias="stakeMist")


class RoomResponse(BaseModel):
    room: dict[str, Any]


class RoomListResponse(BaseModel):
    rooms: list[dict[str, Any]]


class ControlsResponse(BaseModel):
    controls: list[dict[str, Any]]


class PollResponse(BaseModel):
    room: dict[str, Any]
    changed: bool
    navigate: bool
    error: str | None = None


class RoomWebSocketHub:
    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, room_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections[room_id].add(websocket)

    def disconnect(self, room_id: str, websocket: WebSocket) -> None:
        connections = self._connections.get(room_id)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(room_id, None)

    async def send_poll(self, websocket: WebSocket, outcome: PollOutcome) -> None:
        await websocket.send_json({"type": "room.poll", **outcome.to_json()})

    async def broadcast(self, room_id: str, message: dict[str, Any]) -> None:
        stale_connections: list[WebSocket] = []
        for websocket in self._connections.get(room_id, set()):
            try:
                await websocket.send_json(message)
            except RuntimeError:
                stale_connections.append(websocket)
        for websocket in stale_connections:
            self.disconnect(room_id=room_id, websocket=websocket)


def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def create_app(
    store: KeyValueStore | None = None,
    chain: ChainClient | None = None,
    settings: BackendSettings | None = None,
) -> FastAPI:
    app = FastAPI(title="TTT Rooms API", version="0.1.0")
    app_settings = settings if settings is not None else load_settings()
    room_store = RoomStore(store if store is not None else create_store(app_settings.database_url))
    chain_client = chain if chain is not None else ChainClient(app_settings)
    controller = RoomLifecycleController(rooms=room_store, chain=chain_client, settings=app_settings)
    websocket_hub = RoomWebSocketHub()
    app.state.settings = app_settings
    app.state.controller = controller
    app.state.websocket_hub = websocket_hub

    def get_rooms() -> RoomStore:
        return room_store

    def get_controller() -> RoomLifecycleController:
        return controller

    @app.get("/api/ping")
    def ping() -> dict[str, str]:
        return {"message": "ping"}

    @app.get("/api/controls/owner/{address}", response_model=ControlsResponse)
    async def get_controls_by_owner(address: str, network: Network = Query("testnet")) -> Any:
        try:
            controls = await controls_by_owner(chain_client, network, address, app_settings.control_type_marker)
        except ChainError as exc:
            logger.warning("Owner lookup for %s failed: %s", address, exc)
            return _message(502, "Fullnode RPC failed")
        except Exception as exc:
            logger.exception("Owner lookup for %s crashed", address)
            return _message(500, str(exc))
        return ControlsResponse(controls=[control.to_json() for control in controls])

    @app.get("/api/controls/by_type", response_model=ControlsResponse)
    async def get_controls_by_type(
        type_string: str = Query("", alias="type"),
        network: Network = Query("testnet"),
    ) -> Any:
        try:
            controls = await controls_by_type(chain_client, network, type_string, app_settings.control_type_marker)
        except Exception as exc:
            logger.exception("Type lookup for %s crashed", type_string)
            return _message(500, str(exc))
        return ControlsResponse(controls=[control.to_json() for control in controls])

    @app.get("/api/rooms", response_model=RoomListResponse)
    def list_rooms(
        network: Network = Query("testnet"),
        local_rooms: RoomStore = Depends(get_rooms),
    ) -> RoomListResponse:
        return RoomListResponse(rooms=[room.to_json() for room in local_rooms.list_rooms(network)])

    @app.post("/api/rooms", response_model=RoomResponse)
    def post_room(
        payload: CreateRoomRequest,
        local_rooms: RoomStore = Depends(get_rooms),
    ) -> RoomResponse:
        try:
            room = create_room(
                store=local_rooms,
                settings=app_settings,
                network=payload.network,
                creator=payload.creator,
                stake=payload.stake,
                tx_result=payload.transaction,
                name=payload.name,
            )
        except RoomInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return RoomResponse(room=room.to_json())

    @app.post("/api/rooms/join-check", response_model=JoinCheckResponse)
    def post_join_check(
        payload: JoinCheckRequest,
        local_rooms: RoomStore = Depends(get_rooms),
    ) -> JoinCheckResponse:
        try:
            stake_mist = check_join(local_rooms, payload.network, payload.control_id, payload.stake)
        except RoomInputError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JoinCheckResponse(control_id=payload.control_id.strip(), stake_mist=str(stake_mist))

    @app.get("/api/rooms/{room_id}", response_model=RoomResponse)
    def get_room(
        room_id: str,
        network: Network = Query("testnet"),
        local_rooms: RoomStore = Depends(get_rooms),
    ) -> RoomResponse:
        room = local_rooms.get_room(network, room_id)
        if room is None:
            raise HTTPException(status_code=404, detail="Room not found")
        return RoomResponse(room=room.to_json())

    @app.delete("/api/rooms/{room_id}", response_model=RoomResponse)
    async def delete_room(
        room_id: str,
        network: Network = Query("testnet"),
        address: str = Query(""),
        local_controller: RoomLifecycleController = Depends(get_controller),
    ) -> RoomResponse:
        try:
            room = local_controller.close_room(network, room_id, address)
        except RoomNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Room not found") from exc
        except NotRoomCreatorError as exc:
            raise HTTPException(status_code=403, detail=str(exc)) from exc
        await websocket_hub.broadcast(room_id, {"type": "room.closed", "roomId": room_id})
        return RoomResponse(room=room.to_json())

    @app.post("/api/rooms/{room_id}/poll", response_model=PollResponse)
    async def post_poll(
        room_id: str,
        network: Network = Query("testnet"),
        local_controller: RoomLifecycleController = Depends(get_controller),
    ) -> PollResponse:
        outcome = await local_controller.poll_once(network, room_id)
        if outcome is None:
            raise HTTPException(status_code=404, detail="Room not found")
        return PollResponse(**outcome.to_json())

    @app.get("/api/rooms/{room_id}/game")
    async def get_game(
        room_id: str,
        network: Network = Query("testnet"),
        local_rooms: RoomStore = Depends(get_rooms),
    ) -> Any:
        room = local_rooms.get_room(network, room_id)
        if room is None:
            raise HTTPException(status_code=404, detail="Room not found")
        target_id = room.game_id or room.control_id
        if not target_id:
            raise HTTPException(status_code=404, detail="Room has no on-chain object")
        try:
            payload = await chain_client.get_object(network, target_id)
        except ChainError as exc:
            logger.warning("Game fetch for room %s failed: %s", room_id, exc)
            return _message(502, "Fullnode RPC failed")
        return read_game_view(target_id, payload).to_json()

    @app.websocket("/ws/rooms/{room_id}")
    async def room_ws(websocket: WebSocket, room_id: str) -> None:
        network = websocket.query_params.get("network", "testnet")
        if network not in NETWORKS:
            await websocket.close(code=1008)
            return
        room = room_store.get_room(network, room_id)
        if room is None or not room.control_id:
            await websocket.close(code=1008)
            return

        await websocket_hub.connect(room_id=room_id, websocket=websocket)

        async def on_update(outcome: PollOutcome) -> None:
            await websocket_hub.send_poll(websocket, outcome)

        task = RoomPollTask(controller, network, room_id, app_settings.poll_interval_s, on_update)
        task.start()
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            task.stop()
            websocket_hub.disconnect(room_id=room_id, websocket=websocket)

    return app


app = create_app()
