import asyncio

import pytest

from tttroom.backend.chain import ChainError
from tttroom.backend.config import BackendSettings
from tttroom.backend.lifecycle import (
    NotRoomCreatorError,
    RoomLifecycleController,
    RoomNotFoundError,
    RoomPollTask,
    is_present_address,
)
from tttroom.backend.models import Room
from tttroom.backend.rooms import RoomStore
from tttroom.backend.store import InMemoryKeyValueStore

CONTROL_ID = "0xC"
GAME_ID = "0x" + "9" * 40
OTHER_ID = "0x" + "7" * 40


class FakeChain:
    def __init__(self, objects: dict) -> None:
        self.objects = objects
        self.calls: list[str] = []

    async def get_object(self, network: str, object_id: str):
        self.calls.append(object_id)
        value = self.objects.get(object_id)
        if value is None or isinstance(value, Exception):
            raise value if isinstance(value, Exception) else ChainError(f"missing {object_id}")
        return value


def _control(fields: dict) -> dict:
    return {"data": {"objectId": CONTROL_ID, "type": "0xpkg::ttt::Control", "content": {"fields": fields}}}


def _game() -> dict:
    return {"data": {"content": {"fields": {"board": [0] * 9, "turn": 1, "x": "0xA", "o": "0xD"}}}}


def _setup(objects: dict, **room_overrides) -> tuple[RoomLifecycleController, FakeChain, RoomStore]:
    store = RoomStore(InMemoryKeyValueStore())
    values = {
        "id": "room-1",
        "name": "",
        "stake_mist": "1000000000",
        "creator": "0xcreator",
        "network": "testnet",
        "status": "waiting",
        "created_at": 1,
        "control_id": CONTROL_ID,
    }
    values.update(room_overrides)
    store.add_room("testnet", Room(**values))
    chain = FakeChain(objects)
    controller = RoomLifecycleController(rooms=store, chain=chain, settings=BackendSettings())
    return controller, chain, store


def test_is_present_address_rejects_empty_and_zero() -> None:
    assert is_present_address("0xD") is True
    assert is_present_address("0x0") is False
    assert is_present_address("0x0000") is False
    assert is_present_address("") is False
    assert is_present_address(None) is False


def test_is_present_address_requires_a_string_or_filled_option() -> None:
    assert is_present_address({"vec": []}) is False
    assert is_present_address({"vec": ["0x0"]}) is False
    assert is_present_address({"vec": ["0xD"]}) is True
    assert is_present_address(0) is False
    assert is_present_address(False) is False


def test_poll_with_second_player_activates_room() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"player1": "0xA", "player2": "0xD"})})

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert outcome is not None
    assert outcome.changed is True
    assert outcome.navigate is False
    assert store.get_room("testnet", "room-1").status == "active"


def test_poll_with_zero_address_keeps_waiting() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"player1": "0xA", "player2": "0x0"})})

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert outcome.changed is False
    assert store.get_room("testnet", "room-1").status == "waiting"


def test_poll_with_empty_option_or_numeric_player_keeps_waiting() -> None:
    for player2 in ({"vec": []}, 0, False):
        controller, _, store = _setup({CONTROL_ID: _control({"player1": "0xA", "player2": player2})})

        outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

        assert outcome.changed is False
        assert store.get_room("testnet", "room-1").status == "waiting"


def test_poll_with_filled_option_activates_room() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"player1": "0xA", "player2": {"vec": ["0xD"]}})})

    asyncio.run(controller.poll_once("testnet", "room-1"))

    assert store.get_room("testnet", "room-1").status == "active"


def test_poll_reads_second_entry_of_players_sequence() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"players": ["0xA", "0xD"]})})

    asyncio.run(controller.poll_once("testnet", "room-1"))

    assert store.get_room("testnet", "room-1").status == "active"


def test_started_state_activates_and_navigates() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"state": "Playing"})})

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert outcome.navigate is True
    assert store.get_room("testnet", "room-1").status == "active"


def test_numeric_started_code_is_recognised() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"status": 1})})

    asyncio.run(controller.poll_once("testnet", "room-1"))

    assert store.get_room("testnet", "room-1").status == "active"


def test_poll_discovers_first_game_candidate() -> None:
    control = _control({"player2": "0xD", "escrow": OTHER_ID, "game": GAME_ID})
    controller, chain, store = _setup({CONTROL_ID: control, OTHER_ID: _control({}), GAME_ID: _game()})

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    room = store.get_room("testnet", "room-1")
    assert room.status == "active"
    assert room.game_id == GAME_ID
    assert outcome.navigate is True
    assert chain.calls == [CONTROL_ID, OTHER_ID, GAME_ID]


def test_candidate_fetch_failures_are_skipped() -> None:
    control = _control({"player2": "0xD", "broken": OTHER_ID, "game": GAME_ID})
    controller, _, store = _setup({CONTROL_ID: control, OTHER_ID: ChainError("down"), GAME_ID: _game()})

    asyncio.run(controller.poll_once("testnet", "room-1"))

    assert store.get_room("testnet", "room-1").game_id == GAME_ID


def test_repeated_poll_after_activation_is_stable() -> None:
    control = _control({"player2": "0xD", "game": GAME_ID})
    controller, chain, store = _setup({CONTROL_ID: control, GAME_ID: _game()})

    first = asyncio.run(controller.poll_once("testnet", "room-1"))
    chain.calls.clear()
    second = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert first.changed is True
    assert second.changed is False
    assert second.room == first.room
    assert second.navigate is True
    assert chain.calls == [CONTROL_ID]


def test_fetch_failure_leaves_room_unchanged() -> None:
    controller, _, store = _setup({})

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert outcome.error is not None
    assert outcome.changed is False
    assert store.get_room("testnet", "room-1").status == "waiting"


def test_room_without_control_id_is_not_polled() -> None:
    controller, chain, store = _setup({}, control_id=None)

    outcome = asyncio.run(controller.poll_once("testnet", "room-1"))

    assert outcome.changed is False
    assert chain.calls == []
    assert store.get_room("testnet", "room-1").status == "waiting"


def test_poll_unknown_room_returns_none() -> None:
    controller, _, _ = _setup({})

    assert asyncio.run(controller.poll_once("testnet", "missing")) is None


def test_close_room_requires_creator() -> None:
    controller, _, store = _setup({})

    with pytest.raises(NotRoomCreatorError):
        controller.close_room("testnet", "room-1", "0xintruder")
    with pytest.raises(NotRoomCreatorError):
        controller.close_room("testnet", "room-1", None)
    assert store.get_room("testnet", "room-1") is not None

    closed = controller.close_room("testnet", "room-1", "0xcreator")

    assert closed.id == "room-1"
    assert store.list_rooms("testnet") == []
    with pytest.raises(RoomNotFoundError):
        controller.close_room("testnet", "room-1", "0xcreator")


def test_poll_task_reports_updates_until_stopped() -> None:
    controller, _, store = _setup({CONTROL_ID: _control({"player2": "0xD"})})
    outcomes = []

    async def scenario() -> None:
        async def on_update(outcome) -> None:
            outcomes.append(outcome)
            if len(outcomes) == 2:
                task.stop()

        task = RoomPollTask(controller, "testnet", "room-1", interval_s=0.01, on_update=on_update)
        assert task.start() is True
        await asyncio.wait_for(task.wait(), timeout=2)
        assert task.running is False

    asyncio.run(scenario())

    assert len(outcomes) == 2
    assert outcomes[0].changed is True
    assert outcomes[1].changed is False
    assert store.get_room("testnet", "room-1").status == "active"


def test_poll_task_does_not_start_without_control_id() -> None:
    controller, _, _ = _setup({}, control_id=None)

    async def scenario() -> bool:
        task = RoomPollTask(controller, "testnet", "room-1", interval_s=0.01)
        return task.start()

    assert asyncio.run(scenario()) is False


class SlowChain(FakeChain):
    def __init__(self, objects: dict) -> None:
        super().__init__(objects)
        self.release = asyncio.Event()

    async def get_object(self, network: str, object_id: str):
        await self.release.wait()
        return await super().get_object(network, object_id)


def test_poll_result_arriving_after_stop_is_discarded() -> None:
    store = RoomStore(InMemoryKeyValueStore())
    store.add_room(
        "testnet",
        Room(
            id="room-1",
            name="",
            stake_mist="1",
            creator="0xcreator",
            network="testnet",
            status="waiting",
            created_at=1,
            control_id=CONTROL_ID,
        ),
    )
    outcomes = []

    async def on_update(outcome) -> None:
        outcomes.append(outcome)

    async def scenario() -> None:
        chain = SlowChain({CONTROL_ID: _control({"player2": "0xD"})})
        controller = RoomLifecycleController(rooms=store, chain=chain, settings=BackendSettings())
        task = RoomPollTask(controller, "testnet", "room-1", interval_s=0.01, on_update=on_update)
        task.start()
        await asyncio.sleep(0)
        task.stop()
        chain.release.set()
        await asyncio.wait_for(task.wait(), timeout=2)

    asyncio.run(scenario())

    assert outcomes == []
    assert store.get_room("testnet", "room-1").status == "waiting"
