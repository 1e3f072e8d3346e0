"""Backend package for staked tic-tac-toe rooms."""

from .chain import ChainClient, ChainError
from .config import BackendSettings, load_settings
from .lifecycle import RoomLifecycleController, RoomPollTask
from .models import GameView, PollOutcome, ResolvedObject, Room
from .rooms import RoomStore, StatusRegressionError
from .store import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore, create_store

__all__ = [
    "BackendSettings",
    "ChainClient",
    "ChainError",
    "create_store",
    "GameView",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "load_settings",
    "PollOutcome",
    "PostgresKeyValueStore",
    "ResolvedObject",
    "Room",
    "RoomLifecycleController",
    "RoomPollTask",
    "RoomStore",
    "StatusRegressionError",
]
