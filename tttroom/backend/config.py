"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAINNET_URL = "https://fullnode.mainnet.sui.io:443"
DEFAULT_TESTNET_URL = "https://fullnode.testnet.sui.io:443"
DEFAULT_STARTED_STATES = ("active", "playing", "started", "1")


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None = None
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    poll_interval_s: float = 2.0
    rpc_timeout_s: float = 10.0
    control_type_marker: str = "::main::Control"
    created_control_marker: str = "::ttt::Control"
    started_states: tuple[str, ...] = DEFAULT_STARTED_STATES
    mainnet_url: str = DEFAULT_MAINNET_URL
    testnet_url: str = DEFAULT_TESTNET_URL
    explorer_base: str = "https://explorer.sui.io"

    def fullnode_url(self, network: str) -> str:
        url = self.mainnet_url if network == "mainnet" else self.testnet_url
        return url.rstrip("/")


def _split_states(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return DEFAULT_STARTED_STATES
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def load_settings() -> BackendSettings:
    port_raw = os.getenv("TTTROOM_PORT", "8000")
    return BackendSettings(
        database_url=os.getenv("TTTROOM_DATABASE_URL"),
        host=os.getenv("TTTROOM_HOST", "127.0.0.1"),
        port=int(port_raw),
        log_level=os.getenv("TTTROOM_LOG_LEVEL", "INFO").upper(),
        poll_interval_s=float(os.getenv("TTTROOM_POLL_INTERVAL", "2.0")),
        rpc_timeout_s=float(os.getenv("TTTROOM_RPC_TIMEOUT", "10.0")),
        control_type_marker=os.getenv("TTTROOM_CONTROL_TYPE", "::main::Control"),
        created_control_marker=os.getenv("TTTROOM_CREATED_CONTROL_TYPE", "::ttt::Control"),
        started_states=_split_states(os.getenv("TTTROOM_STARTED_STATES")),
        mainnet_url=os.getenv("TTTROOM_MAINNET_URL", DEFAULT_MAINNET_URL),
        testnet_url=os.getenv("TTTROOM_TESTNET_URL", DEFAULT_TESTNET_URL),
        explorer_base=os.getenv("TTTROOM_EXPLORER_URL", "https://explorer.sui.io").rstrip("/"),
    )
