"""State builders for newly created rooms."""

from __future__ import annotations

import time

from tttroom.backend.models import Room


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_initial_room(
    network: str,
    creator: str,
    stake_mist: int,
    tx_digest: str | None,
    control_id: str | None,
    name: str = "",
    now_ms: int | None = None,
) -> Room:
    """Return a waiting room keyed by its tx digest, or by creation time."""
    created_at = now_ms if now_ms is not None else _now_ms()
    return Room(
        id=tx_digest or str(created_at),
        name=name,
        stake_mist=str(stake_mist),
        creator=creator,
        network=network,
        status="waiting",
        created_at=created_at,
        tx_digest=tx_digest,
        control_id=control_id,
    )
