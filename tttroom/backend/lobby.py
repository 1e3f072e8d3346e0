"""Create and join flows: input validation and room registration."""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from tttroom.backend.config import BackendSettings
from tttroom.backend.models import NETWORKS, Room
from tttroom.backend.resolver import find_created_control_id
from tttroom.backend.rooms import RoomStore
from tttroom.backend.state import build_initial_room

logger = logging.getLogger(__name__)

MIST_PER_SUI = Decimal(10) ** 9


class RoomInputError(ValueError):
    """User input was rejected; nothing was written."""


class StakeTooLowError(RoomInputError):
    def __init__(self, minimum_mist: int) -> None:
        super().__init__(f"Stake too low: minimum required is {format_sui(minimum_mist)} SUI")
        self.minimum_mist = minimum_mist


def parse_stake(value: Any) -> Decimal | None:
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def to_mist(amount: Decimal) -> int:
    return int((amount * MIST_PER_SUI).to_integral_value(rounding=ROUND_FLOOR))


def format_sui(mist: int) -> str:
    sui = (Decimal(mist) / MIST_PER_SUI).quantize(Decimal("0.0001"), rounding=ROUND_FLOOR)
    return f"{sui.normalize():f}"


def _require_network(network: str) -> None:
    if network not in NETWORKS:
        raise RoomInputError(f"Unknown network {network!r}")


def create_room(
    store: RoomStore,
    settings: BackendSettings,
    network: str,
    creator: str,
    stake: Any,
    tx_result: Any,
    name: str = "",
    now_ms: int | None = None,
) -> Room:
    _require_network(network)
    if not creator:
        raise RoomInputError("Connect your wallet first")
    amount = parse_stake(stake)
    if amount is None:
        raise RoomInputError("Enter a valid SUI amount (> 0)")

    digest = tx_result.get("digest") if isinstance(tx_result, dict) else None
    room = build_initial_room(
        network=network,
        creator=creator,
        stake_mist=to_mist(amount),
        tx_digest=digest if isinstance(digest, str) and digest else None,
        control_id=find_created_control_id(tx_result, settings.created_control_marker),
        name=name,
        now_ms=now_ms,
    )
    if room.control_id is None:
        logger.warning("No control object found in transaction for room %s", room.id)
    store.add_room(network, room)
    logger.info("Created room %s on %s (control=%s)", room.id, network, room.control_id)
    return room


def check_join(store: RoomStore, network: str, control_id: str, stake: Any) -> int:
    """Validate a join request and return the stake in MIST."""
    _require_network(network)
    control_id = (control_id or "").strip()
    amount = parse_stake(stake)
    if amount is None or not control_id:
        raise RoomInputError("Enter a Control ID and SUI amount")

    stake_mist = to_mist(amount)
    match = store.find_by_control_id(network, control_id)
    if match is not None and stake_mist < int(match.stake_mist):
        raise StakeTooLowError(int(match.stake_mist))
    return stake_mist
