"""Extract object ids and struct fields from untyped Sui RPC responses.

Responses come in several shapes depending on endpoint and node version, so
every lookup here is a fixed, ordered list of rules. Nothing in this module
raises on well-formed JSON input.
"""

from __future__ import annotations

import re
from typing import Any, Iterator

from tttroom.backend.models import GameView, ResolvedObject

OBJECT_ID_PATTERN = re.compile(r"^0x[0-9a-f]{20,}$", re.IGNORECASE)

FIELD_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "content", "fields"),
    ("data", "content"),
    ("content", "fields"),
    ("content",),
    ("fields",),
)
TYPE_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "type"),
    ("type",),
    ("data", "content", "type"),
)
BOARD_SIZE = 9


def _get_path(value: Any, path: tuple[str, ...]) -> Any:
    current = value
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first(value: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        candidate = value.get(key)
        if candidate is not None:
            return candidate
    return None


def _children(value: Any) -> Iterator[Any]:
    if isinstance(value, dict):
        yield from value.values()
    elif isinstance(value, list):
        yield from value


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and OBJECT_ID_PATTERN.match(value) is not None


def find_object_id(value: Any) -> str | None:
    """Depth-first search for the first object id in a response.

    At each node: a string ``objectId``, then a string ``reference.objectId``,
    then the node's children in order (hex-address strings match directly,
    containers are searched recursively).
    """
    if not isinstance(value, (dict, list)):
        return None
    if isinstance(value, dict):
        direct = value.get("objectId")
        if isinstance(direct, str):
            return direct
        nested = _get_path(value, ("reference", "objectId"))
        if isinstance(nested, str):
            return nested
    for child in _children(value):
        if is_object_id(child):
            return child
        if isinstance(child, (dict, list)):
            found = find_object_id(child)
            if found:
                return found
    return None


def find_candidate_ids(value: Any) -> list[str]:
    """Every hex-address string in depth-first order, without duplicates."""
    seen: list[str] = []

    def walk(node: Any) -> None:
        for child in _children(node):
            if is_object_id(child):
                if child not in seen:
                    seen.append(child)
            elif isinstance(child, (dict, list)):
                walk(child)

    walk(value)
    return seen


def extract_fields(value: Any) -> dict[str, Any] | None:
    for path in FIELD_PATHS:
        candidate = _get_path(value, path)
        if isinstance(candidate, dict):
            return candidate
    return None


def object_type(value: Any) -> str:
    for path in TYPE_PATHS:
        candidate = _get_path(value, path)
        if isinstance(candidate, str):
            return candidate
    return ""


def is_control_type(type_string: Any, expected_suffix: str) -> bool:
    return isinstance(type_string, str) and expected_suffix in type_string


def looks_like_game(fields: Any) -> bool:
    if not isinstance(fields, dict):
        return False
    has_board = isinstance(fields.get("board"), list) or isinstance(fields.get("cells"), list)
    has_turn = _first(fields, "turn", "current_turn") is not None
    players = fields.get("players")
    has_players = (fields.get("x") is not None and fields.get("o") is not None) or (
        isinstance(players, list) and len(players) >= 2
    )
    return has_board and has_turn and has_players


def owned_ref_id(ref: Any) -> str | None:
    if not isinstance(ref, dict):
        return None
    candidate = _first(ref, "objectId") or _get_path(ref, ("reference", "objectId")) or ref.get("object_id")
    return candidate if isinstance(candidate, str) and candidate else None


def explorer_item_id(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    candidate = _first(item, "objectId", "id", "object_id", "digest", "name")
    return candidate if isinstance(candidate, str) and candidate else None


def find_created_control_id(tx_result: Any, marker: str) -> str | None:
    """Locate the Control object created by a transaction result."""
    created = _get_path(tx_result, ("effects", "created"))
    for entry in created if isinstance(created, list) else []:
        if not isinstance(entry, dict):
            continue
        type_string = entry.get("type") or _get_path(entry, ("reference", "type")) or ""
        if is_control_type(type_string, marker):
            candidate = _get_path(entry, ("reference", "objectId")) or entry.get("objectId")
            if isinstance(candidate, str) and candidate:
                return candidate

    changes = tx_result.get("objectChanges") if isinstance(tx_result, dict) else None
    for change in changes if isinstance(changes, list) else []:
        if not isinstance(change, dict):
            continue
        kind = change.get("type") or change.get("kind")
        type_string = change.get("objectType") or change.get("type")
        if kind in ("created", "Created") and is_control_type(type_string, marker):
            candidate = change.get("objectId")
            if isinstance(candidate, str) and candidate:
                return candidate

    return find_object_id(tx_result)


def resolve_object(object_id: str, payload: Any) -> ResolvedObject:
    return ResolvedObject(id=object_id, type=object_type(payload), fields=extract_fields(payload))


def _unwrap_cell(cell: Any) -> Any:
    if isinstance(cell, dict) and cell.get("value") is not None:
        return cell["value"]
    return cell


def read_game_view(object_id: str, payload: Any) -> GameView:
    fields = extract_fields(payload)
    if fields is None:
        return GameView(object_id=object_id, players=[], board=None, turn=None)

    players_seq = fields.get("players") if isinstance(fields.get("players"), list) else []
    players: list[Any] = []
    for index, keys in enumerate((("x", "player1"), ("o", "player2"))):
        player = _first(fields, *keys)
        if player is None and len(players_seq) > index:
            player = players_seq[index]
        players.append(player)

    board: list[Any] | None = None
    if isinstance(fields.get("board"), list):
        board = [_unwrap_cell(cell) for cell in fields["board"]]
    elif isinstance(fields.get("cells"), list):
        board = list(fields["cells"])
    if board is not None:
        board = board[:BOARD_SIZE] + [None] * max(0, BOARD_SIZE - len(board))

    return GameView(object_id=object_id, players=players, board=board, turn=_first(fields, "turn", "current_turn"))
