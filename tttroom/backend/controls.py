"""Control object lookups served by the proxy routes."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from tttroom.backend.chain import ChainClient, ChainError
from tttroom.backend.models import ResolvedObject
from tttroom.backend.resolver import explorer_item_id, is_control_type, object_type, owned_ref_id, resolve_object

logger = logging.getLogger(__name__)


async def resolve_controls(
    chain: ChainClient,
    network: str,
    items: Iterable[Any],
    id_of: Callable[[Any], str | None],
    marker: str,
) -> list[ResolvedObject]:
    """Fetch each item's object and keep the ones typed as Control.

    Items without an id and objects that fail to load are skipped.
    """
    controls: list[ResolvedObject] = []
    for item in items:
        object_id = id_of(item)
        if not object_id:
            continue
        try:
            payload = await chain.get_object(network, object_id)
        except ChainError as exc:
            logger.debug("Skipping object %s: %s", object_id, exc)
            continue
        if not payload or not is_control_type(object_type(payload), marker):
            continue
        controls.append(resolve_object(object_id, payload))
    return controls


async def controls_by_owner(chain: ChainClient, network: str, address: str, marker: str) -> list[ResolvedObject]:
    refs = await chain.owned_object_refs(network, address)
    return await resolve_controls(chain, network, refs, owned_ref_id, marker)


async def controls_by_type(chain: ChainClient, network: str, type_string: str, marker: str) -> list[ResolvedObject]:
    found = await chain.search_by_type(network, type_string)
    return await resolve_controls(chain, network, found, explorer_item_id, marker)
