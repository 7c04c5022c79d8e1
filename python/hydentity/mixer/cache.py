"""Per-session cache of mixer bridges, keyed by identity owner."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from .bridge import MixerBridge, MixerIdentity

logger = logging.getLogger(__name__)

BridgeFactory = Callable[[MixerIdentity], "MixerBridge | Awaitable[MixerBridge]"]


class MixerBridgeCache:
    """Holds one ``MixerBridge`` per owner for the lifetime of a client session.

    Entries live until ``evict`` or ``clear`` is called; nothing expires on
    its own. Reusing the bridge keeps its per-identity lock shared between
    concurrent claims of the same owner.
    """

    def __init__(self) -> None:
        self._bridges: dict[str, MixerBridge] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, identity: MixerIdentity, factory: BridgeFactory) -> MixerBridge:
        async with self._lock:
            bridge = self._bridges.get(identity.owner)
            if bridge is not None and bridge.identity.pool_key == identity.pool_key:
                return bridge

            created = factory(identity)
            if inspect.isawaitable(created):
                created = await created
            self._bridges[identity.owner] = created
            logger.debug("Created mixer bridge for %s", identity.owner)
            return created

    def get(self, owner: str) -> MixerBridge | None:
        return self._bridges.get(owner)

    def evict(self, owner: str) -> bool:
        """Drop the bridge for ``owner``. Returns whether one was cached."""
        removed = self._bridges.pop(owner, None) is not None
        if removed:
            logger.debug("Evicted mixer bridge for %s", owner)
        return removed

    def clear(self) -> None:
        self._bridges.clear()

    def __contains__(self, owner: object) -> bool:
        return owner in self._bridges

    def __len__(self) -> int:
        return len(self._bridges)
