from __future__ import annotations

import asyncio
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dnssync.errors import UpstreamError
from dnssync.logger import get_logger
from dnssync.metrics import record_change_notification
from dnssync.schemas.nodes import NodeSnapshot
from dnssync.services import nodes as node_service
from dnssync.sources.base import EventHandler

_logger = get_logger("services.node_cache")


class NodeCache:
    """In-memory mirror of the node inventory.

    Readers get immutable snapshots; every content change schedules the
    registered handlers on the running event loop.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, NodeSnapshot] = {}
        self._handlers: List[EventHandler] = []
        self._lock = asyncio.Lock()
        self._synced = False
        # Bumped by every write; a resync only applies if no write landed since its read began.
        self._generation = 0

    @property
    def synced(self) -> bool:
        return self._synced

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    async def list_nodes(self) -> List[NodeSnapshot]:
        async with self._lock:
            if not self._synced:
                raise UpstreamError("node_cache.list", "node cache has not completed an initial sync")
            return [self._nodes[name] for name in sorted(self._nodes)]

    def add_event_handler(self, handler: EventHandler) -> None:
        self._handlers.append(handler)
        _logger.debug("handler.add", "Registered change handler", handlers=len(self._handlers))

    async def replace(self, nodes: Iterable[NodeSnapshot], *, generation: Optional[int] = None) -> bool:
        """Swap in a full node set.

        With ``generation`` set, the swap is skipped when the cache was written
        after that generation was read, and False is returned.
        """
        incoming = {node.name: node for node in nodes}
        async with self._lock:
            if generation is not None and generation != self._generation:
                _logger.info(
                    "cache.replace.stale",
                    "Skipped stale resync, cache was written during the read",
                    read_generation=generation,
                    generation=self._generation,
                )
                return False
            changed = incoming != self._nodes
            self._nodes = incoming
            self._synced = True
            self._generation += 1
        if changed:
            _logger.info("cache.replace", "Node cache content changed", nodes=len(incoming))
            self._notify()
        return changed

    async def upsert(self, node: NodeSnapshot) -> bool:
        async with self._lock:
            changed = self._nodes.get(node.name) != node
            self._nodes[node.name] = node
            self._generation += 1
        if changed:
            _logger.info("cache.upsert", "Updated cached node", node=node.name)
            self._notify()
        return changed

    async def delete(self, name: str) -> bool:
        async with self._lock:
            removed = self._nodes.pop(name, None) is not None
            self._generation += 1
        if removed:
            _logger.info("cache.delete", "Removed cached node", node=name)
            self._notify()
        return removed

    async def resync_from(self, sessionmaker: async_sessionmaker[AsyncSession]) -> bool:
        generation = self._generation
        try:
            async with sessionmaker() as session:
                rows = await node_service.list_nodes(session, limit=None)
        except SQLAlchemyError as exc:
            raise UpstreamError("node_cache.resync", f"{type(exc).__name__}: {exc}") from exc
        return await self.replace((node_service.to_snapshot(row) for row in rows), generation=generation)

    def _notify(self) -> None:
        loop = asyncio.get_running_loop()
        for handler in list(self._handlers):
            loop.call_soon(self._dispatch, handler)

    @staticmethod
    def _dispatch(handler: EventHandler) -> None:
        record_change_notification()
        try:
            handler()
        except Exception:  # noqa: BLE001
            _logger.exception("handler.error", "Change handler failed")
