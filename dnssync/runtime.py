from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dnssync.config import Settings
from dnssync.errors import UpstreamError
from dnssync.logger import get_logger
from dnssync.metrics import record_runtime_loop
from dnssync.services.node_cache import NodeCache

_logger = get_logger("runtime")


class RuntimeController:
    """Keeps the node cache in step with the inventory on a fixed interval."""

    def __init__(
        self,
        settings: Settings,
        cache: NodeCache,
        sessionmaker: async_sessionmaker[AsyncSession],
    ) -> None:
        self._settings = settings
        self._cache = cache
        self._sessionmaker = sessionmaker
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []

    async def start(self) -> None:
        self._stop.clear()
        self._tasks.append(asyncio.create_task(self._node_resync_loop()))
        _logger.info(
            "runtime.resync.start",
            "Started node resync loop",
            interval_seconds=self._settings.node_resync_interval_seconds,
        )

    async def stop(self) -> None:
        self._stop.set()
        if not self._tasks:
            return
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        _logger.info("runtime.stop", "Stopped runtime controller")

    async def resync_once(self) -> bool:
        return await self._cache.resync_from(self._sessionmaker)

    async def _node_resync_loop(self) -> None:
        interval = self._settings.node_resync_interval_seconds
        while not self._stop.is_set():
            try:
                changed = await self.resync_once()
                record_runtime_loop(loop="node_resync", ok=True)
                if changed:
                    _logger.info("runtime.resync.changed", "Node inventory changed since last resync")
            except asyncio.CancelledError:
                raise
            except UpstreamError as exc:
                record_runtime_loop(loop="node_resync", ok=False)
                _logger.warning(
                    "runtime.resync.error",
                    "Node resync failed, keeping previous cache content",
                    action=exc.action,
                    detail=exc.detail,
                )
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=interval)
            except TimeoutError:
                continue
