"""Refresh scheduler — keeps the status cache warm at a fixed interval.

Request-driven refreshes still work without it; the scheduler just means
the first visitor after a quiet period does not pay for the probes.
"""

from __future__ import annotations

import asyncio
import logging

from statusboard.health.cache import ResultCache

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Periodically asks the cache for current status."""

    def __init__(self, cache: ResultCache, interval: float) -> None:
        self.cache = cache
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        if self.interval <= 0:
            logger.info("Refresh scheduler disabled (interval=%s)", self.interval)
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="status-refresh")
        logger.info("Refresh scheduler started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Refresh scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.cache.get_or_refresh()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Scheduled status refresh failed")
            await asyncio.sleep(self.interval)
