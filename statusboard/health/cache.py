"""Result cache — serves the latest check run while it is fresh.

One ResultCache is created per process and handed to whoever needs
status (API routes, the background scheduler). It owns the only
reference to the current AggregateResult and replaces it wholesale
after each run, so readers always see a complete, immutable snapshot.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

import httpx

from statusboard.endpoints.registry import EndpointDefinition
from statusboard.health.checker import AggregateResult, run_checks, utcnow
from statusboard.health.engine import PROBE_TIMEOUT_SECONDS, ProbeOutcome
from statusboard.notifications.email import EmailNotifier

logger = logging.getLogger(__name__)

FRESHNESS_SECONDS = 60


class ResultCache:
    """Freshness-gated memo of the most recent AggregateResult.

    Concurrent callers that find the value stale share a single refresh
    (an asyncio.Lock plus a re-check once the lock is held).
    """

    def __init__(
        self,
        endpoints: Callable[[], Sequence[EndpointDefinition]],
        notifier: EmailNotifier | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
        freshness_seconds: float = FRESHNESS_SECONDS,
        timeout: float = PROBE_TIMEOUT_SECONDS,
    ) -> None:
        self._endpoints = endpoints
        self._notifier = notifier
        self._client = client
        self._clock = clock
        self._window = timedelta(seconds=freshness_seconds)
        self._timeout = timeout
        self._current: AggregateResult | None = None
        self._last_checked_at: datetime | None = None
        self._generation = 0  # bumped by invalidate()
        self._current_generation = 0
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task[bool]] = set()
        self.refresh_count = 0

    def peek(self) -> AggregateResult | None:
        """Current value, fresh or not, without triggering a refresh."""
        return self._current

    def is_fresh(self) -> bool:
        """True when the current value is inside the window and was started
        after the last ``invalidate()``."""
        result = self._current
        if result is None or self._current_generation != self._generation:
            return False
        return self._clock() - result.checked_at < self._window

    def invalidate(self) -> None:
        """Drop the current value so the next request re-probes.

        A refresh already in flight still installs its result, but that
        result does not count as fresh for anyone asking after this call.
        """
        self._generation += 1
        self._current = None

    async def get_or_refresh(self) -> AggregateResult:
        """Return the cached result if fresh, otherwise run a new check."""
        if self.is_fresh():
            logger.debug("Cache hit (checked_at=%s)", self._current.checked_at.isoformat())
            return self._current

        async with self._lock:
            # another caller may have refreshed while we waited
            if self.is_fresh():
                return self._current
            return await self._refresh()

    async def _refresh(self) -> AggregateResult:
        generation = self._generation
        endpoints = list(self._endpoints())
        run = await run_checks(endpoints, self._client, self._timeout, self._clock)
        result = run.result

        # checked_at strictly increases across refreshes, even after invalidate()
        last = self._last_checked_at
        if last is not None and result.checked_at <= last:
            result = dataclasses.replace(result, checked_at=last + timedelta(microseconds=1))

        self._current = result
        self._current_generation = generation
        self._last_checked_at = result.checked_at
        self.refresh_count += 1
        logger.info(
            "Status refreshed: %d endpoints, %d failing",
            len(result.outcomes), len(run.failures),
        )

        if run.failures and self._notifier is not None:
            self._notify_in_background(run.failures)
        return result

    # -- Fire-and-forget notifications --------------------------------------

    def _notify_in_background(self, failures: Sequence[ProbeOutcome]) -> None:
        task = asyncio.create_task(
            self._notifier.notify_failures(failures), name="notify-failures",
        )
        self._background.add(task)
        task.add_done_callback(self._on_notify_done)

    def _on_notify_done(self, task: asyncio.Task[bool]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Failure notification crashed", exc_info=exc)

    async def wait_for_notifications(self) -> None:
        """Wait for in-flight notifications (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
