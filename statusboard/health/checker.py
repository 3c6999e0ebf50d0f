"""Checker — fans probes out over all endpoints and fans the outcomes back in."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from statusboard.endpoints.registry import EndpointDefinition
from statusboard.health.engine import PROBE_TIMEOUT_SECONDS, ProbeOutcome, Status, probe

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AggregateResult:
    """All outcomes of one check run, in endpoint order, plus completion time."""

    outcomes: tuple[ProbeOutcome, ...]
    checked_at: datetime

    @property
    def failures(self) -> tuple[ProbeOutcome, ...]:
        return tuple(o for o in self.outcomes if o.failed)

    def summary(self) -> dict[str, int]:
        counts = {"total": len(self.outcomes), "healthy": 0, "unhealthy": 0, "error": 0}
        for o in self.outcomes:
            if o.status is Status.HEALTHY:
                counts["healthy"] += 1
            elif o.status is Status.UNHEALTHY:
                counts["unhealthy"] += 1
            elif o.status is Status.ERROR:
                counts["error"] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        summary = self.summary()
        return {
            "checkedAt": self.checked_at.isoformat(),
            "ok": summary["healthy"] == summary["total"],
            "summary": summary,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


@dataclass(frozen=True)
class CheckRun:
    """Result of one Checker invocation: the aggregate plus its failed subset."""

    result: AggregateResult
    failures: tuple[ProbeOutcome, ...]


async def run_checks(
    endpoints: Sequence[EndpointDefinition],
    client: httpx.AsyncClient | None = None,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    clock: Callable[[], datetime] = utcnow,
) -> CheckRun:
    """Probe every endpoint concurrently and wait for all of them.

    ``outcomes[i]`` always belongs to ``endpoints[i]``; completion order
    does not matter. Nothing is produced until every probe has resolved.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
            return await run_checks(endpoints, own_client, timeout, clock)

    # gather returns results positionally, matching the input order
    outcomes = await asyncio.gather(*(probe(e, client, timeout) for e in endpoints))

    failures = []
    for outcome in outcomes:
        if outcome.failed:
            failures.append(outcome)

    result = AggregateResult(outcomes=tuple(outcomes), checked_at=clock())
    logger.info(
        "Check run complete: %d endpoints, %d failing",
        len(result.outcomes), len(failures),
    )
    return CheckRun(result=result, failures=tuple(failures))
