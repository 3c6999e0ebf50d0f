"""Health check engine — probes one HTTP endpoint and classifies the outcome.

Every probe performs exactly one HTTP transaction bounded by a fixed
deadline and resolves to exactly one ProbeOutcome. Transport failures
never escape as exceptions; they become ERROR outcomes.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

import httpx

from statusboard.endpoints.registry import PAYLOAD_METHODS, EndpointDefinition

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 5.0
TIMEOUT_MESSAGE = "Request timed out or was aborted."


# ── Models ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    PENDING = "Pending"  # placeholder before a probe resolves
    HEALTHY = "Healthy"
    UNHEALTHY = "Unhealthy"
    ERROR = "Error"


@dataclass(frozen=True)
class ProbeOutcome:
    """Classified result of a single probe, tagged with its endpoint's fields.

    ``headers`` and ``body`` are read-only copies (mappings become
    ``MappingProxyType``, lists become tuples), so an outcome handed out
    by the cache cannot be used to change cached state or the endpoint.
    """

    endpoint_id: str
    name: str
    url: str
    method: str
    expected_status: int
    status: Status
    description: str | None = None
    headers: Mapping[str, str] | None = None
    body: Any = None
    status_code: int | None = None
    status_text: str | None = None
    error_message: str | None = None
    latency_ms: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status is not Status.HEALTHY

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.endpoint_id,
            "name": self.name,
            "url": self.url,
            "method": self.method,
            "expectedStatus": self.expected_status,
            "description": self.description,
            "headers": dict(self.headers) if self.headers else None,
            "body": _thaw(self.body),
            "status": self.status.value,
            "statusCode": self.status_code,
            "statusText": self.status_text,
            "errorMessage": self.error_message,
            "latencyMs": self.latency_ms,
        }


def _freeze(value: Any) -> Any:
    """Deep read-only copy of a JSON-like value."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return copy.deepcopy(value)


def _thaw(value: Any) -> Any:
    """Plain dict/list copy of a value produced by ``_freeze``."""
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def _outcome(endpoint: EndpointDefinition, status: Status, **kw: Any) -> ProbeOutcome:
    return ProbeOutcome(
        endpoint_id=endpoint.id,
        name=endpoint.name,
        url=endpoint.url,
        method=endpoint.method,
        expected_status=endpoint.expected_status,
        description=endpoint.description,
        headers=MappingProxyType(dict(endpoint.headers)) if endpoint.headers else None,
        body=_freeze(endpoint.body),
        status=status,
        **kw,
    )


# ── Request building ─────────────────────────────────────────────────────────


def build_request_kwargs(endpoint: EndpointDefinition) -> dict[str, Any]:
    """Keyword arguments for ``httpx.AsyncClient.request`` for this endpoint.

    A JSON body is attached only for POST/PUT/PATCH. ``Content-Type`` is
    added only when the literal key ``Content-Type`` is absent from the
    configured headers.
    """
    headers = dict(endpoint.headers or {})
    kwargs: dict[str, Any] = {"method": endpoint.method, "url": endpoint.url}

    if endpoint.method in PAYLOAD_METHODS and endpoint.body is not None:
        kwargs["content"] = json.dumps(endpoint.body)
        if "Content-Type" not in headers:
            headers["Content-Type"] = "application/json"

    kwargs["headers"] = headers
    return kwargs


# ── Prober ───────────────────────────────────────────────────────────────────


async def probe(
    endpoint: EndpointDefinition,
    client: httpx.AsyncClient | None = None,
    timeout: float = PROBE_TIMEOUT_SECONDS,
) -> ProbeOutcome:
    """Run one HTTP transaction against ``endpoint`` and classify it.

    Never raises for transport problems: timeouts, DNS, refused
    connections and TLS failures all become ``Status.ERROR`` outcomes.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
            return await probe(endpoint, own_client, timeout)

    t0 = time.perf_counter()
    try:
        kwargs = build_request_kwargs(endpoint)
        # wait_for cancels the request and disarms its timer on every exit path
        resp = await asyncio.wait_for(client.request(**kwargs), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        latency = (time.perf_counter() - t0) * 1000
        logger.debug("Probe %s timed out after %.0fms", endpoint.id, latency)
        return _outcome(
            endpoint, Status.ERROR,
            error_message=TIMEOUT_MESSAGE, latency_ms=round(latency, 1),
        )
    except Exception as e:
        latency = (time.perf_counter() - t0) * 1000
        message = str(e) or type(e).__name__
        logger.debug("Probe %s failed: %s: %s", endpoint.id, type(e).__name__, message)
        return _outcome(
            endpoint, Status.ERROR,
            error_message=message, latency_ms=round(latency, 1),
        )

    latency = round((time.perf_counter() - t0) * 1000, 1)
    if resp.status_code == endpoint.expected_status:
        return _outcome(
            endpoint, Status.HEALTHY,
            status_code=resp.status_code, status_text=resp.reason_phrase,
            latency_ms=latency,
        )
    return _outcome(
        endpoint, Status.UNHEALTHY,
        status_code=resp.status_code, status_text=resp.reason_phrase,
        error_message=f"Expected status {endpoint.expected_status} but got {resp.status_code}",
        latency_ms=latency,
    )
