"""API routes for endpoint status.

Endpoints:
  GET  /api/status                — latest aggregate result (cached up to 60s)
  GET  /api/status/{endpoint_id}  — latest outcome for one endpoint
  POST /api/status/refresh        — drop the cache and re-probe now
  GET  /api/endpoints             — configured endpoint definitions
  GET  /api/notifications         — notification channel status
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

logger = logging.getLogger(__name__)

status_router = APIRouter()


@status_router.get("/status")
async def get_status(request: Request) -> dict[str, Any]:
    """Current status of every endpoint, in configuration order."""
    cache = request.app.state.status_cache
    result = await cache.get_or_refresh()
    return result.to_dict()


@status_router.post("/status/refresh")
async def refresh_status(request: Request) -> dict[str, Any]:
    """Force a fresh check run regardless of cache age."""
    cache = request.app.state.status_cache
    cache.invalidate()
    result = await cache.get_or_refresh()
    return result.to_dict()


@status_router.get("/status/{endpoint_id}")
async def get_endpoint_status(endpoint_id: str, request: Request) -> dict[str, Any]:
    cache = request.app.state.status_cache
    result = await cache.get_or_refresh()
    outcome = next((o for o in result.outcomes if o.endpoint_id == endpoint_id), None)
    if outcome is None:
        raise HTTPException(status_code=404, detail=f"Endpoint not found: {endpoint_id}")
    return {"checkedAt": result.checked_at.isoformat(), "outcome": outcome.to_dict()}


@status_router.get("/endpoints")
def list_endpoints(request: Request) -> dict[str, Any]:
    registry = request.app.state.registry
    return {"endpoints": registry.to_dict()}


@status_router.get("/notifications")
def notification_status(request: Request) -> dict[str, Any]:
    notifier = request.app.state.notifier
    return notifier.status()
