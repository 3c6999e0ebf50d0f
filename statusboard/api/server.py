"""FastAPI server for the status page."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from statusboard.api.status_routes import status_router
from statusboard.config import settings
from statusboard.endpoints.registry import EndpointRegistry
from statusboard.health.cache import ResultCache
from statusboard.health.scheduler import RefreshScheduler
from statusboard.notifications.email import EmailNotifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the background refresh loop; drain notifications on shutdown."""
    registry: EndpointRegistry = app.state.registry
    try:
        registry.load()
    except Exception:
        logger.exception("Failed to load endpoint definitions")

    notifier: EmailNotifier = app.state.notifier
    if notifier.is_enabled:
        logger.info("Email notifier enabled (to=%s)", ", ".join(notifier.config().recipients))
    else:
        logger.info("Email notifier disabled (no API key)")

    scheduler: RefreshScheduler = app.state.refresh_scheduler
    try:
        await scheduler.start()
    except Exception:
        logger.exception("Refresh scheduler failed to start")

    yield

    await scheduler.stop()
    await app.state.status_cache.wait_for_notifications()
    logger.info("Status server shut down")


def create_app(
    registry: EndpointRegistry | None = None,
    notifier: EmailNotifier | None = None,
    client: httpx.AsyncClient | None = None,
    refresh_interval: float | None = None,
) -> FastAPI:
    """Build the app with its collaborators attached to ``app.state``."""
    app = FastAPI(title="Statusboard", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    registry = registry or EndpointRegistry(settings.endpoints_file)
    notifier = notifier or EmailNotifier()
    cache = ResultCache(lambda: registry.endpoints, notifier=notifier, client=client)
    interval = settings.refresh_interval_seconds if refresh_interval is None else refresh_interval

    app.state.registry = registry
    app.state.notifier = notifier
    app.state.status_cache = cache
    app.state.refresh_scheduler = RefreshScheduler(cache, interval)

    app.include_router(status_router, prefix="/api")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok"}

    return app
