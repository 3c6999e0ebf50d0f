"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from statusboard.endpoints.registry import EndpointDefinition


def make_endpoint(name: str, url: str, **kw) -> EndpointDefinition:
    """Endpoint with ``id`` derived from ``name`` unless given."""
    kw.setdefault("id", name.lower())
    return EndpointDefinition(name=name, url=url, **kw)


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler`` (sync or async)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


def status_by_host(mapping: dict[str, int]) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(mapping[request.url.host])
    return handler


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ok_and_bad() -> list[EndpointDefinition]:
    return [
        make_endpoint("A", "http://ok.test", expected_status=200),
        make_endpoint("B", "http://bad.test", expected_status=200),
    ]


@pytest.fixture(autouse=True)
def no_env_email(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's real email credentials out of the tests."""
    monkeypatch.setenv("RESEND_API_KEY", "")
    monkeypatch.setenv("NOTIFY_FROM", "")
    monkeypatch.setenv("NOTIFY_TO", "")
