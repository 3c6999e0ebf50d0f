"""Tests for the result cache: freshness, refresh and background notification."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from statusboard.health.cache import ResultCache
from statusboard.notifications.email import EmailNotifier
from tests.conftest import FakeClock, make_endpoint, mock_client, status_by_host


class CountingTargets:
    """Target handler that counts probes per host."""

    def __init__(self, statuses: dict[str, int], delay: float = 0.0) -> None:
        self.statuses = statuses
        self.delay = delay
        self.calls = 0

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.statuses[request.url.host])


# ── Freshness ────────────────────────────────────────────────────────────────


class TestFreshness:
    @pytest.mark.asyncio
    async def test_starts_empty(self, clock: FakeClock) -> None:
        cache = ResultCache(lambda: [], clock=clock)
        assert cache.peek() is None
        assert not cache.is_fresh()

    @pytest.mark.asyncio
    async def test_second_call_within_window_is_cached(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200})
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            first = await cache.get_or_refresh()
            clock.advance(59)
            second = await cache.get_or_refresh()

        assert targets.calls == 1
        assert second is first
        assert second.checked_at == first.checked_at
        assert cache.refresh_count == 1

    @pytest.mark.asyncio
    async def test_expired_after_window(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200})
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            first = await cache.get_or_refresh()
            clock.advance(60)
            second = await cache.get_or_refresh()

        assert targets.calls == 2
        assert second.checked_at > first.checked_at
        assert cache.peek() is second

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200}, delay=0.05)
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            results = await asyncio.gather(*(cache.get_or_refresh() for _ in range(5)))

        assert targets.calls == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200})
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            first = await cache.get_or_refresh()
            cache.invalidate()
            assert cache.peek() is None
            second = await cache.get_or_refresh()

        assert targets.calls == 2
        assert second.checked_at > first.checked_at

    @pytest.mark.asyncio
    async def test_endpoints_read_on_each_refresh(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200, "new.test": 200})
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            await cache.get_or_refresh()
            endpoints.append(make_endpoint("New", "http://new.test"))
            clock.advance(61)
            result = await cache.get_or_refresh()

        assert [o.name for o in result.outcomes] == ["A", "New"]

    @pytest.mark.asyncio
    async def test_invalidate_during_refresh_triggers_new_run(self, clock: FakeClock) -> None:
        targets = CountingTargets({"ok.test": 200}, delay=0.05)
        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(targets) as client:
            cache = ResultCache(lambda: endpoints, client=client, clock=clock)
            in_flight = asyncio.create_task(cache.get_or_refresh())
            await asyncio.sleep(0.01)
            assert targets.calls == 1

            cache.invalidate()
            forced = await cache.get_or_refresh()
            earlier = await in_flight

        assert targets.calls == 2
        assert forced is not earlier
        assert forced.checked_at > earlier.checked_at
        assert cache.peek() is forced


# ── Snapshots ────────────────────────────────────────────────────────────────


class TestSnapshotIsolation:
    @pytest.mark.asyncio
    async def test_returned_outcomes_cannot_change_cache_or_endpoint(self, clock: FakeClock) -> None:
        sent_bodies: list[bytes] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent_bodies.append(request.content)
            return httpx.Response(200)

        endpoint = make_endpoint(
            "A", "http://ok.test", method="POST", headers={"X": "1"}, body={"k": 1},
        )
        async with mock_client(handler) as client:
            cache = ResultCache(lambda: [endpoint], client=client, clock=clock)
            first = await cache.get_or_refresh()
            outcome = first.outcomes[0]

            with pytest.raises(TypeError):
                outcome.headers["X"] = "tampered"
            with pytest.raises(TypeError):
                outcome.body["k"] = 999
            snapshot = first.to_dict()
            snapshot["outcomes"][0]["headers"]["X"] = "tampered"
            snapshot["outcomes"][0]["body"]["k"] = 999

            cached = cache.peek().outcomes[0]
            assert cached.headers == {"X": "1"}
            assert cached.body == {"k": 1}
            assert endpoint.body == {"k": 1}

            clock.advance(60)
            await cache.get_or_refresh()

        assert [json.loads(b) for b in sent_bodies] == [{"k": 1}, {"k": 1}]


# ── Notifications ────────────────────────────────────────────────────────────


class TestNotificationDispatch:
    @pytest.mark.asyncio
    async def test_failures_notified_once(self, ok_and_bad, clock: FakeClock) -> None:
        sent: list[httpx.Request] = []

        def provider(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        handler = status_by_host({"ok.test": 200, "bad.test": 500})
        async with mock_client(handler) as targets, mock_client(provider) as mail:
            notifier = EmailNotifier(
                api_key="re_test", sender="status@example.com",
                recipient="ops@example.com", client=mail,
            )
            cache = ResultCache(lambda: ok_and_bad, notifier=notifier, client=targets, clock=clock)
            await cache.get_or_refresh()
            await cache.wait_for_notifications()

        assert len(sent) == 1
        payload = json.loads(sent[0].content)
        assert "B" in payload["html"]
        assert "Expected status 200 but got 500" in payload["html"]
        assert "<strong>A</strong>" not in payload["html"]

    @pytest.mark.asyncio
    async def test_notification_does_not_block_caller(self, ok_and_bad, clock: FakeClock) -> None:
        release = asyncio.Event()

        async def provider(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200)

        handler = status_by_host({"ok.test": 200, "bad.test": 500})
        async with mock_client(handler) as targets, mock_client(provider) as mail:
            notifier = EmailNotifier(api_key="re_test", recipient="ops@example.com", client=mail)
            cache = ResultCache(lambda: ok_and_bad, notifier=notifier, client=targets, clock=clock)

            result = await asyncio.wait_for(cache.get_or_refresh(), timeout=1)
            assert [o.name for o in result.failures] == ["B"]

            release.set()
            await cache.wait_for_notifications()

    @pytest.mark.asyncio
    async def test_send_failure_leaves_result_intact(self, ok_and_bad, clock: FakeClock) -> None:
        def provider(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("mail provider down", request=request)

        handler = status_by_host({"ok.test": 200, "bad.test": 500})
        async with mock_client(handler) as targets, mock_client(provider) as mail:
            notifier = EmailNotifier(api_key="re_test", recipient="ops@example.com", client=mail)
            cache = ResultCache(lambda: ok_and_bad, notifier=notifier, client=targets, clock=clock)
            result = await cache.get_or_refresh()
            await cache.wait_for_notifications()

        assert cache.peek() is result
        assert [o.status_code for o in result.outcomes] == [200, 500]

    @pytest.mark.asyncio
    async def test_all_healthy_sends_nothing(self, clock: FakeClock) -> None:
        sent: list[httpx.Request] = []

        def provider(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200)

        endpoints = [make_endpoint("A", "http://ok.test")]
        async with mock_client(status_by_host({"ok.test": 200})) as targets, \
                mock_client(provider) as mail:
            notifier = EmailNotifier(api_key="re_test", recipient="ops@example.com", client=mail)
            cache = ResultCache(lambda: endpoints, notifier=notifier, client=targets, clock=clock)
            await cache.get_or_refresh()
            await cache.wait_for_notifications()

        assert sent == []

    @pytest.mark.asyncio
    async def test_cached_hit_does_not_renotify(self, ok_and_bad, clock: FakeClock) -> None:
        sent: list[httpx.Request] = []

        def provider(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200)

        handler = status_by_host({"ok.test": 200, "bad.test": 500})
        async with mock_client(handler) as targets, mock_client(provider) as mail:
            notifier = EmailNotifier(api_key="re_test", recipient="ops@example.com", client=mail)
            cache = ResultCache(lambda: ok_and_bad, notifier=notifier, client=targets, clock=clock)
            await cache.get_or_refresh()
            clock.advance(10)
            await cache.get_or_refresh()
            await cache.wait_for_notifications()

        assert len(sent) == 1
