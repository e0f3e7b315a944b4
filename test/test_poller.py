"""Tests for the sync poller state machine."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from voicedash.shared.exceptions import SourceUnavailableError
from voicedash.sync.cache import CachedView, ViewCache
from voicedash.sync.client import FeedPage
from voicedash.sync.poller import PollerSnapshot, PollerState, PollOutcome, SyncPoller

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _events(n: int) -> list[dict[str, Any]]:
    return [{"execution_id": f"FN{i}", "kind": "status"} for i in range(n)]


class FakeSource:
    """Scripted event source; each fetch pops the next result."""

    def __init__(self, *results: list[dict[str, Any]] | Exception) -> None:
        self.results = list(results)
        self.fetches = 0
        self.pings = 0
        self.alive = True
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def fetch_events(self, limit: int) -> FeedPage:
        self.fetches += 1
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return FeedPage(events=result, total=len(result))

    async def ping(self) -> bool:
        self.pings += 1
        return self.alive


class StoredFeed:
    """Feed backed by a growing event list; pages hold the newest ``limit``."""

    def __init__(self, count: int) -> None:
        self.stored: list[dict[str, Any]] = []
        self.append(count)

    def append(self, count: int = 1) -> None:
        for _ in range(count):
            sequence = len(self.stored) + 1
            self.stored.append({"execution_id": f"FN{sequence}", "sequence": sequence})

    async def fetch_events(self, limit: int) -> FeedPage:
        newest = list(reversed(self.stored))[:limit]
        return FeedPage(events=newest, total=len(self.stored))

    async def ping(self) -> bool:
        return True


def _poller(source: Any, cache: ViewCache | None = None, fetch_limit: int = 500) -> SyncPoller:
    return SyncPoller(
        source,
        cache=cache,
        interval=0.01,
        probe_interval=0.01,
        fetch_limit=fetch_limit,
        clock=lambda: NOW,
    )


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_growth_replaces_view_and_persists(self, tmp_path: Path) -> None:
        cache = ViewCache(tmp_path / "view.json")
        poller = _poller(FakeSource(_events(3)), cache)

        outcome = await poller.poll_once()

        assert outcome is PollOutcome.UPDATED
        snapshot = poller.snapshot()
        assert len(snapshot.events) == 3
        assert snapshot.connected
        assert snapshot.last_update == NOW
        assert poller.state is PollerState.IDLE

        persisted = cache.load()
        assert persisted is not None
        assert persisted.last_seen_count == 3

    @pytest.mark.asyncio
    async def test_shrink_is_unchanged(self) -> None:
        poller = _poller(FakeSource(_events(10), _events(7)))

        assert await poller.poll_once() is PollOutcome.UPDATED
        assert await poller.poll_once() is PollOutcome.UNCHANGED

        assert len(poller.snapshot().events) == 10
        assert poller.view.last_seen_count == 10
        assert poller.snapshot().connected

    @pytest.mark.asyncio
    async def test_growth_past_fetch_limit_is_detected(self) -> None:
        feed = StoredFeed(5)
        poller = _poller(feed, fetch_limit=5)
        assert await poller.poll_once() is PollOutcome.UPDATED

        feed.append()

        assert await poller.poll_once() is PollOutcome.UPDATED
        events = poller.snapshot().events
        assert len(events) == 5
        assert events[0]["sequence"] == 6
        assert poller.view.last_seen_count == 6

        assert await poller.poll_once() is PollOutcome.UNCHANGED

    @pytest.mark.asyncio
    async def test_same_count_is_unchanged(self) -> None:
        poller = _poller(FakeSource(_events(2), _events(2)))
        await poller.poll_once()
        first_update = poller.view.last_update

        assert await poller.poll_once() is PollOutcome.UNCHANGED
        assert poller.view.last_update == first_update

    @pytest.mark.asyncio
    async def test_failure_preserves_cache(self, tmp_path: Path) -> None:
        cache = ViewCache(tmp_path / "view.json")
        poller = _poller(FakeSource(_events(4), SourceUnavailableError("timeout")), cache)
        await poller.poll_once()

        outcome = await poller.poll_once()

        assert outcome is PollOutcome.FAILED
        snapshot = poller.snapshot()
        assert len(snapshot.events) == 4
        assert not snapshot.connected
        assert cache.load().last_seen_count == 4  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_stop_discards_in_flight_fetch(self) -> None:
        source = FakeSource(_events(5))
        source.gate = asyncio.Event()
        poller = _poller(source)

        task = asyncio.create_task(poller.poll_once())
        await source.started.wait()
        assert poller.snapshot().is_polling

        await poller.stop()
        source.gate.set()

        assert await task is PollOutcome.DISCARDED
        assert poller.snapshot().events == ()
        assert poller.view.last_seen_count == 0
        assert not poller.snapshot().is_polling

    @pytest.mark.asyncio
    async def test_force_refresh_waits_for_in_flight_poll(self) -> None:
        source = FakeSource(_events(1))
        source.gate = asyncio.Event()
        poller = _poller(source)

        first = asyncio.create_task(poller.poll_once())
        await source.started.wait()
        refresh = asyncio.create_task(poller.force_refresh())
        await asyncio.sleep(0)
        source.gate.set()

        assert await first is PollOutcome.UPDATED
        assert await refresh is PollOutcome.UPDATED
        assert source.fetches == 1


class TestLifecycle:
    def test_restart_loads_persisted_view(self, tmp_path: Path) -> None:
        cache = ViewCache(tmp_path / "view.json")
        cache.save(CachedView(events=_events(2), last_seen_count=2, last_update=NOW, connected=True))

        poller = _poller(FakeSource(), cache)

        snapshot = poller.snapshot()
        assert len(snapshot.events) == 2
        assert snapshot.last_update == NOW
        assert not snapshot.connected

    @pytest.mark.asyncio
    async def test_start_polls_and_probes_until_stopped(self) -> None:
        source = FakeSource(*[_events(1) for _ in range(100)])
        poller = _poller(source)

        await poller.start()
        await asyncio.sleep(0.05)
        await poller.stop()

        assert source.fetches >= 1
        assert source.pings >= 1
        assert not poller.is_running

        fetches = source.fetches
        await asyncio.sleep(0.03)
        assert source.fetches == fetches

    @pytest.mark.asyncio
    async def test_probe_flips_connected_only(self) -> None:
        source = FakeSource(_events(3))
        poller = _poller(source)
        await poller.poll_once()

        source.alive = False
        assert await poller.probe_once() is False

        snapshot = poller.snapshot()
        assert not snapshot.connected
        assert len(snapshot.events) == 3


class TestObservers:
    @pytest.mark.asyncio
    async def test_subscribe_and_unsubscribe(self) -> None:
        seen: list[PollerSnapshot] = []
        poller = _poller(FakeSource(_events(1), _events(2)))
        unsubscribe = poller.subscribe(seen.append)

        await poller.poll_once()
        assert seen[0].is_polling
        assert len(seen[-1].events) == 1
        assert not seen[-1].is_polling

        unsubscribe()
        count = len(seen)
        await poller.poll_once()
        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_clear_events_empties_view_and_file(self, tmp_path: Path) -> None:
        cache = ViewCache(tmp_path / "view.json")
        poller = _poller(FakeSource(_events(3), _events(1)), cache)
        await poller.poll_once()

        poller.clear_events()

        assert poller.snapshot().events == ()
        assert not cache.path.exists()
        # after a clear any non-empty feed counts as new data
        assert await poller.poll_once() is PollOutcome.UPDATED
