"""
Sync poller: keeps a local copy of the event feed fresh.

One poll cycle runs at a time. New data is detected by the total size of
the feed, not the size of the capped page: a feed larger than the last one
seen replaces the view wholesale, anything else leaves it untouched. A
separate, slower probe task only reports connectivity. A failed poll never
discards the last good view.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from voicedash.shared.exceptions import SourceUnavailableError
from voicedash.shared.logging import get_logger
from voicedash.sync.cache import CachedView, ViewCache
from voicedash.sync.client import FeedPage

logger = get_logger(__name__)


class EventSource(Protocol):
    async def fetch_events(self, limit: int) -> FeedPage: ...

    async def ping(self) -> bool: ...


class PollerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"


class PollOutcome(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    # fetch finished after stop() was requested; result dropped
    DISCARDED = "discarded"


@dataclass(frozen=True)
class PollerSnapshot:
    """Observable state handed to subscribers."""

    events: tuple[dict[str, Any], ...]
    connected: bool
    is_polling: bool
    last_update: datetime | None


Listener = Callable[[PollerSnapshot], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncPoller:
    """Owns the polling timers, the cached view and its subscribers."""

    def __init__(
        self,
        source: EventSource,
        cache: ViewCache | None = None,
        interval: float = 5.0,
        probe_interval: float = 30.0,
        fetch_limit: int = 500,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the poller and load the persisted view.

        Args:
            source: Event feed to pull from.
            cache: Durable store for the view; None keeps it in memory only.
            interval: Seconds between poll cycles.
            probe_interval: Seconds between liveness probes.
            fetch_limit: Number of events requested per poll.
            clock: Time source for ``last_update``.
        """
        self._source = source
        self._cache = cache
        self._interval = interval
        self._probe_interval = probe_interval
        self._fetch_limit = fetch_limit
        self._clock = clock

        loaded = cache.load() if cache is not None else None
        if loaded is not None:
            # connectivity is unknown until the first poll or probe
            self._view = loaded.model_copy(update={"connected": False})
            logger.info(
                "Cached view restored",
                extra={"events": len(loaded.events), "last_seen_count": loaded.last_seen_count},
            )
        else:
            self._view = CachedView()

        self._state = PollerState.IDLE
        self._last_outcome: PollOutcome | None = None
        self._poll_lock = asyncio.Lock()
        self._generation = 0
        self._running = False
        self._poll_task: asyncio.Task[None] | None = None
        self._probe_task: asyncio.Task[None] | None = None
        self._listeners: list[Listener] = []

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def view(self) -> CachedView:
        return self._view

    @property
    def is_running(self) -> bool:
        return self._running

    def snapshot(self) -> PollerSnapshot:
        return PollerSnapshot(
            events=tuple(self._view.events),
            connected=self._view.connected,
            is_polling=self._state is PollerState.POLLING,
            last_update=self._view.last_update,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop(), name="sync-poll")
        self._probe_task = asyncio.create_task(self._probe_loop(), name="sync-probe")
        logger.info(
            "Sync poller started",
            extra={"interval": self._interval, "probe_interval": self._probe_interval},
        )

    async def stop(self) -> None:
        """Cancel both timers; results of in-flight fetches are dropped."""
        self._generation += 1
        self._running = False

        for task in (self._poll_task, self._probe_task):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._poll_task = None
        self._probe_task = None
        logger.info("Sync poller stopped")

    async def poll_once(self) -> PollOutcome:
        """Run one poll cycle and return its outcome."""
        async with self._poll_lock:
            generation = self._generation
            self._set_state(PollerState.POLLING)
            try:
                outcome = await self._poll(generation)
            finally:
                self._set_state(PollerState.IDLE)
            self._last_outcome = outcome
            return outcome

    async def _poll(self, generation: int) -> PollOutcome:
        try:
            page = await self._source.fetch_events(self._fetch_limit)
        except SourceUnavailableError as e:
            if generation != self._generation:
                return PollOutcome.DISCARDED
            logger.warning("Poll failed, keeping cached view", extra={"error": e.message})
            self._set_connected(False)
            return PollOutcome.FAILED

        if generation != self._generation:
            logger.debug("Poll result dropped after stop")
            return PollOutcome.DISCARDED

        count = page.total
        previous = self._view.last_seen_count
        if count <= previous:
            self._set_connected(True)
            return PollOutcome.UNCHANGED

        logger.info(
            "New events received",
            extra={"delta": count - previous, "count": count},
        )
        self._view = CachedView(
            events=list(page.events),
            last_seen_count=count,
            last_update=self._clock(),
            connected=True,
        )
        self._persist()
        return PollOutcome.UPDATED

    async def force_refresh(self) -> PollOutcome | None:
        """Poll now, or wait for the poll already in flight."""
        if self._poll_lock.locked():
            async with self._poll_lock:
                return self._last_outcome
        return await self.poll_once()

    async def probe_once(self) -> bool:
        generation = self._generation
        connected = await self._source.ping()
        if generation == self._generation:
            self._set_connected(connected)
        return connected

    def clear_events(self) -> None:
        """Empty the view and delete the persisted copy."""
        self._view = CachedView(connected=self._view.connected)
        if self._cache is not None:
            self._cache.clear()
        logger.info("Cached view cleared")
        self._notify()

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Poll cycle crashed")
            await asyncio.sleep(self._interval)

    async def _probe_loop(self) -> None:
        while True:
            try:
                await self.probe_once()
            except Exception:
                logger.exception("Liveness probe crashed")
            await asyncio.sleep(self._probe_interval)

    def _persist(self) -> None:
        if self._cache is None:
            return
        try:
            self._cache.save(self._view)
        except OSError as e:
            # the in-memory view stays current; the next update retries the write
            logger.error(
                "Cached view not persisted",
                extra={"path": str(self._cache.path), "error": str(e)},
            )

    def _set_state(self, state: PollerState) -> None:
        if state is not self._state:
            self._state = state
            self._notify()

    def _set_connected(self, connected: bool) -> None:
        if connected != self._view.connected:
            self._view = self._view.model_copy(update={"connected": connected})
            self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Poller listener failed")
