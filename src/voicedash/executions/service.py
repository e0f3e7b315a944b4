"""
Execution ingestion and query service.

Ingestion: webhook payload -> normalizer -> event store.
Queries: store reads -> reducer -> page / stats schemas. Queries never write.
"""

import time
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from voicedash.config import Settings, get_settings
from voicedash.executions.events import normalize
from voicedash.executions.reducer import ExecutionState, reduce
from voicedash.executions.repository import EventCounters, EventStore, EventWindow
from voicedash.executions.schemas import (
    CallStats,
    DailyEventStats,
    DashboardStats,
    EventFeed,
    ExecutionExport,
    ExecutionPage,
    FeedPagination,
    IngestResult,
)
from voicedash.shared.exceptions import NormalizationError
from voicedash.shared.logging import execution_id_var, get_logger

logger = get_logger(__name__)

_HOUR_MS = 60 * 60 * 1000
_DAY_MS = 24 * _HOUR_MS


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ratio(part: int, whole: int) -> float:
    return part / whole if whole > 0 else 0.0


def _call_stats(counters: EventCounters) -> CallStats:
    return CallStats(
        total_calls=counters.total_calls,
        confirmed_appointments=counters.confirmed,
        cancelled_appointments=counters.cancelled,
        representative_requests=counters.representative_requests,
        failed_calls=counters.failed_calls,
        confirmation_rate=_ratio(counters.confirmed, counters.total_calls),
        failure_rate=_ratio(counters.failed_calls, counters.total_calls),
    )


class ExecutionService:
    """Ingests webhook events and answers execution queries."""

    def __init__(
        self,
        store: EventStore,
        settings: Settings | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock

    async def ingest(
        self,
        payload: Mapping[str, Any],
        received_at_ms: int | None = None,
    ) -> IngestResult:
        """Normalize and persist one webhook payload.

        Raises:
            NormalizationError: Payload rejected before persistence.
            StoreUnavailableError: The store could not persist the event.
        """
        try:
            event = normalize(payload, received_at_ms=received_at_ms or self._clock())
        except NormalizationError as e:
            logger.warning("Webhook payload rejected", extra={"reason": e.message, **e.details})
            raise

        token = execution_id_var.set(event.execution_id)
        try:
            sequence = await self._store.append(event)
            logger.info(
                "Webhook event ingested",
                extra={"kind": event.kind.value, "sequence": sequence, "status": event.status},
            )
            if event.status is not None and not event.is_known_status:
                logger.warning("Unknown call status passed through", extra={"status": event.status})
        finally:
            execution_id_var.reset(token)

        return IngestResult(execution_id=event.execution_id, kind=event.kind, sequence=sequence)

    async def get_execution(self, execution_id: str) -> ExecutionState:
        """Return the derived state; an unknown id yields an empty state."""
        events = await self._store.list_by_execution(execution_id)
        return reduce(events, execution_id=execution_id)

    async def list_executions(self, limit: int, offset: int = 0) -> ExecutionPage:
        items, total = await self._store.list_executions(limit=limit, offset=offset)
        return ExecutionPage.build(items=items, total=total, limit=limit, offset=offset)

    async def export_all(self) -> ExecutionExport:
        execution_ids = await self._store.list_execution_ids()
        items = await self._store.reduce_executions(execution_ids)
        logger.info("Execution export prepared", extra={"count": len(items)})
        return ExecutionExport(items=items, total=len(items))

    async def list_events(self, page: int, limit: int) -> EventFeed:
        offset = (page - 1) * limit
        events = await self._store.list_recent(limit=limit, offset=offset)
        total = await self._store.count_events()
        return EventFeed(
            events=events,
            pagination=FeedPagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=-(-total // limit),
            ),
        )

    async def get_stats(self, now_ms: int | None = None) -> DashboardStats:
        """Counters over the trailing window plus one bucket per UTC day."""
        now_ms = now_ms if now_ms is not None else self._clock()

        window_ms = self._settings.stats_window_hours * _HOUR_MS
        today = await self._store.counts_for(EventWindow(now_ms - window_ms, now_ms + 1))

        now = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

        weekly: list[DailyEventStats] = []
        for offset in range(self._settings.stats_week_days):
            day_start = midnight - timedelta(days=offset)
            start_ms = int(day_start.timestamp() * 1000)
            counters = await self._store.counts_for(EventWindow(start_ms, start_ms + _DAY_MS))
            weekly.append(
                DailyEventStats(
                    day=day_start.date(),
                    calls=counters.total_calls,
                    confirmed=counters.confirmed,
                    cancelled=counters.cancelled,
                )
            )

        return DashboardStats(today=_call_stats(today), weekly=weekly, generated_at=now)
