"""
Event store: append-only persistence of webhook events plus read paths.

The store is the sole arbiter of ordering. Appends are serialized through
one lock held across insert and commit, so sequence numbers are strictly
increasing and become visible in order.
"""

import asyncio
import time
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from sqlalchemy import and_, case, desc, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voicedash.executions.events import FAILED_STATUSES, CallEvent, DtmfAction, EventKind
from voicedash.executions.models import EventRecord
from voicedash.executions.reducer import ExecutionState, reduce
from voicedash.shared.exceptions import StoreUnavailableError
from voicedash.shared.logging import get_logger

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class EventWindow:
    """Half-open receive-time window ``[start_ms, end_ms)``."""

    start_ms: int
    end_ms: int


@dataclass(frozen=True)
class EventCounters:
    """Aggregate counters over a window of stored events."""

    total_calls: int = 0
    confirmed: int = 0
    cancelled: int = 0
    representative_requests: int = 0
    failed_calls: int = 0


class EventStore:
    """Async SQLAlchemy event store."""

    def __init__(
        self,
        session: AsyncSession,
        append_lock: asyncio.Lock | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        """Initialize the store.

        Args:
            session: Async database session.
            append_lock: Lock shared by every store of the application.
                A private lock is created when omitted.
            clock: Receive-time source in epoch milliseconds.
        """
        self._session = session
        self._append_lock = append_lock or asyncio.Lock()
        self._clock = clock

    async def append(self, event: CallEvent) -> int:
        """Persist one event and return its sequence number.

        The row is committed before this returns.

        Raises:
            StoreUnavailableError: If the insert or commit fails.
        """
        async with self._append_lock:
            record = EventRecord.from_event(event, received_at=self._clock())
            try:
                self._session.add(record)
                await self._session.flush()
                sequence = record.id
                await self._session.commit()
            except SQLAlchemyError as e:
                await self._session.rollback()
                logger.error(
                    "Event append failed",
                    extra={"execution_id": event.execution_id, "error": str(e)},
                )
                raise StoreUnavailableError(f"Event append failed: {e}") from e

        logger.debug(
            "Event stored",
            extra={
                "execution_id": event.execution_id,
                "kind": event.kind.value,
                "sequence": sequence,
            },
        )
        return sequence

    async def list_by_execution(self, execution_id: str) -> list[CallEvent]:
        """Return an execution's events by ascending sequence.

        An unknown execution yields an empty list.
        """
        stmt = (
            select(EventRecord)
            .where(EventRecord.execution_id == execution_id)
            .order_by(EventRecord.id)
        )
        records = await self._scalars(stmt)
        return [r.to_event() for r in records]

    async def list_executions(
        self,
        limit: int,
        offset: int = 0,
    ) -> tuple[list[ExecutionState], int]:
        """Return one page of execution summaries and the total count.

        Pages are ordered by last activity, newest first; ties go to the
        execution with the newest sequence.
        """
        last_activity = func.max(EventRecord.occurred_at).label("last_activity")
        last_sequence = func.max(EventRecord.id).label("last_sequence")
        page_stmt = (
            select(EventRecord.execution_id, last_activity, last_sequence)
            .group_by(EventRecord.execution_id)
            .order_by(desc(last_activity), desc(last_sequence))
            .limit(limit)
            .offset(offset)
        )
        total_stmt = select(func.count(distinct(EventRecord.execution_id)))

        try:
            rows = (await self._session.execute(page_stmt)).all()
            total = (await self._session.execute(total_stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Execution listing failed: {e}") from e

        execution_ids = [row.execution_id for row in rows]
        return await self._reduce_many(execution_ids), int(total or 0)

    async def list_execution_ids(self) -> list[str]:
        """Return every execution id, most recent activity first."""
        last_activity = func.max(EventRecord.occurred_at).label("last_activity")
        last_sequence = func.max(EventRecord.id).label("last_sequence")
        stmt = (
            select(EventRecord.execution_id, last_activity, last_sequence)
            .group_by(EventRecord.execution_id)
            .order_by(desc(last_activity), desc(last_sequence))
        )
        try:
            rows = (await self._session.execute(stmt)).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Execution listing failed: {e}") from e
        return [row.execution_id for row in rows]

    async def reduce_executions(self, execution_ids: Sequence[str]) -> list[ExecutionState]:
        """Reduce several executions, preserving the order of ``execution_ids``."""
        return await self._reduce_many(list(execution_ids))

    async def list_recent(self, limit: int, offset: int = 0) -> list[CallEvent]:
        """Return raw events, newest sequence first."""
        stmt = (
            select(EventRecord)
            .order_by(desc(EventRecord.id))
            .limit(limit)
            .offset(offset)
        )
        records = await self._scalars(stmt)
        return [r.to_event() for r in records]

    async def count_events(self) -> int:
        try:
            result = await self._session.execute(select(func.count(EventRecord.id)))
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Event count failed: {e}") from e
        return int(result.scalar_one() or 0)

    async def counts_for(self, window: EventWindow) -> EventCounters:
        """Aggregate counters over events received inside ``window``."""

        def _count_action(action: DtmfAction):
            return func.coalesce(
                func.sum(
                    case(
                        (
                            and_(
                                EventRecord.kind == EventKind.DTMF.value,
                                EventRecord.action == action.value,
                            ),
                            1,
                        ),
                        else_=0,
                    )
                ),
                0,
            )

        # executions that reported a failure status at least once
        failed = func.count(
            distinct(
                case(
                    (
                        and_(
                            EventRecord.kind == EventKind.STATUS.value,
                            EventRecord.status.in_(sorted(FAILED_STATUSES)),
                        ),
                        EventRecord.execution_id,
                    ),
                    else_=None,
                )
            )
        )

        stmt = select(
            func.count(distinct(EventRecord.execution_id)).label("total_calls"),
            _count_action(DtmfAction.CONFIRM_APPOINTMENT).label("confirmed"),
            _count_action(DtmfAction.CANCEL_APPOINTMENT).label("cancelled"),
            _count_action(DtmfAction.CONNECT_TO_REPRESENTATIVE).label("representative"),
            failed.label("failed_calls"),
        ).where(
            EventRecord.received_at >= window.start_ms,
            EventRecord.received_at < window.end_ms,
        )

        try:
            row = (await self._session.execute(stmt)).one()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Event counters failed: {e}") from e

        return EventCounters(
            total_calls=int(row.total_calls or 0),
            confirmed=int(row.confirmed or 0),
            cancelled=int(row.cancelled or 0),
            representative_requests=int(row.representative or 0),
            failed_calls=int(row.failed_calls or 0),
        )

    async def _reduce_many(self, execution_ids: list[str]) -> list[ExecutionState]:
        if not execution_ids:
            return []

        stmt = (
            select(EventRecord)
            .where(EventRecord.execution_id.in_(execution_ids))
            .order_by(EventRecord.id)
        )
        records = await self._scalars(stmt)

        grouped: dict[str, list[CallEvent]] = defaultdict(list)
        for record in records:
            grouped[record.execution_id].append(record.to_event())

        return [reduce(grouped[eid], execution_id=eid) for eid in execution_ids]

    async def _scalars(self, stmt) -> Sequence[EventRecord]:
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Event query failed: {e}") from e
        return result.scalars().all()
