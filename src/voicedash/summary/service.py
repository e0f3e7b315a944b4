"""
Summary service: provider call records -> daily, weekly and monthly rollups.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from voicedash.shared.logging import get_logger
from voicedash.summary.aggregator import (
    Period,
    day_period,
    month_periods,
    rollup,
    summarize,
    week_periods,
)
from voicedash.summary.schemas import (
    CallRecordResponse,
    DailySummary,
    DayBucket,
    DaySummary,
    MonthlySummary,
    WeeklySummary,
)
from voicedash.telephony.interface import CallDirection, CallRecord, CallRecordProvider, CallWindow

logger = get_logger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _window(periods: list[Period]) -> CallWindow:
    # provider windows are inclusive; stop one microsecond before the next day
    return CallWindow(start=periods[0].start, end=periods[-1].end - timedelta(microseconds=1))


def _by_start_time(records: list[CallRecord]) -> list[CallRecordResponse]:
    ordered = sorted(records, key=lambda r: r.start_time or _EARLIEST)
    return [CallRecordResponse.from_record(r) for r in ordered]


class SummaryService:
    """Builds call summaries from a ``CallRecordProvider``.

    Each query issues one provider request for its whole window and buckets
    the result locally. Provider failures propagate as
    ``ProviderUnavailableError``.
    """

    def __init__(
        self,
        provider: CallRecordProvider,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self._provider = provider
        self._today = today

    async def get_daily_summary(
        self,
        day: date | None = None,
        direction: CallDirection = CallDirection.ALL,
    ) -> DailySummary:
        day = day or self._today()
        period = day_period(day)
        records = await self._provider.list_call_records(_window([period]), direction)
        # same rule as rollup(): a record without a start time belongs to no day
        records = [r for r in records if period.contains(r.start_time)]

        stats = summarize(records, direction)
        logger.info(
            "Daily summary prepared",
            extra={
                "date": day.isoformat(),
                "direction": direction.value,
                "total_calls": stats.overall.total_calls,
            },
        )

        return DailySummary(
            date=day,
            direction=direction,
            stats=stats,
            inbound_calls=(
                _by_start_time([r for r in records if r.is_inbound])
                if direction != CallDirection.OUTBOUND
                else []
            ),
            outbound_calls=(
                _by_start_time([r for r in records if r.is_outbound])
                if direction != CallDirection.INBOUND
                else []
            ),
        )

    async def get_weekly_summary(
        self,
        start: date | None = None,
        direction: CallDirection = CallDirection.ALL,
    ) -> WeeklySummary:
        start = start or (self._today() - timedelta(days=6))
        periods = week_periods(start)
        records = await self._provider.list_call_records(_window(periods), direction)

        summaries = rollup(records, periods, direction)
        in_week = [r for r in records if any(p.contains(r.start_time) for p in periods)]
        return WeeklySummary(
            start=periods[0].day,
            end=periods[-1].day,
            direction=direction,
            days=[DayBucket(date=p.day, stats=s) for p, s in zip(periods, summaries)],
            totals=summarize(in_week, direction),
        )

    async def get_monthly_summary(self, year: int, month: int) -> MonthlySummary:
        periods = month_periods(year, month)
        records = await self._provider.list_call_records(_window(periods), CallDirection.ALL)

        days = [
            DaySummary(
                day=p.day.day,
                date=p.day,
                total_calls=s.overall.total_calls,
                inbound=s.inbound.total,
                outbound=s.outbound.total,
            )
            for p, s in zip(periods, rollup(records, periods))
        ]
        logger.info(
            "Monthly summary prepared",
            extra={"year": year, "month": month, "records": len(records)},
        )
        return MonthlySummary(
            year=year,
            month=month,
            days=days,
            total_calls=sum(d.total_calls for d in days),
            total_inbound=sum(d.inbound for d in days),
            total_outbound=sum(d.outbound for d in days),
        )
