"""
Pure aggregation of call-detail records into summary statistics.

Nothing here performs I/O or raises on empty input: every ratio and average
is guarded against a zero denominator.
"""

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from voicedash.summary.schemas import InboundStats, OutboundStats, OverallStats, PeriodSummary
from voicedash.telephony.interface import CallDirection, CallRecord

ANSWERED_STATUSES = frozenset({"completed", "in-progress", "answered"})
COMPLETED_STATUS = "completed"


@dataclass(frozen=True)
class Period:
    """Half-open UTC window ``[start, end)`` labelled by its calendar day."""

    day: date
    start: datetime
    end: datetime

    def contains(self, moment: datetime | None) -> bool:
        return moment is not None and self.start <= moment < self.end


def day_period(day: date) -> Period:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return Period(day=day, start=start, end=start + timedelta(days=1))


def week_periods(start: date) -> list[Period]:
    return [day_period(start + timedelta(days=i)) for i in range(7)]


def month_periods(year: int, month: int) -> list[Period]:
    _, last_day = calendar.monthrange(year, month)
    return [day_period(date(year, month, d)) for d in range(1, last_day + 1)]


def _ratio(part: int, whole: int) -> float:
    return part / whole if whole > 0 else 0.0


def _inbound_stats(records: Sequence[CallRecord]) -> InboundStats:
    durations = [r.duration for r in records]
    total_duration = sum(durations)
    answered = sum(1 for r in records if r.status in ANSWERED_STATUSES)
    missed = len(records) - answered
    return InboundStats(
        total=len(records),
        answered=answered,
        missed=missed,
        missed_ratio=_ratio(missed, len(records)),
        total_duration=total_duration,
        avg_duration=_ratio(total_duration, answered),
        max_duration=max(durations, default=0),
    )


def _outbound_stats(records: Sequence[CallRecord]) -> OutboundStats:
    durations = [r.duration for r in records]
    total_duration = sum(durations)
    completed = sum(1 for r in records if r.status == COMPLETED_STATUS)
    return OutboundStats(
        total=len(records),
        completed=completed,
        failed=len(records) - completed,
        total_duration=total_duration,
        avg_duration=_ratio(total_duration, completed),
        max_duration=max(durations, default=0),
    )


def summarize(
    records: Iterable[CallRecord],
    direction: CallDirection = CallDirection.ALL,
) -> PeriodSummary:
    """Compute inbound, outbound and overall statistics.

    Args:
        records: Call-detail records in any order.
        direction: Side to keep; the other side reports zeros.

    Returns:
        The period summary.
    """
    records = list(records)
    inbound = [r for r in records if r.is_inbound] if direction != CallDirection.OUTBOUND else []
    outbound = [r for r in records if r.is_outbound] if direction != CallDirection.INBOUND else []

    inbound_stats = _inbound_stats(inbound)
    outbound_stats = _outbound_stats(outbound)
    return PeriodSummary(
        inbound=inbound_stats,
        outbound=outbound_stats,
        overall=OverallStats(
            total_calls=inbound_stats.total + outbound_stats.total,
            total_duration=inbound_stats.total_duration + outbound_stats.total_duration,
        ),
    )


def rollup(
    records: Iterable[CallRecord],
    periods: Sequence[Period],
    direction: CallDirection = CallDirection.ALL,
) -> list[PeriodSummary]:
    """Summarize records per period, aligned with ``periods``.

    Records without a start time, or outside every period, are not counted.
    """
    records = list(records)
    return [
        summarize((r for r in records if period.contains(r.start_time)), direction)
        for period in periods
    ]
