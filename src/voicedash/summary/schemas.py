"""
Pydantic schemas for call summaries.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from voicedash.telephony.interface import CallDirection, CallRecord


class InboundStats(BaseModel):
    total: int = 0
    answered: int = 0
    missed: int = 0
    missed_ratio: float = Field(default=0.0, ge=0.0, le=1.0, description="missed / total")
    total_duration: int = Field(default=0, description="Seconds")
    avg_duration: float = Field(default=0.0, description="total_duration / answered")
    max_duration: int = 0


class OutboundStats(BaseModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    total_duration: int = Field(default=0, description="Seconds")
    avg_duration: float = Field(default=0.0, description="total_duration / completed")
    max_duration: int = 0


class OverallStats(BaseModel):
    total_calls: int = 0
    total_duration: int = 0


class PeriodSummary(BaseModel):
    """Inbound, outbound and overall statistics for one set of records."""

    inbound: InboundStats = Field(default_factory=InboundStats)
    outbound: OutboundStats = Field(default_factory=OutboundStats)
    overall: OverallStats = Field(default_factory=OverallStats)


class CallRecordResponse(BaseModel):
    sid: str
    from_number: str | None
    to_number: str | None
    status: str
    duration: int
    start_time: datetime | None
    end_time: datetime | None
    direction: str

    @classmethod
    def from_record(cls, record: CallRecord) -> "CallRecordResponse":
        return cls(
            sid=record.sid,
            from_number=record.from_number,
            to_number=record.to_number,
            status=record.status,
            duration=record.duration,
            start_time=record.start_time,
            end_time=record.end_time,
            direction=record.direction,
        )


class DailySummary(BaseModel):
    """One UTC day of provider call records."""

    date: date
    direction: CallDirection
    stats: PeriodSummary
    inbound_calls: list[CallRecordResponse] = Field(description="Sorted by start time")
    outbound_calls: list[CallRecordResponse] = Field(description="Sorted by start time")


class DayBucket(BaseModel):
    date: date
    stats: PeriodSummary


class WeeklySummary(BaseModel):
    """Seven UTC days starting at ``start``."""

    start: date
    end: date = Field(description="Last day included")
    direction: CallDirection
    days: list[DayBucket]
    totals: PeriodSummary


class DaySummary(BaseModel):
    """Per-day counts for the monthly calendar."""

    day: int = Field(ge=1, le=31)
    date: date
    total_calls: int
    inbound: int
    outbound: int


class MonthlySummary(BaseModel):
    year: int
    month: int = Field(ge=1, le=12)
    days: list[DaySummary]
    total_calls: int
    total_inbound: int
    total_outbound: int
