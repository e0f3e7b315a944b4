"""
Pydantic schemas for the execution query API.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field

from voicedash.executions.events import CallEvent, EventKind
from voicedash.executions.reducer import ExecutionState


class IngestResult(BaseModel):
    """Outcome of one accepted webhook event."""

    execution_id: str = Field(description="Execution the event belongs to")
    kind: EventKind = Field(description="Event classification")
    sequence: int = Field(description="Store-assigned sequence number")


class ExecutionPage(BaseModel):
    """One page of execution summaries."""

    items: list[ExecutionState] = Field(description="Executions, most recent activity first")
    total: int = Field(description="Number of distinct executions")
    total_pages: int = Field(description="Number of pages at this limit")
    current_page: int = Field(description="1-based page index derived from offset")
    limit: int
    offset: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(
        cls,
        items: list[ExecutionState],
        total: int,
        limit: int,
        offset: int,
    ) -> "ExecutionPage":
        total_pages = -(-total // limit) if limit > 0 else 0
        current_page = offset // limit + 1 if limit > 0 else 1
        return cls(
            items=items,
            total=total,
            total_pages=total_pages,
            current_page=current_page,
            limit=limit,
            offset=offset,
            has_next_page=current_page < total_pages,
            has_previous_page=current_page > 1,
        )


class ExecutionExport(BaseModel):
    """Every execution, unpaginated."""

    items: list[ExecutionState]
    total: int


class FeedPagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class EventFeed(BaseModel):
    """Raw event feed, newest first. This is what the sync poller pulls."""

    events: list[CallEvent]
    pagination: FeedPagination


class CallStats(BaseModel):
    """Counters over a trailing window of stored events."""

    total_calls: int = Field(description="Distinct executions with activity")
    confirmed_appointments: int = Field(description="Presses mapped to confirm")
    cancelled_appointments: int = Field(description="Presses mapped to cancel")
    representative_requests: int = Field(description="Presses asking for a representative")
    failed_calls: int = Field(description="Executions that reported busy/no-answer/failed")
    confirmation_rate: float = Field(ge=0.0, description="confirmed / total_calls")
    failure_rate: float = Field(ge=0.0, le=1.0, description="failed / total_calls")


class DailyEventStats(BaseModel):
    """One UTC day of the weekly breakdown."""

    day: date
    calls: int
    confirmed: int
    cancelled: int


class DashboardStats(BaseModel):
    """Event-based rollups for the dashboard header."""

    today: CallStats
    weekly: list[DailyEventStats] = Field(description="UTC days, newest first")
    generated_at: datetime
