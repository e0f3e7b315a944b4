"""
FastAPI router for provider-backed call summaries.
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from voicedash.summary.schemas import DailySummary, MonthlySummary, WeeklySummary
from voicedash.summary.service import SummaryService
from voicedash.telephony.factory import get_call_record_provider
from voicedash.telephony.interface import CallDirection, CallRecordProvider

router = APIRouter(prefix="/api/calls", tags=["summaries"])


def get_summary_service(
    provider: Annotated[CallRecordProvider, Depends(get_call_record_provider)],
) -> SummaryService:
    return SummaryService(provider)


@router.get("/daily-summary", response_model=DailySummary)
async def daily_summary(
    service: Annotated[SummaryService, Depends(get_summary_service)],
    day: date | None = Query(default=None, alias="date"),
    direction: CallDirection = Query(default=CallDirection.ALL),
) -> DailySummary:
    return await service.get_daily_summary(day, direction)


@router.get("/weekly-summary", response_model=WeeklySummary)
async def weekly_summary(
    service: Annotated[SummaryService, Depends(get_summary_service)],
    start: date | None = Query(default=None),
    direction: CallDirection = Query(default=CallDirection.ALL),
) -> WeeklySummary:
    return await service.get_weekly_summary(start, direction)


@router.get("/monthly-summary", response_model=MonthlySummary)
async def monthly_summary(
    service: Annotated[SummaryService, Depends(get_summary_service)],
    year: int = Query(ge=2000, le=2100),
    month: int = Query(ge=1, le=12),
) -> MonthlySummary:
    return await service.get_monthly_summary(year, month)
