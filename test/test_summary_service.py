"""Tests for SummaryService over the in-memory provider."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest

from voicedash.shared.exceptions import ProviderUnavailableError
from voicedash.summary.service import SummaryService
from voicedash.telephony.interface import CallDirection, CallRecord, CallRecordProvider
from voicedash.telephony.mock_adapter import MockCallRecordProvider


def _record(sid: str, direction: str, status: str, start: datetime, duration: int = 30) -> CallRecord:
    return CallRecord(
        sid=sid,
        from_number="+1000",
        to_number="+2000",
        status=status,
        duration=duration,
        start_time=start,
        end_time=None,
        direction=direction,
    )


def _at(day: int, hour: int = 10, month: int = 3) -> datetime:
    return datetime(2024, month, day, hour, 0, tzinfo=timezone.utc)


@pytest.fixture
def provider() -> MockCallRecordProvider:
    return MockCallRecordProvider(
        [
            _record("CA2", "inbound", "completed", _at(15, 14)),
            _record("CA1", "inbound", "no-answer", _at(15, 9)),
            _record("CA3", "outbound-api", "completed", _at(15, 11)),
            _record("CA4", "inbound", "completed", _at(14)),
            _record("CA5", "outbound-api", "failed", _at(1)),
            _record("CA6", "inbound", "completed", _at(29, month=2)),
        ]
    )


@pytest.fixture
def service(provider: MockCallRecordProvider) -> SummaryService:
    return SummaryService(provider, today=lambda: date(2024, 3, 15))


class TestDailySummary:
    @pytest.mark.asyncio
    async def test_defaults_to_today(self, service: SummaryService) -> None:
        summary = await service.get_daily_summary()

        assert summary.date == date(2024, 3, 15)
        assert summary.stats.inbound.total == 2
        assert summary.stats.inbound.missed == 1
        assert summary.stats.outbound.completed == 1
        assert summary.stats.overall.total_calls == 3
        assert [c.sid for c in summary.inbound_calls] == ["CA1", "CA2"]
        assert [c.sid for c in summary.outbound_calls] == ["CA3"]

    @pytest.mark.asyncio
    async def test_direction_filter_empties_other_side(
        self, service: SummaryService, provider: MockCallRecordProvider
    ) -> None:
        summary = await service.get_daily_summary(date(2024, 3, 15), CallDirection.INBOUND)

        assert summary.outbound_calls == []
        assert summary.stats.outbound.total == 0
        window, direction = provider.queries[-1]
        assert direction is CallDirection.INBOUND
        assert window.start == datetime(2024, 3, 15, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_empty_day(self, service: SummaryService) -> None:
        summary = await service.get_daily_summary(date(2024, 3, 20))
        assert summary.stats.overall.total_calls == 0
        assert summary.stats.inbound.missed_ratio == 0.0

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(
        self, service: SummaryService, provider: MockCallRecordProvider
    ) -> None:
        provider.configure_failure()
        with pytest.raises(ProviderUnavailableError):
            await service.get_daily_summary()


class TestWeeklySummary:
    @pytest.mark.asyncio
    async def test_default_week_ends_today(self, service: SummaryService) -> None:
        summary = await service.get_weekly_summary()

        assert summary.start == date(2024, 3, 9)
        assert summary.end == date(2024, 3, 15)
        assert len(summary.days) == 7
        assert summary.days[-1].stats.overall.total_calls == 3
        assert summary.days[-2].stats.overall.total_calls == 1
        assert summary.totals.overall.total_calls == 4


class TestMonthlySummary:
    @pytest.mark.asyncio
    async def test_per_day_counts(self, service: SummaryService) -> None:
        summary = await service.get_monthly_summary(2024, 3)

        assert len(summary.days) == 31
        assert summary.days[0].day == 1
        assert summary.days[0].outbound == 1
        assert summary.days[14].date == date(2024, 3, 15)
        assert summary.days[14].inbound == 2
        assert summary.days[14].outbound == 1
        assert summary.total_calls == 5
        assert summary.total_inbound == 3
        assert summary.total_outbound == 2


class TestRecordsWithoutStartTime:
    @pytest.mark.asyncio
    async def test_daily_and_monthly_agree(self) -> None:
        unstarted = CallRecord(
            sid="CA-queued",
            from_number="+1000",
            to_number="+2000",
            status="queued",
            duration=0,
            start_time=None,
            end_time=None,
            direction="outbound-api",
        )
        provider = AsyncMock(spec=CallRecordProvider)
        provider.list_call_records.return_value = [
            unstarted,
            _record("CA1", "inbound", "completed", _at(15)),
        ]
        service = SummaryService(provider, today=lambda: date(2024, 3, 15))

        daily = await service.get_daily_summary()
        monthly = await service.get_monthly_summary(2024, 3)

        assert daily.stats.overall.total_calls == 1
        assert daily.outbound_calls == []
        assert monthly.days[14].total_calls == daily.stats.overall.total_calls
