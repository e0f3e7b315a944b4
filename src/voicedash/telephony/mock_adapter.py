"""
In-memory call-record provider for development and tests.
"""

import logging

from voicedash.shared.exceptions import ProviderUnavailableError
from voicedash.telephony.interface import (
    CallDirection,
    CallRecord,
    CallRecordProvider,
    CallWindow,
)

logger = logging.getLogger(__name__)


class MockCallRecordProvider(CallRecordProvider):
    """Serves preloaded records, filtered by start time and direction."""

    def __init__(self, records: list[CallRecord] | None = None) -> None:
        self._records: list[CallRecord] = list(records or [])
        self._should_fail: bool = False
        self._queries: list[tuple[CallWindow, CallDirection]] = []

    def reset(self) -> None:
        self._records.clear()
        self._queries.clear()
        self._should_fail = False

    def add(self, *records: CallRecord) -> None:
        self._records.extend(records)

    def configure_failure(self, should_fail: bool = True) -> None:
        self._should_fail = should_fail

    @property
    def queries(self) -> list[tuple[CallWindow, CallDirection]]:
        return self._queries.copy()

    async def list_call_records(
        self,
        window: CallWindow,
        direction: CallDirection = CallDirection.ALL,
    ) -> list[CallRecord]:
        self._queries.append((window, direction))
        if self._should_fail:
            raise ProviderUnavailableError("Mock provider failure")

        selected = [
            r
            for r in self._records
            if r.start_time is not None and window.start <= r.start_time <= window.end
        ]
        if direction == CallDirection.INBOUND:
            selected = [r for r in selected if r.is_inbound]
        elif direction == CallDirection.OUTBOUND:
            selected = [r for r in selected if r.is_outbound]

        logger.debug(
            "Mock call records served",
            extra={"direction": direction.value, "count": len(selected)},
        )
        return selected
