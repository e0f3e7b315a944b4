"""
Telephony provider interface definition.

The dashboard only reads from the provider: call-detail records for a time
window, split by direction. Placing calls is handled elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CallDirection(str, Enum):
    """Direction filter for summaries."""

    ALL = "all"
    INBOUND = "inbound"
    OUTBOUND = "outbound"


@dataclass(frozen=True)
class CallWindow:
    """Inclusive provider query window, timezone-aware."""

    start: datetime
    end: datetime


@dataclass(frozen=True)
class CallRecord:
    """One call-detail record as returned by the provider."""

    sid: str
    from_number: str | None
    to_number: str | None
    status: str
    duration: int
    start_time: datetime | None
    end_time: datetime | None
    direction: str
    parent_call_sid: str | None = None

    @property
    def is_inbound(self) -> bool:
        return self.direction == CallDirection.INBOUND.value

    @property
    def is_outbound(self) -> bool:
        return CallDirection.OUTBOUND.value in self.direction


class CallRecordProvider(ABC):
    """Abstract source of call-detail records.

    Implementations raise ``ProviderUnavailableError`` on any transport or
    provider failure. Callers do not retry.
    """

    @abstractmethod
    async def list_call_records(
        self,
        window: CallWindow,
        direction: CallDirection = CallDirection.ALL,
    ) -> list[CallRecord]:
        """Return the records that started inside ``window``.

        Args:
            window: Start-time window to query.
            direction: Restrict the result to one side.

        Returns:
            Call-detail records, unordered.
        """
