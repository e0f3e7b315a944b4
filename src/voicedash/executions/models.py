"""
SQLAlchemy model for stored webhook events.
"""

from typing import Any

from sqlalchemy import JSON, BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from voicedash.executions.events import CallEvent, DtmfAction, EventKind
from voicedash.shared.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
SequenceType = BigInteger().with_variant(Integer(), "sqlite")


class EventRecord(Base):
    """Append-only row for one webhook event.

    The primary key doubles as the store-assigned sequence number.
    """

    __tablename__ = "event_history"

    id: Mapped[int] = mapped_column(SequenceType, primary_key=True, autoincrement=True)
    # payload-supplied values (SIP or client: addresses, long digit strings)
    # are stored unbounded
    execution_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    call_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    to_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(Text, nullable=True)
    dtmf_digits: Mapped[str | None] = mapped_column(Text, nullable=True)
    action: Mapped[str | None] = mapped_column(String(64), nullable=True)
    occurred_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    raw: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # server receive time, epoch ms; windows for rollups filter on this
    received_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    @classmethod
    def from_event(cls, event: CallEvent, received_at: int) -> "EventRecord":
        return cls(
            execution_id=event.execution_id,
            call_id=event.call_id,
            kind=event.kind.value,
            to_number=event.to_number,
            from_number=event.from_number,
            status=event.status,
            dtmf_digits=event.digits,
            action=event.action.value if event.action is not None else None,
            occurred_at=event.occurred_at,
            raw=dict(event.raw),
            received_at=received_at,
        )

    def to_event(self) -> CallEvent:
        return CallEvent(
            execution_id=self.execution_id,
            kind=EventKind(self.kind),
            call_id=self.call_id,
            to_number=self.to_number,
            from_number=self.from_number,
            status=self.status,
            digits=self.dtmf_digits,
            action=DtmfAction(self.action) if self.action else None,
            occurred_at=self.occurred_at,
            raw=dict(self.raw or {}),
            sequence=self.id,
        )
