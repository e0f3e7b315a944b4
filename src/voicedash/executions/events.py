"""
Domain event model for call-execution webhooks and the payload normalizer.

Webhook payloads arrive as Twilio-style form fields (``CallSid``,
``CallStatus``, ``To``...) or as Studio flow parameters (``execution_sid``,
``digits``, ``call_hash``...). ``normalize`` turns either shape into one
immutable ``CallEvent``.
"""

import math
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from voicedash.shared.exceptions import NormalizationError


class EventKind(str, Enum):
    """Kinds of webhook events."""

    STATUS = "status"
    DTMF = "dtmf"
    FLOW = "flow"


class CallStatus(str, Enum):
    """Known call status vocabulary. Unknown values are kept verbatim."""

    INITIATED = "initiated"
    RINGING = "ringing"
    ANSWERED = "answered"
    IN_PROGRESS = "in-progress"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    FAILED = "failed"
    COMPLETED = "completed"
    CANCELED = "canceled"


class DtmfAction(str, Enum):
    """Business actions a keypad press can trigger."""

    CONFIRM_APPOINTMENT = "confirm_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    CONNECT_TO_REPRESENTATIVE = "connect_to_representative"


DTMF_ACTIONS: Mapping[str, DtmfAction] = {
    "1": DtmfAction.CONFIRM_APPOINTMENT,
    "2": DtmfAction.CANCEL_APPOINTMENT,
    "3": DtmfAction.CONNECT_TO_REPRESENTATIVE,
}

FAILED_STATUSES = frozenset(
    {CallStatus.BUSY.value, CallStatus.NO_ANSWER.value, CallStatus.FAILED.value}
)

_KNOWN_STATUSES = frozenset(s.value for s in CallStatus)


class CallEvent(BaseModel):
    """One immutable fact about a call execution.

    ``sequence`` is assigned by the event store on append and is the only
    trusted ordering key; ``occurred_at`` comes from the webhook source.
    """

    model_config = ConfigDict(frozen=True)

    execution_id: str = Field(..., min_length=1, description="Call attempt identifier")
    kind: EventKind = Field(..., description="Event classification")
    call_id: str | None = Field(default=None, description="Carrier call identifier")
    to_number: str | None = Field(default=None, description="Called number")
    from_number: str | None = Field(default=None, description="Calling number")
    status: str | None = Field(default=None, description="Call status (status events)")
    digits: str | None = Field(default=None, description="Pressed digits (dtmf events)")
    action: DtmfAction | None = Field(default=None, description="Mapped DTMF action")
    occurred_at: int = Field(..., description="Source timestamp, epoch milliseconds")
    raw: dict[str, Any] = Field(default_factory=dict, description="Webhook payload as received")
    sequence: int | None = Field(default=None, description="Store-assigned sequence")

    @property
    def is_known_status(self) -> bool:
        return self.status is not None and self.status in _KNOWN_STATUSES


def action_for_digits(digits: str | None) -> DtmfAction | None:
    """Map pressed digits to an action; unmapped digits map to None."""
    if digits is None:
        return None
    return DTMF_ACTIONS.get(digits.strip())


def _first(payload: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = payload.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _execution_id(payload: Mapping[str, Any]) -> str | None:
    execution_id = _first(payload, "execution_sid", "executionSid")
    if execution_id:
        return execution_id

    call_hash = _first(payload, "call_hash")
    if call_hash:
        prefix = call_hash.split("_", 1)[0]
        if prefix:
            return prefix

    return _first(payload, "CallSid", "call_sid")


def _parse_timestamp(value: Any) -> int | None:
    """Parse epoch seconds/milliseconds, ISO-8601 or RFC 2822 into epoch ms."""
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            parsed: datetime | None
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                try:
                    parsed = parsedate_to_datetime(text)
                except (TypeError, ValueError):
                    parsed = None
            if parsed is None:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return int(parsed.timestamp() * 1000)

    if not math.isfinite(number):
        return None

    # Heuristic: values below 10^11 are epoch seconds (year < 5138).
    if number < 100_000_000_000:
        number *= 1000
    return int(number)


def normalize(
    payload: Mapping[str, Any],
    received_at_ms: int | None = None,
) -> CallEvent:
    """Validate and canonicalize one webhook payload.

    Args:
        payload: Webhook body (form fields merged with query parameters).
        received_at_ms: Receive time used when the payload carries no
            usable timestamp. Defaults to the current time.

    Returns:
        The normalized event (without a sequence number).

    Raises:
        NormalizationError: If no execution identifier can be found.
    """
    execution_id = _execution_id(payload)
    if not execution_id:
        raise NormalizationError(
            "Missing execution identifier in webhook payload",
            details={"fields": sorted(str(k) for k in payload.keys())},
        )

    status = _first(payload, "CallStatus", "status")
    digits = _first(payload, "digits", "Digits")

    if status is not None:
        kind = EventKind.STATUS
    elif digits is not None:
        kind = EventKind.DTMF
    else:
        kind = EventKind.FLOW

    occurred_at = _parse_timestamp(payload.get("timestamp"))
    if occurred_at is None:
        occurred_at = _parse_timestamp(payload.get("Timestamp"))
    if occurred_at is None:
        occurred_at = received_at_ms if received_at_ms is not None else int(time.time() * 1000)

    return CallEvent(
        execution_id=execution_id,
        kind=kind,
        call_id=_first(payload, "CallSid", "call_sid"),
        to_number=_first(payload, "To", "to"),
        from_number=_first(payload, "From", "from"),
        status=status if kind is EventKind.STATUS else None,
        digits=digits if kind is EventKind.DTMF else None,
        action=action_for_digits(digits) if kind is EventKind.DTMF else None,
        occurred_at=occurred_at,
        raw=dict(payload),
    )
