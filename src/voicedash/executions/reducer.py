"""
Execution state reducer.

Folds the stored events of one execution into its derived state. The fold
is pure: the same event sequence always yields an equal ``ExecutionState``.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from voicedash.executions.events import CallEvent, DtmfAction, EventKind


class DtmfEntry(BaseModel):
    """One keypad press as it appears in an execution's history."""

    model_config = ConfigDict(frozen=True)

    digits: str | None
    action: DtmfAction | None
    occurred_at: int


class ExecutionState(BaseModel):
    """Derived, recomputable view of one call execution."""

    model_config = ConfigDict(frozen=True)

    execution_id: str
    call_id: str | None = None
    to_number: str | None = None
    from_number: str | None = None
    status: str | None = None
    dtmf_actions: tuple[DtmfEntry, ...] = Field(default_factory=tuple)
    events: tuple[CallEvent, ...] = Field(default_factory=tuple)
    created_at: int | None = None
    last_activity: int | None = None

    @property
    def is_empty(self) -> bool:
        """True when no event was ever stored for this execution."""
        return not self.events


def _storage_order(events: Iterable[CallEvent]) -> list[CallEvent]:
    ordered = list(events)
    if all(e.sequence is not None for e in ordered):
        # stable: equal sequences keep input order
        ordered.sort(key=lambda e: e.sequence)  # type: ignore[arg-type, return-value]
    return ordered


def reduce(
    events: Iterable[CallEvent],
    execution_id: str | None = None,
) -> ExecutionState:
    """Fold events into an execution state.

    Args:
        events: Events of one execution in storage order.
        execution_id: Identifier to report when ``events`` is empty.

    Returns:
        The derived execution state.
    """
    ordered = _storage_order(events)
    if not ordered:
        return ExecutionState(execution_id=execution_id or "")

    call_id: str | None = None
    to_number: str | None = None
    from_number: str | None = None
    status: str | None = None
    dtmf_actions: list[DtmfEntry] = []
    created_at: int | None = None
    last_activity: int | None = None

    for event in ordered:
        if created_at is None:
            created_at = event.occurred_at
        if last_activity is None or event.occurred_at > last_activity:
            last_activity = event.occurred_at

        # identifiers may arrive after the first event; keep the first seen
        call_id = call_id or event.call_id
        to_number = to_number or event.to_number
        from_number = from_number or event.from_number

        if event.kind is EventKind.STATUS:
            status = event.status
        elif event.kind is EventKind.DTMF:
            dtmf_actions.append(
                DtmfEntry(
                    digits=event.digits,
                    action=event.action,
                    occurred_at=event.occurred_at,
                )
            )

    return ExecutionState(
        execution_id=execution_id or ordered[0].execution_id,
        call_id=call_id,
        to_number=to_number,
        from_number=from_number,
        status=status,
        dtmf_actions=tuple(dtmf_actions),
        events=tuple(ordered),
        created_at=created_at,
        last_activity=last_activity,
    )
