"""Tests for the execution state reducer (pure, no DB)."""

from voicedash.executions.events import CallEvent, DtmfAction, EventKind
from voicedash.executions.reducer import ExecutionState, reduce


def _status(seq: int, status: str, occurred_at: int, **kw: str) -> CallEvent:
    return CallEvent(
        execution_id="FN1",
        kind=EventKind.STATUS,
        status=status,
        occurred_at=occurred_at,
        sequence=seq,
        **kw,
    )


def _dtmf(seq: int, digits: str, occurred_at: int, action: DtmfAction | None) -> CallEvent:
    return CallEvent(
        execution_id="FN1",
        kind=EventKind.DTMF,
        digits=digits,
        action=action,
        occurred_at=occurred_at,
        sequence=seq,
    )


class TestReduce:
    def test_empty_input_yields_bare_state(self) -> None:
        state = reduce([], execution_id="FN404")
        assert state == ExecutionState(execution_id="FN404")
        assert state.is_empty
        assert state.status is None
        assert state.dtmf_actions == ()

    def test_idempotent(self) -> None:
        events = [
            _status(1, "initiated", 1_000, to_number="+1555"),
            _dtmf(2, "1", 2_000, DtmfAction.CONFIRM_APPOINTMENT),
            _status(3, "completed", 3_000),
        ]
        first = reduce(events)
        second = reduce(events)
        assert first == second
        assert first.model_dump() == second.model_dump()

    def test_last_status_by_sequence_not_timestamp(self) -> None:
        # "completed" carries an older source timestamp but arrived later
        events = [
            _status(1, "ringing", 5_000),
            _status(2, "completed", 1_000),
        ]
        state = reduce(events)
        assert state.status == "completed"
        assert state.created_at == 5_000
        assert state.last_activity == 5_000

    def test_sorts_by_sequence_when_present(self) -> None:
        events = [
            _status(3, "completed", 3_000),
            _status(1, "initiated", 1_000),
            _status(2, "in-progress", 2_000),
        ]
        state = reduce(events)
        assert [e.sequence for e in state.events] == [1, 2, 3]
        assert state.status == "completed"
        assert state.created_at == 1_000

    def test_duplicate_dtmf_retained(self) -> None:
        events = [
            _dtmf(1, "1", 1_000, DtmfAction.CONFIRM_APPOINTMENT),
            _dtmf(2, "1", 1_000, DtmfAction.CONFIRM_APPOINTMENT),
            _dtmf(3, "7", 1_500, None),
        ]
        state = reduce(events)
        assert [(d.digits, d.action) for d in state.dtmf_actions] == [
            ("1", DtmfAction.CONFIRM_APPOINTMENT),
            ("1", DtmfAction.CONFIRM_APPOINTMENT),
            ("7", None),
        ]
        assert state.status is None

    def test_status_event_keeps_dtmf_history(self) -> None:
        events = [
            _dtmf(1, "2", 1_000, DtmfAction.CANCEL_APPOINTMENT),
            _status(2, "completed", 2_000),
        ]
        state = reduce(events)
        assert len(state.dtmf_actions) == 1
        assert state.status == "completed"

    def test_identifiers_first_seen_win(self) -> None:
        events = [
            CallEvent(execution_id="FN1", kind=EventKind.FLOW, occurred_at=1_000, sequence=1),
            _status(2, "ringing", 2_000, to_number="+1555", call_id="CA1"),
            _status(3, "completed", 3_000, to_number="+1999", call_id="CA2"),
        ]
        state = reduce(events)
        assert state.to_number == "+1555"
        assert state.call_id == "CA1"
        assert state.execution_id == "FN1"
        assert len(state.events) == 3

    def test_unsequenced_input_keeps_caller_order(self) -> None:
        events = [
            CallEvent(execution_id="FN1", kind=EventKind.STATUS, status="completed", occurred_at=2_000),
            CallEvent(execution_id="FN1", kind=EventKind.STATUS, status="ringing", occurred_at=1_000),
        ]
        state = reduce(events)
        assert state.status == "ringing"
        assert state.created_at == 2_000
        assert state.last_activity == 2_000
