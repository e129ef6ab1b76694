"""Tests for the reservation saga state machine."""

import pytest

from barberbook.reservation.saga import (
    InvalidTransitionError,
    ReservationSaga,
    ReservationState,
    SagaTrigger,
)


@pytest.fixture
def saga():
    return ReservationSaga(label="acme/2025-03-01/09:00")


def _advance(saga: ReservationSaga, *triggers: SagaTrigger) -> None:
    for trigger in triggers:
        saga.transition(trigger)


class TestInitialState:
    def test_starts_requested(self, saga):
        assert saga.current_state == ReservationState.REQUESTED

    def test_initial_history_has_one_entry(self, saga):
        assert len(saga.get_history()) == 1

    def test_not_terminal_at_start(self, saga):
        assert not saga.is_terminal()

    def test_valid_triggers_from_start(self, saga):
        assert set(saga.get_valid_triggers()) == {
            SagaTrigger.SCHEDULE_OK,
            SagaTrigger.SCHEDULE_VIOLATION,
        }


class TestHappyPath:
    def test_reaches_booked(self, saga):
        _advance(
            saga,
            SagaTrigger.SCHEDULE_OK,
            SagaTrigger.HOLD_CREATED,
            SagaTrigger.RECHECK_PASSED,
            SagaTrigger.BOOKING_CREATED,
        )
        assert saga.current_state == ReservationState.BOOKED
        assert saga.is_terminal()
        assert saga.get_state_trace() == [
            "requested", "checking", "hold_pending", "booking_attempted", "booked",
        ]

    def test_history_records_trigger_and_note(self, saga):
        saga.transition(SagaTrigger.SCHEDULE_OK)
        saga.transition(SagaTrigger.HOLD_CREATED, note="hold-1")
        entry = saga.get_history()[-1]
        assert entry.trigger == SagaTrigger.HOLD_CREATED
        assert entry.note == "hold-1"
        assert entry.entered_at >= saga.get_history()[0].entered_at


class TestRejections:
    def test_schedule_violation_rejects(self, saga):
        saga.transition(SagaTrigger.SCHEDULE_VIOLATION)
        assert saga.current_state == ReservationState.REJECTED
        assert saga.is_terminal()

    def test_slot_taken_rejects(self, saga):
        _advance(saga, SagaTrigger.SCHEDULE_OK, SagaTrigger.SLOT_TAKEN)
        assert saga.current_state == ReservationState.REJECTED

    def test_hold_failure_rejects(self, saga):
        _advance(saga, SagaTrigger.SCHEDULE_OK, SagaTrigger.HOLD_FAILED)
        assert saga.current_state == ReservationState.REJECTED


class TestCompensation:
    def test_lost_recheck_compensates(self, saga):
        _advance(saga, SagaTrigger.SCHEDULE_OK, SagaTrigger.HOLD_CREATED, SagaTrigger.RECHECK_LOST)
        assert saga.current_state == ReservationState.COMPENSATING
        saga.transition(SagaTrigger.COMPENSATED)
        assert saga.current_state == ReservationState.ROLLED_BACK

    def test_booking_failure_then_rollback(self, saga):
        _advance(
            saga,
            SagaTrigger.SCHEDULE_OK,
            SagaTrigger.HOLD_CREATED,
            SagaTrigger.RECHECK_PASSED,
            SagaTrigger.BOOKING_FAILED,
            SagaTrigger.COMPENSATED,
        )
        assert saga.get_state_trace()[-2:] == ["compensating", "rolled_back"]

    def test_flip_failure_can_exhaust_cleanup(self, saga):
        _advance(
            saga,
            SagaTrigger.SCHEDULE_OK,
            SagaTrigger.HOLD_CREATED,
            SagaTrigger.RECHECK_PASSED,
            SagaTrigger.FLIP_FAILED,
            SagaTrigger.COMPENSATION_EXHAUSTED,
        )
        assert saga.current_state == ReservationState.CLEANUP_FAILED
        assert saga.is_terminal()


class TestInvalidTransitions:
    def test_cannot_book_without_hold(self, saga):
        saga.transition(SagaTrigger.SCHEDULE_OK)
        with pytest.raises(InvalidTransitionError):
            saga.transition(SagaTrigger.BOOKING_CREATED)

    def test_terminal_state_accepts_nothing(self, saga):
        saga.transition(SagaTrigger.SCHEDULE_VIOLATION)
        assert saga.get_valid_triggers() == []
        with pytest.raises(InvalidTransitionError, match="rejected"):
            saga.transition(SagaTrigger.SCHEDULE_OK)

    def test_invalid_transition_leaves_history_unchanged(self, saga):
        with pytest.raises(InvalidTransitionError):
            saga.transition(SagaTrigger.COMPENSATED)
        assert saga.get_state_trace() == ["requested"]
