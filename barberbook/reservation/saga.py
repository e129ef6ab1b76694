"""
Finite state machine recording the steps of one reservation attempt.

A reservation is a saga without a single atomic commit: hold the slot,
create the booking, flip the hold to booked, or compensate by removing
the hold. Each attempt walks an explicit transition table so the step log
is deterministic and every rollback path is visible in the history.

Usage:
    saga = ReservationSaga()
    saga.transition(SagaTrigger.SCHEDULE_OK)
    assert saga.current_state == ReservationState.CHECKING
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ReservationState(str, Enum):
    """All possible states of a reservation attempt."""
    REQUESTED = "requested"
    CHECKING = "checking"
    HOLD_PENDING = "hold_pending"
    BOOKING_ATTEMPTED = "booking_attempted"
    BOOKED = "booked"
    COMPENSATING = "compensating"
    ROLLED_BACK = "rolled_back"
    CLEANUP_FAILED = "cleanup_failed"
    REJECTED = "rejected"


class SagaTrigger(str, Enum):
    """Events that move a reservation attempt forward."""
    SCHEDULE_OK = "schedule_ok"
    SCHEDULE_VIOLATION = "schedule_violation"
    SLOT_TAKEN = "slot_taken"
    HOLD_CREATED = "hold_created"
    HOLD_FAILED = "hold_failed"
    RECHECK_PASSED = "recheck_passed"
    RECHECK_LOST = "recheck_lost"
    BOOKING_CREATED = "booking_created"
    BOOKING_FAILED = "booking_failed"
    FLIP_FAILED = "flip_failed"
    COMPENSATED = "compensated"
    COMPENSATION_EXHAUSTED = "compensation_exhausted"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: ReservationState
    to_state: ReservationState
    trigger: SagaTrigger


@dataclass
class StepEntry:
    """Recorded history entry for a saga step."""
    state: ReservationState
    entered_at: datetime
    trigger: Optional[SagaTrigger] = None
    note: Optional[str] = None


class InvalidTransitionError(Exception):
    """Raised when a trigger is not valid from the current state."""


TERMINAL_STATES = frozenset({
    ReservationState.BOOKED,
    ReservationState.ROLLED_BACK,
    ReservationState.CLEANUP_FAILED,
    ReservationState.REJECTED,
})


class ReservationSaga:
    """Step log for one reserve (or reschedule) attempt."""

    TRANSITIONS: list[Transition] = [
        # --- Pre-checks ---
        Transition(ReservationState.REQUESTED, ReservationState.CHECKING,
                   SagaTrigger.SCHEDULE_OK),
        Transition(ReservationState.REQUESTED, ReservationState.REJECTED,
                   SagaTrigger.SCHEDULE_VIOLATION),

        # --- Availability check and hold ---
        Transition(ReservationState.CHECKING, ReservationState.REJECTED,
                   SagaTrigger.SLOT_TAKEN),
        Transition(ReservationState.CHECKING, ReservationState.REJECTED,
                   SagaTrigger.HOLD_FAILED),
        Transition(ReservationState.CHECKING, ReservationState.HOLD_PENDING,
                   SagaTrigger.HOLD_CREATED),

        # --- Uniqueness re-check ---
        Transition(ReservationState.HOLD_PENDING, ReservationState.BOOKING_ATTEMPTED,
                   SagaTrigger.RECHECK_PASSED),
        Transition(ReservationState.HOLD_PENDING, ReservationState.COMPENSATING,
                   SagaTrigger.RECHECK_LOST),

        # --- Booking commit ---
        Transition(ReservationState.BOOKING_ATTEMPTED, ReservationState.BOOKED,
                   SagaTrigger.BOOKING_CREATED),
        Transition(ReservationState.BOOKING_ATTEMPTED, ReservationState.COMPENSATING,
                   SagaTrigger.BOOKING_FAILED),
        Transition(ReservationState.BOOKING_ATTEMPTED, ReservationState.COMPENSATING,
                   SagaTrigger.FLIP_FAILED),

        # --- Compensation ---
        Transition(ReservationState.COMPENSATING, ReservationState.ROLLED_BACK,
                   SagaTrigger.COMPENSATED),
        Transition(ReservationState.COMPENSATING, ReservationState.CLEANUP_FAILED,
                   SagaTrigger.COMPENSATION_EXHAUSTED),
    ]

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._current_state = ReservationState.REQUESTED
        self._history: list[StepEntry] = [
            StepEntry(state=ReservationState.REQUESTED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> ReservationState:
        return self._current_state

    def transition(self, trigger: SagaTrigger, note: Optional[str] = None) -> ReservationState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StepEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                    note=note,
                ))
                logger.debug(
                    "Saga %s: %s -> %s (trigger: %s)",
                    self.label, old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[SagaTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StepEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
