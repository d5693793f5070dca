"""
Tests for the reservation status workflow.
"""

from types import SimpleNamespace

import pytest

from spacebroker.domain.reservations.state_machine import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    TRANSITIONS,
    ReservationStatus,
    can_transition,
    transition,
)
from spacebroker.errors import InvalidTransition

S = ReservationStatus


class TestTransitions:
    def test_happy_path(self):
        reservation = SimpleNamespace(id=1, status="pending")
        for target in (
            S.PAID_DEPOSIT_ESCROW,
            S.APPOINTMENT_SCHEDULED,
            S.VISIT_COMPLETED,
            S.CONFIRMED,
            S.CONTRACT_SIGNED,
            S.COMPLETED,
        ):
            transition(reservation, target)
        assert reservation.status == "completed"

    def test_transition_returns_previous_status(self):
        reservation = SimpleNamespace(id=1, status="pending")
        assert transition(reservation, S.PAID_DEPOSIT_ESCROW) == S.PENDING
        assert reservation.status == "PAID_DEPOSIT_ESCROW"

    def test_illegal_move_leaves_status_untouched(self):
        reservation = SimpleNamespace(id=1, status="pending")
        with pytest.raises(InvalidTransition):
            transition(reservation, S.CONTRACT_SIGNED)
        assert reservation.status == "pending"

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidTransition):
            transition(SimpleNamespace(id=1, status="archived"), S.CANCELLED)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_are_absorbing(self, status):
        assert all(not can_transition(status, target) for target in ReservationStatus)

    def test_terminal_states(self):
        assert TERMINAL_STATES == {S.COMPLETED, S.CANCELLED, S.REFUNDED}

    @pytest.mark.parametrize(
        "status",
        [S.PAID_DEPOSIT_ESCROW, S.APPOINTMENT_SCHEDULED, S.VISIT_COMPLETED, S.CONFIRMED],
    )
    def test_refund_reachable_before_signature(self, status):
        assert can_transition(status, S.REFUNDED)

    def test_no_refund_after_signature(self):
        assert not can_transition(S.CONTRACT_SIGNED, S.REFUNDED)
        assert not can_transition(S.CONTRACT_SIGNED, S.CANCELLED)

    def test_cancellable_states_can_cancel(self):
        for status in CANCELLABLE_STATES:
            assert can_transition(status, S.CANCELLED)

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(ReservationStatus)
