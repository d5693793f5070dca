"""
Reservation status workflow

The set of statuses and the allowed moves between them is closed. Every
status change goes through ``transition`` so an illegal move is rejected in
one place rather than per endpoint.
"""

import logging
from enum import Enum

from ...errors import InvalidTransition

logger = logging.getLogger(__name__)


class ReservationStatus(str, Enum):
    PENDING = "pending"
    PAID_DEPOSIT_ESCROW = "PAID_DEPOSIT_ESCROW"
    APPOINTMENT_SCHEDULED = "appointment_scheduled"
    VISIT_COMPLETED = "visit_completed"
    CONFIRMED = "confirmed"
    CONTRACT_SIGNED = "contract_signed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


S = ReservationStatus

TRANSITIONS: dict[ReservationStatus, frozenset] = {
    S.PENDING: frozenset({S.PAID_DEPOSIT_ESCROW, S.CANCELLED}),
    S.PAID_DEPOSIT_ESCROW: frozenset({S.APPOINTMENT_SCHEDULED, S.CONFIRMED, S.REFUNDED}),
    # Back to escrow when the visit is rejected or a reschedule is declined
    S.APPOINTMENT_SCHEDULED: frozenset({S.VISIT_COMPLETED, S.PAID_DEPOSIT_ESCROW, S.REFUNDED}),
    S.VISIT_COMPLETED: frozenset({S.CONFIRMED, S.REFUNDED}),
    S.CONFIRMED: frozenset({S.CONTRACT_SIGNED, S.CANCELLED, S.REFUNDED}),
    S.CONTRACT_SIGNED: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.REFUNDED: frozenset(),
}

# Deposit is held and no signature can exist yet
ESCROW_STATES = frozenset({S.PAID_DEPOSIT_ESCROW, S.APPOINTMENT_SCHEDULED, S.VISIT_COMPLETED})
PRE_SIGNATURE_STATES = frozenset({S.PENDING, S.CONFIRMED}) | ESCROW_STATES
# Balance payment is accepted once the deposit is held and no visit is pending
BALANCE_PAYABLE_STATES = frozenset({S.PAID_DEPOSIT_ESCROW, S.VISIT_COMPLETED})
CANCELLABLE_STATES = frozenset({S.PENDING, S.CONFIRMED})
TERMINAL_STATES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)


def status_of(reservation) -> ReservationStatus:
    try:
        return ReservationStatus(reservation.status)
    except ValueError as e:
        raise InvalidTransition(f"Unknown reservation status '{reservation.status}'") from e


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(reservation, target: ReservationStatus) -> ReservationStatus:
    """
    Apply ``target`` to the reservation if the table allows it.

    Only mutates the in-memory row; the caller's unit of work persists it
    together with whatever rows accompany the change.

    Raises:
        InvalidTransition: If the move is not in the transition table
    """
    current = status_of(reservation)
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Reservation cannot move from '{current.value}' to '{target.value}'"
        )
    reservation.status = target.value
    logger.info(f"🔁 Reservation {reservation.id}: {current.value} → {target.value}")
    return current
