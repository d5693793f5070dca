"""Escrow payment service - deposit, balance, refund and escrow release"""

import logging
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CURRENCY
from ...database import unit_of_work
from ...errors import NotFoundError, PermissionDenied, RefundDenied, StateConflict
from ...models import User
from ...models_contract import Contract
from ...models_reservation import Payment, Reservation
from ...services import notification_service as events
from ...services.audit import log_audit
from ...services.notification_service import NotificationDispatcher
from ...shared.client_info import ClientInfo
from ...shared.validators import sanitize_text, utcnow
from ..contracts.repository import ContractRepository
from ..contracts.service import ContractService
from ..reservations.repository import ReservationRepository
from ..reservations.state_machine import (
    BALANCE_PAYABLE_STATES,
    ReservationStatus,
    can_transition,
    status_of,
    transition,
)
from .repository import PaymentRepository

logger = logging.getLogger(__name__)


def _transaction_reference(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(8).upper()}"


def contract_has_signature(contract: Optional[Contract]) -> bool:
    return bool(contract and (contract.requester_signed or contract.owner_signed))


class EscrowPaymentService:
    """Service layer for escrow ledger movements"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.repo = PaymentRepository()
        self.reservations = ReservationRepository()
        self.contracts = ContractRepository()
        self.contract_service = ContractService(db)
        self.notifier = notifier or NotificationDispatcher(db)

    def _get_requester_reservation(self, user: User, reservation_id: int) -> Reservation:
        reservation = self.reservations.get_reservation(self.db, reservation_id)
        if not reservation or user.id not in (reservation.requester_id, reservation.owner_id):
            raise NotFoundError("Reservation not found")
        if reservation.requester_id != user.id:
            raise PermissionDenied("Only the requester can pay or refund this reservation")
        return reservation

    def get_payments(self, user: User) -> list[Payment]:
        return self.repo.get_payments_for_user(self.db, user.id)

    # ============================================================================
    # LEDGER PRIMITIVES (run inside the caller's unit of work)
    # ============================================================================

    def record_deposit(self, reservation: Reservation, method: str) -> Payment:
        """Held deposit, created in the same unit as the reservation"""
        return self.repo.create_payment(
            self.db,
            reservation_id=reservation.id,
            payer_id=reservation.requester_id,
            amount=reservation.deposit_amount,
            payment_type="deposit",
            escrow_status="held",
            method=method,
            status="completed",
            transaction_reference=_transaction_reference("DEP"),
        )

    def return_held_escrow(self, reservation: Reservation) -> list[Payment]:
        """Write a negative refund entry for every held payment and mark it refunded"""
        refunds = []
        for payment in self.repo.get_held_payments(self.db, reservation.id):
            payment.escrow_status = "refunded"
            refunds.append(
                self.repo.create_payment(
                    self.db,
                    reservation_id=reservation.id,
                    contract_id=payment.contract_id,
                    payer_id=payment.payer_id,
                    refunded_payment_id=payment.id,
                    amount=-payment.amount,
                    payment_type="refund",
                    escrow_status="refunded",
                    method=payment.method,
                    status="completed",
                    transaction_reference=_transaction_reference("REF"),
                )
            )
        return refunds

    def release_held_escrow(self, reservation: Reservation) -> int:
        held = self.repo.get_held_payments(self.db, reservation.id)
        for payment in held:
            payment.escrow_status = "released"
        return len(held)

    # ============================================================================
    # BALANCE PAYMENT
    # ============================================================================

    def record_remaining(
        self, user: User, reservation_id: int, method: str, client: Optional[ClientInfo] = None
    ) -> tuple[Payment, Contract]:
        """
        Pay the remaining balance and issue the contract in one transaction.

        A paid balance without a contract is never observable: if issuance
        fails, the payment is rolled back with it.
        """
        reservation = self._get_requester_reservation(user, reservation_id)

        status = status_of(reservation)
        if status not in BALANCE_PAYABLE_STATES:
            raise StateConflict(
                f"Balance cannot be paid while reservation is '{status.value}'",
                code="balance_not_payable",
            )

        deposit = self.repo.get_held_deposit(self.db, reservation.id)
        if not deposit:
            raise StateConflict("No deposit held in escrow for this reservation", code="deposit_not_held")

        # Checked again at issuance; failing here leaves an audit entry behind
        self.contract_service.require_party_identities(reservation, actor_id=user.id, client=client)

        with unit_of_work(self.db):
            payment = self.repo.create_payment(
                self.db,
                reservation_id=reservation.id,
                payer_id=user.id,
                amount=reservation.remaining_amount,
                payment_type="remaining",
                escrow_status="held",
                method=method,
                status="completed",
                transaction_reference=_transaction_reference("BAL"),
            )
            transition(reservation, ReservationStatus.CONFIRMED)
            contract = self.contract_service.issue_contract(reservation)
            payment.contract_id = contract.id
            deposit.contract_id = contract.id
            log_audit(
                self.db,
                user.id,
                "balance_paid",
                "reservation",
                reservation.id,
                old_data={"status": status.value},
                new_data={
                    "status": reservation.status,
                    "payment_id": payment.id,
                    "contract_number": contract.contract_number,
                },
                client=client,
            )

        logger.info(
            f"💰 Balance {payment.amount} paid for reservation {reservation.id}, "
            f"contract {contract.contract_number} created"
        )

        self.notifier.notify(
            events.BALANCE_PAID,
            reservation.owner_id,
            {"reservation_id": reservation.id, "amount": payment.amount, "currency": CURRENCY},
        )
        for party_id in (reservation.requester_id, reservation.owner_id):
            self.notifier.notify(
                events.CONTRACT_CREATED,
                party_id,
                {"contract_id": contract.id, "contract_number": contract.contract_number},
            )
        return payment, contract

    # ============================================================================
    # REFUND
    # ============================================================================

    def record_refund(
        self,
        user: User,
        reservation_id: int,
        reason: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> list[Payment]:
        """
        Return every held payment to the requester.

        Raises:
            RefundDenied: If either party signed the contract, or the
                reservation is past the point where a refund is possible
        """
        reservation = self._get_requester_reservation(user, reservation_id)

        contract = self.contracts.get_contract_by_reservation(self.db, reservation.id)
        if contract_has_signature(contract):
            logger.warning(f"⚠️ Refund denied for reservation {reservation.id}: contract signed")
            raise RefundDenied("Refund denied: contract already signed")

        status = status_of(reservation)
        if not can_transition(status, ReservationStatus.REFUNDED):
            raise RefundDenied(f"Refund is not available for a reservation in status '{status.value}'")

        if not self.repo.get_held_deposit(self.db, reservation.id):
            raise StateConflict("No deposit held in escrow for this reservation", code="deposit_not_held")

        with unit_of_work(self.db):
            refunds = self.return_held_escrow(reservation)
            if contract:
                contract.status = "cancelled"
            transition(reservation, ReservationStatus.REFUNDED)
            reservation.refunded_at = utcnow()
            reservation.refund_reason = sanitize_text(reason)
            log_audit(
                self.db,
                user.id,
                "refund_processed",
                "reservation",
                reservation.id,
                old_data={"status": status.value},
                new_data={"status": reservation.status, "refund_payment_ids": [r.id for r in refunds]},
                client=client,
            )

        total_refunded = -sum(r.amount for r in refunds)
        logger.info(f"💸 Refunded {total_refunded} on reservation {reservation.id}")

        for party_id in (reservation.requester_id, reservation.owner_id):
            self.notifier.notify(
                events.REFUND_PROCESSED,
                party_id,
                {"reservation_id": reservation.id, "amount": total_refunded, "currency": CURRENCY},
            )
        return refunds
