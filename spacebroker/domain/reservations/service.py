"""Reservation service - Business logic for the reservation ledger"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CURRENCY
from ...database import unit_of_work
from ...errors import CapacityError, NotFoundError, PermissionDenied, RefundDenied, ValidationError
from ...models import User
from ...models_reservation import Reservation
from ...services import notification_service as events
from ...services.audit import log_audit
from ...services.notification_service import NotificationDispatcher
from ...services.platform_config import get_rate_percentages
from ...shared.client_info import ClientInfo
from ...shared.validators import sanitize_text, utcnow
from ..payments.service import EscrowPaymentService, contract_has_signature
from .pricing import calculate_pricing, to_decimal, unit_price_for
from .repository import ReservationRepository
from .schemas import ReservationCreate
from .snapshot import build_snapshot, check_frozen_integrity, decode_snapshot
from .state_machine import CANCELLABLE_STATES, ReservationStatus, status_of, transition

logger = logging.getLogger(__name__)


class ReservationService:
    """Service layer for reservation business logic"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.repo = ReservationRepository()
        self.notifier = notifier or NotificationDispatcher(db)
        self.payments = EscrowPaymentService(db, self.notifier)

    def get_reservations(
        self, user: User, role: Optional[str] = None, status: Optional[str] = None
    ) -> list[Reservation]:
        return self.repo.get_reservations(self.db, user.id, role, status)

    def get_reservation(self, reservation_id: int, user: User) -> Reservation:
        """Get a reservation the user is a party to"""
        reservation = self.repo.get_reservation(self.db, reservation_id)
        if not reservation or user.id not in (reservation.requester_id, reservation.owner_id):
            raise NotFoundError("Reservation not found")
        return reservation

    def get_frozen_snapshot(self, reservation_id: int, user: User) -> dict:
        reservation = self.get_reservation(reservation_id, user)
        return {
            "reservation_id": reservation.id,
            "snapshot": decode_snapshot(reservation),
            "integrity": check_frozen_integrity(reservation),
        }

    def create_reservation(
        self, requester: User, data: ReservationCreate, client: Optional[ClientInfo] = None
    ) -> Reservation:
        """
        Reserve capacity on a listing and pay the deposit.

        The snapshot, the financial breakdown, the reservation row and the
        held deposit payment are all committed together.
        """
        logger.info(
            f"📝 Creating reservation for user_id: {requester.id}, listing_id: {data.listing_id}"
        )

        listing = self.repo.get_listing(self.db, data.listing_id)
        if not listing or listing.status != "published":
            raise NotFoundError("Listing not found")
        if listing.owner_id == requester.id:
            raise ValidationError("You cannot reserve your own listing", code="own_listing")

        quantity = to_decimal(data.requested_quantity)
        available = to_decimal(listing.available_capacity or 0)
        if quantity > available:
            raise CapacityError(f"Requested quantity {quantity} exceeds available capacity {available}")

        snapshot = build_snapshot(listing, client)
        unit_price = unit_price_for(snapshot.pricing, data.period_type)
        rates = get_rate_percentages(self.db)
        pricing = calculate_pricing(unit_price, quantity, data.period_count, rates)
        snapshot = snapshot.with_rates(rates, unit_price)

        with unit_of_work(self.db):
            reservation = self.repo.create_reservation(
                self.db,
                requester_id=requester.id,
                owner_id=listing.owner_id,
                listing_id=listing.id,
                requested_quantity=quantity,
                period_type=data.period_type.value,
                period_count=data.period_count,
                total_amount=pricing.total,
                deposit_amount=pricing.deposit,
                remaining_amount=pricing.remaining,
                deposit_percentage=rates.deposit_percentage,
                commission_percentage=rates.commission_percentage,
                commission_amount=pricing.commission,
                host_payout_amount=pricing.host_payout,
                status=ReservationStatus.PENDING.value,
                **snapshot.to_columns(),
            )
            deposit = self.payments.record_deposit(reservation, data.payment_method)
            transition(reservation, ReservationStatus.PAID_DEPOSIT_ESCROW)
            log_audit(
                self.db,
                requester.id,
                "reservation_created",
                "reservation",
                reservation.id,
                new_data={
                    "listing_id": listing.id,
                    "total_amount": pricing.total,
                    "deposit_amount": pricing.deposit,
                    "deposit_payment_id": deposit.id,
                },
                client=client,
            )

        logger.info(
            f"✅ Reservation {reservation.id} created: total={pricing.total}, deposit={pricing.deposit} held"
        )

        payload = {
            "reservation_id": reservation.id,
            "listing_title": listing.title,
            "deposit_amount": pricing.deposit,
            "currency": CURRENCY,
        }
        self.notifier.notify(events.DEPOSIT_PAID, reservation.requester_id, payload)
        self.notifier.notify(events.DEPOSIT_PAID, reservation.owner_id, payload)
        return reservation

    def cancel_reservation(
        self,
        reservation_id: int,
        user: User,
        reason: Optional[str] = None,
        client: Optional[ClientInfo] = None,
    ) -> Reservation:
        """
        Cancel an early-stage reservation.

        From ``confirmed`` the unsigned contract is cancelled and held escrow
        is returned in the same transaction; once either party has signed the
        request is denied like a refund.
        """
        reservation = self.get_reservation(reservation_id, user)
        if reservation.requester_id != user.id:
            raise PermissionDenied("Only the requester can cancel this reservation")

        contract = self.repo.get_contract_for_reservation(self.db, reservation.id)
        if contract_has_signature(contract):
            raise RefundDenied("Cancellation denied: contract already signed")

        status = status_of(reservation)
        if status not in CANCELLABLE_STATES:
            raise RefundDenied(
                f"Reservation in status '{status.value}' cannot be cancelled; request a refund instead"
            )

        with unit_of_work(self.db):
            refunds = self.payments.return_held_escrow(reservation)
            if contract:
                contract.status = "cancelled"
            transition(reservation, ReservationStatus.CANCELLED)
            reservation.cancelled_at = utcnow()
            reservation.refund_reason = sanitize_text(reason)
            log_audit(
                self.db,
                user.id,
                "reservation_cancelled",
                "reservation",
                reservation.id,
                old_data={"status": status.value},
                new_data={"status": reservation.status, "refund_payment_ids": [r.id for r in refunds]},
                client=client,
            )

        logger.info(f"🚫 Reservation {reservation.id} cancelled from {status.value}")
        self.notifier.notify(
            events.RESERVATION_CANCELLED, reservation.owner_id, {"reservation_id": reservation.id}
        )
        return reservation
