"""Payment repository - Database operations for the escrow ledger"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_reservation import Payment, Reservation


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def create_payment(db: Session, **payment_data) -> Payment:
        """Stage a payment; the caller's unit of work commits it"""
        payment = Payment(**payment_data)
        db.add(payment)
        db.flush()
        return payment

    @staticmethod
    def get_held_payments(db: Session, reservation_id: int) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.reservation_id == reservation_id, Payment.escrow_status == "held")
            .order_by(Payment.id)
            .all()
        )

    @staticmethod
    def get_held_deposit(db: Session, reservation_id: int) -> Optional[Payment]:
        return (
            db.query(Payment)
            .filter(
                Payment.reservation_id == reservation_id,
                Payment.payment_type == "deposit",
                Payment.status == "completed",
                Payment.escrow_status == "held",
            )
            .first()
        )

    @staticmethod
    def get_payments_for_reservation(db: Session, reservation_id: int) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(Payment.reservation_id == reservation_id)
            .order_by(Payment.id)
            .all()
        )

    @staticmethod
    def get_payments_for_user(db: Session, user_id: int) -> list[Payment]:
        """Payments on every reservation the user is a party to"""
        return (
            db.query(Payment)
            .join(Reservation, Payment.reservation_id == Reservation.id)
            .filter(or_(Reservation.requester_id == user_id, Reservation.owner_id == user_id))
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )
