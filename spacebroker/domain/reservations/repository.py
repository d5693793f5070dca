"""Reservation repository - Database operations for reservations"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Listing
from ...models_contract import Contract
from ...models_reservation import Reservation


class ReservationRepository:
    """Repository for reservation database operations"""

    @staticmethod
    def get_listing(db: Session, listing_id: int) -> Optional[Listing]:
        return db.query(Listing).filter(Listing.id == listing_id).first()

    @staticmethod
    def get_reservation(db: Session, reservation_id: int) -> Optional[Reservation]:
        return db.query(Reservation).filter(Reservation.id == reservation_id).first()

    @staticmethod
    def get_reservations(
        db: Session,
        user_id: int,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[Reservation]:
        """Reservations where the user is the requester and/or the owner"""
        query = db.query(Reservation)
        if role == "requester":
            query = query.filter(Reservation.requester_id == user_id)
        elif role == "owner":
            query = query.filter(Reservation.owner_id == user_id)
        else:
            query = query.filter(
                or_(Reservation.requester_id == user_id, Reservation.owner_id == user_id)
            )

        if status:
            query = query.filter(Reservation.status == status)

        return query.order_by(Reservation.created_at.desc(), Reservation.id.desc()).all()

    @staticmethod
    def create_reservation(db: Session, **reservation_data) -> Reservation:
        """Stage a new reservation; the caller's unit of work commits it"""
        reservation = Reservation(**reservation_data)
        db.add(reservation)
        db.flush()
        return reservation

    @staticmethod
    def get_contract_for_reservation(db: Session, reservation_id: int) -> Optional[Contract]:
        return db.query(Contract).filter(Contract.reservation_id == reservation_id).first()
