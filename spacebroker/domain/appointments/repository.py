"""Appointment repository - Database operations for visits and availability"""

from datetime import date
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ...models import ListingAvailability
from ...models_appointment import Appointment

LIVE_STATUSES = ("requested", "accepted", "rescheduled")


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_appointments(
        db: Session, user_id: int, reservation_id: Optional[int] = None
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(
            or_(Appointment.requester_id == user_id, Appointment.owner_id == user_id)
        )
        if reservation_id:
            query = query.filter(Appointment.reservation_id == reservation_id)
        return query.order_by(Appointment.scheduled_date.desc(), Appointment.id.desc()).all()

    @staticmethod
    def slot_taken(
        db: Session, listing_id: int, day: date, time_slot: str, exclude_id: Optional[int] = None
    ) -> bool:
        """A live visit holds the slot, or a pending reschedule has proposed it"""
        query = db.query(Appointment.id).filter(
            Appointment.listing_id == listing_id,
            or_(
                and_(
                    Appointment.status.in_(LIVE_STATUSES),
                    Appointment.scheduled_date == day,
                    Appointment.scheduled_time == time_slot,
                ),
                and_(
                    Appointment.status == "rescheduled",
                    Appointment.reschedule_date == day,
                    Appointment.reschedule_time == time_slot,
                ),
            ),
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def create_appointment(db: Session, **appointment_data) -> Appointment:
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_availability(db: Session, listing_id: int) -> list[ListingAvailability]:
        return (
            db.query(ListingAvailability)
            .filter(ListingAvailability.listing_id == listing_id)
            .order_by(
                ListingAvailability.specific_date,
                ListingAvailability.day_of_week,
                ListingAvailability.start_time,
            )
            .all()
        )

    @staticmethod
    def replace_availability(db: Session, listing_id: int, windows: list[dict]) -> None:
        db.query(ListingAvailability).filter(
            ListingAvailability.listing_id == listing_id
        ).delete(synchronize_session=False)
        for window in windows:
            db.add(ListingAvailability(listing_id=listing_id, **window))
        db.flush()
