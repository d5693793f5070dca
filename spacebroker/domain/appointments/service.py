"""Appointment service - site visit workflow gating the balance payment"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...database import unit_of_work
from ...errors import (
    NotFoundError,
    PermissionDenied,
    SlotUnavailable,
    StateConflict,
    ValidationError,
)
from ...models import User
from ...models_appointment import Appointment
from ...services import notification_service as events
from ...services.audit import log_audit
from ...services.notification_service import NotificationDispatcher
from ...shared.client_info import ClientInfo
from ...shared.validators import sanitize_text, utcnow
from ..legal.repository import ANTI_CIRCUMVENTION_REQUESTER, LegalTextRepository
from ..reservations.repository import ReservationRepository
from ..reservations.state_machine import ReservationStatus, status_of, transition
from .availability import is_slot_available
from .repository import AppointmentRepository
from .schemas import AppointmentCreate, AppointmentReschedule, AvailabilityUpdate

logger = logging.getLogger(__name__)

# Appointment status workflow
APPOINTMENT_TRANSITIONS = {
    "requested": {"accepted", "rejected", "rescheduled"},
    "rescheduled": {"accepted", "cancelled"},
    "accepted": {"completed", "no_show", "rescheduled"},
    "rejected": set(),
    "cancelled": set(),
    "completed": set(),
    "no_show": set(),
}


def _move(appointment: Appointment, target: str) -> str:
    current = appointment.status
    if target not in APPOINTMENT_TRANSITIONS.get(current, set()):
        raise StateConflict(
            f"Appointment cannot move from '{current}' to '{target}'", code="invalid_transition"
        )
    appointment.status = target
    return current


class AppointmentService:
    """Service layer for appointment business logic"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.repo = AppointmentRepository()
        self.reservations = ReservationRepository()
        self.notifier = notifier or NotificationDispatcher(db)

    # ============================================================================
    # LOOKUPS
    # ============================================================================

    def get_appointments(self, user: User, reservation_id: Optional[int] = None) -> list[Appointment]:
        return self.repo.get_appointments(self.db, user.id, reservation_id)

    def get_appointment(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment or user.id not in (appointment.requester_id, appointment.owner_id):
            raise NotFoundError("Appointment not found")
        return appointment

    def _as_owner(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.get_appointment(appointment_id, user)
        if appointment.owner_id != user.id:
            raise PermissionDenied("Only the space owner can perform this action")
        return appointment

    def _as_requester(self, appointment_id: int, user: User) -> Appointment:
        appointment = self.get_appointment(appointment_id, user)
        if appointment.requester_id != user.id:
            raise PermissionDenied("Only the requester can perform this action")
        return appointment

    def _check_slot(
        self, listing_id: int, day: date, time_slot: str, exclude_id: Optional[int] = None
    ) -> None:
        if not is_slot_available(self.repo.get_availability(self.db, listing_id), day, time_slot):
            raise SlotUnavailable("Requested slot is outside the owner's availability")
        if self.repo.slot_taken(self.db, listing_id, day, time_slot, exclude_id=exclude_id):
            raise SlotUnavailable("Requested slot is already booked")

    # ============================================================================
    # REQUESTER ACTIONS
    # ============================================================================

    def create_appointment(
        self, user: User, data: AppointmentCreate, client: Optional[ClientInfo] = None
    ) -> Appointment:
        """
        Request a site visit for a reservation with a held deposit.

        Account-level anti-circumvention consent is a prerequisite; the
        appointment's own consent is collected separately before acceptance.
        """
        if not user.anti_circumvention_accepted:
            raise PermissionDenied(
                "You must accept the anti-circumvention policy before requesting a visit",
                code="anti_circumvention_required",
            )

        reservation = self.reservations.get_reservation(self.db, data.reservation_id)
        if not reservation or reservation.requester_id != user.id:
            raise NotFoundError("Reservation not found")
        if status_of(reservation) != ReservationStatus.PAID_DEPOSIT_ESCROW:
            raise StateConflict(
                "A visit can only be requested once the deposit is held in escrow",
                code="deposit_not_held",
            )

        listing = self.reservations.get_listing(self.db, reservation.listing_id)
        if not listing or not listing.is_calendar_active:
            raise StateConflict("This listing is not accepting visits", code="calendar_inactive")

        if data.scheduled_date < utcnow().date():
            raise ValidationError("Visit date cannot be in the past")
        self._check_slot(listing.id, data.scheduled_date, data.scheduled_time)

        with unit_of_work(self.db):
            appointment = self.repo.create_appointment(
                self.db,
                reservation_id=reservation.id,
                listing_id=listing.id,
                requester_id=user.id,
                owner_id=reservation.owner_id,
                scheduled_date=data.scheduled_date,
                scheduled_time=data.scheduled_time,
                requester_notes=sanitize_text(data.notes),
                status="requested",
                anti_circumvention_accepted=False,
            )
            transition(reservation, ReservationStatus.APPOINTMENT_SCHEDULED)
            log_audit(
                self.db,
                user.id,
                "appointment_requested",
                "appointment",
                appointment.id,
                new_data={"date": data.scheduled_date, "time": data.scheduled_time},
                client=client,
            )

        logger.info(
            f"📅 Appointment {appointment.id} requested for reservation {reservation.id} "
            f"on {data.scheduled_date} {data.scheduled_time}"
        )
        self.notifier.notify(
            events.APPOINTMENT_REQUESTED,
            appointment.owner_id,
            {
                "appointment_id": appointment.id,
                "date": appointment.scheduled_date,
                "time": appointment.scheduled_time,
            },
        )
        return appointment

    def accept_anti_circumvention(
        self, appointment_id: int, user: User, client: Optional[ClientInfo] = None
    ) -> Appointment:
        """Record the requester's consent scoped to this appointment"""
        appointment = self._as_requester(appointment_id, user)
        if appointment.anti_circumvention_accepted:
            return appointment
        if appointment.status not in ("requested", "rescheduled", "accepted"):
            raise StateConflict(f"Appointment is '{appointment.status}'", code="appointment_closed")

        client = client or ClientInfo()
        reference = LegalTextRepository.active_reference(self.db, ANTI_CIRCUMVENTION_REQUESTER)

        with unit_of_work(self.db):
            appointment.anti_circumvention_accepted = True
            appointment.anti_circumvention_accepted_at = utcnow()
            appointment.anti_circumvention_ip = client.ip
            appointment.anti_circumvention_user_agent = client.user_agent
            appointment.anti_circumvention_version = reference["version"]
            log_audit(
                self.db,
                user.id,
                "appointment_anti_circumvention_accepted",
                "appointment",
                appointment.id,
                new_data={"version": reference["version"]},
                client=client,
            )

        logger.info(f"✅ Anti-circumvention accepted for appointment {appointment.id}")
        return appointment

    def accept_reschedule(self, appointment_id: int, user: User) -> Appointment:
        appointment = self._as_requester(appointment_id, user)
        if not appointment.anti_circumvention_accepted:
            raise StateConflict(
                "Accept the anti-circumvention clause for this visit first",
                code="appointment_consent_required",
            )

        # The proposed slot may have been booked since the owner offered it
        if appointment.status == "rescheduled":
            self._check_slot(
                appointment.listing_id,
                appointment.reschedule_date,
                appointment.reschedule_time,
                exclude_id=appointment.id,
            )

        with unit_of_work(self.db):
            _move(appointment, "accepted")
            appointment.scheduled_date = appointment.reschedule_date
            appointment.scheduled_time = appointment.reschedule_time

        logger.info(f"✅ Reschedule accepted for appointment {appointment.id}")
        self.notifier.notify(
            events.APPOINTMENT_ACCEPTED,
            appointment.owner_id,
            {"appointment_id": appointment.id, "date": appointment.scheduled_date},
        )
        return appointment

    def decline_reschedule(self, appointment_id: int, user: User) -> Appointment:
        """Requester refuses the new slot; the reservation returns to escrow"""
        appointment = self._as_requester(appointment_id, user)

        with unit_of_work(self.db):
            _move(appointment, "cancelled")
            transition(appointment.reservation, ReservationStatus.PAID_DEPOSIT_ESCROW)

        logger.info(f"🚫 Reschedule declined for appointment {appointment.id}")
        self.notifier.notify(
            events.APPOINTMENT_REJECTED,
            appointment.owner_id,
            {"appointment_id": appointment.id, "declined_by": "requester"},
        )
        return appointment

    # ============================================================================
    # OWNER ACTIONS
    # ============================================================================

    def accept_appointment(self, appointment_id: int, user: User) -> Appointment:
        appointment = self._as_owner(appointment_id, user)
        if not appointment.anti_circumvention_accepted:
            raise StateConflict(
                "The requester has not accepted the anti-circumvention clause for this visit",
                code="appointment_consent_required",
            )

        with unit_of_work(self.db):
            _move(appointment, "accepted")

        logger.info(f"✅ Appointment {appointment.id} accepted")
        self.notifier.notify(
            events.APPOINTMENT_ACCEPTED,
            appointment.requester_id,
            {
                "appointment_id": appointment.id,
                "date": appointment.scheduled_date,
                "time": appointment.scheduled_time,
            },
        )
        return appointment

    def reject_appointment(
        self, appointment_id: int, user: User, reason: Optional[str] = None
    ) -> Appointment:
        """Owner declines the visit; the reservation returns to escrow"""
        appointment = self._as_owner(appointment_id, user)

        with unit_of_work(self.db):
            _move(appointment, "rejected")
            appointment.rejection_reason = sanitize_text(reason)
            transition(appointment.reservation, ReservationStatus.PAID_DEPOSIT_ESCROW)

        logger.info(f"❌ Appointment {appointment.id} rejected")
        self.notifier.notify(
            events.APPOINTMENT_REJECTED,
            appointment.requester_id,
            {"appointment_id": appointment.id, "reason": appointment.rejection_reason},
        )
        return appointment

    def reschedule_appointment(
        self, appointment_id: int, user: User, data: AppointmentReschedule
    ) -> Appointment:
        appointment = self._as_owner(appointment_id, user)
        if data.new_date < utcnow().date():
            raise ValidationError("New visit date cannot be in the past")
        self._check_slot(appointment.listing_id, data.new_date, data.new_time, exclude_id=appointment.id)

        with unit_of_work(self.db):
            _move(appointment, "rescheduled")
            appointment.reschedule_date = data.new_date
            appointment.reschedule_time = data.new_time
            appointment.reschedule_reason = sanitize_text(data.reason)

        logger.info(f"🔄 Appointment {appointment.id} rescheduled to {data.new_date} {data.new_time}")
        self.notifier.notify(
            events.APPOINTMENT_RESCHEDULED,
            appointment.requester_id,
            {
                "appointment_id": appointment.id,
                "new_date": data.new_date,
                "new_time": data.new_time,
                "reason": appointment.reschedule_reason,
            },
        )
        return appointment

    def complete_appointment(self, appointment_id: int, user: User, no_show: bool = False) -> Appointment:
        """Close the visit; either outcome moves the reservation to visit_completed"""
        appointment = self._as_owner(appointment_id, user)

        with unit_of_work(self.db):
            _move(appointment, "no_show" if no_show else "completed")
            appointment.completed_at = utcnow()
            transition(appointment.reservation, ReservationStatus.VISIT_COMPLETED)

        logger.info(f"✅ Appointment {appointment.id} closed as {appointment.status}")
        self.notifier.notify(
            events.APPOINTMENT_COMPLETED,
            appointment.requester_id,
            {"appointment_id": appointment.id, "outcome": appointment.status},
        )
        return appointment

    # ============================================================================
    # AVAILABILITY
    # ============================================================================

    def _owned_listing(self, listing_id: int, user: User):
        listing = self.reservations.get_listing(self.db, listing_id)
        if not listing or listing.owner_id != user.id:
            raise NotFoundError("Listing not found")
        return listing

    def get_availability(self, listing_id: int) -> dict:
        listing = self.reservations.get_listing(self.db, listing_id)
        if not listing:
            raise NotFoundError("Listing not found")
        return {
            "listing_id": listing.id,
            "is_calendar_active": listing.is_calendar_active,
            "windows": self.repo.get_availability(self.db, listing.id),
        }

    def set_availability(self, listing_id: int, user: User, data: AvailabilityUpdate) -> dict:
        listing = self._owned_listing(listing_id, user)

        with unit_of_work(self.db):
            listing.is_calendar_active = data.is_calendar_active
            self.repo.replace_availability(
                self.db, listing.id, [window.model_dump() for window in data.windows]
            )

        logger.info(f"📅 Availability updated for listing {listing.id}: {len(data.windows)} window(s)")
        return self.get_availability(listing.id)
