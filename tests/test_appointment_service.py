"""
Tests for the site-visit appointment workflow.
"""

from datetime import date, timedelta

import pytest
from pydantic import ValidationError as SchemaError

from spacebroker.domain.appointments.availability import is_slot_available
from spacebroker.domain.appointments.schemas import (
    AppointmentCreate,
    AppointmentReschedule,
    AvailabilityUpdate,
    AvailabilityWindow,
)
from spacebroker.domain.appointments.service import AppointmentService
from spacebroker.errors import (
    NotFoundError,
    PermissionDenied,
    SlotUnavailable,
    StateConflict,
    ValidationError,
)
from spacebroker.models import ListingAvailability
from spacebroker.services import notification_service as events


@pytest.fixture
def service(db_session, notifier):
    return AppointmentService(db_session, notifier)


@pytest.fixture
def escrow_reservation(parties, reserve, weekly_availability):
    requester, owner, listing = parties
    weekly_availability(listing)
    return requester, owner, listing, reserve(requester, listing)


@pytest.fixture
def requested(service, escrow_reservation, future_day, client_info):
    requester, owner, listing, reservation = escrow_reservation
    appointment = service.create_appointment(
        requester,
        AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="10:00"),
        client_info,
    )
    return requester, owner, reservation, appointment


class TestAvailability:
    def setup_method(self):
        self.monday = date(2026, 3, 2)
        self.windows = [
            ListingAvailability(day_of_week=0, start_time="09:00", end_time="12:00", is_blocked=False),
            ListingAvailability(
                specific_date=self.monday, start_time="10:00", end_time="11:00", is_blocked=True
            ),
        ]

    def test_open_window_covers_slot(self):
        assert is_slot_available(self.windows, self.monday, "09:30")

    def test_block_overrides_open_window(self):
        assert not is_slot_available(self.windows, self.monday, "10:15")

    def test_end_time_is_exclusive(self):
        assert not is_slot_available(self.windows, self.monday, "12:00")

    def test_other_weekday_has_no_window(self):
        assert not is_slot_available(self.windows, self.monday + timedelta(days=1), "09:30")

    def test_window_schema_requires_one_anchor(self):
        with pytest.raises(SchemaError):
            AvailabilityWindow(start_time="09:00", end_time="10:00")
        with pytest.raises(SchemaError):
            AvailabilityWindow(day_of_week=1, start_time="11:00", end_time="10:00")


class TestCreateAppointment:
    def test_creates_and_moves_reservation(self, requested, notifier):
        _, owner, reservation, appointment = requested

        assert appointment.status == "requested"
        assert appointment.anti_circumvention_accepted is False
        assert reservation.status == "appointment_scheduled"
        notifier.notify.assert_any_call(
            events.APPOINTMENT_REQUESTED,
            owner.id,
            {"appointment_id": appointment.id, "date": appointment.scheduled_date, "time": "10:00"},
        )

    def test_account_consent_required(self, db_session, service, escrow_reservation, future_day):
        requester, _, _, reservation = escrow_reservation
        requester.anti_circumvention_accepted = False
        db_session.commit()

        with pytest.raises(PermissionDenied) as exc:
            service.create_appointment(
                requester,
                AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="10:00"),
            )
        assert exc.value.code == "anti_circumvention_required"

    def test_calendar_must_be_active(self, db_session, service, escrow_reservation, future_day):
        requester, _, listing, reservation = escrow_reservation
        listing.is_calendar_active = False
        db_session.commit()

        with pytest.raises(StateConflict) as exc:
            service.create_appointment(
                requester,
                AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="10:00"),
            )
        assert exc.value.code == "calendar_inactive"

    def test_slot_outside_window(self, service, escrow_reservation, future_day):
        requester, _, _, reservation = escrow_reservation

        with pytest.raises(SlotUnavailable):
            service.create_appointment(
                requester,
                AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="18:00"),
            )

    def test_past_date_rejected(self, service, escrow_reservation):
        requester, _, _, reservation = escrow_reservation

        with pytest.raises(ValidationError):
            service.create_appointment(
                requester,
                AppointmentCreate(
                    reservation_id=reservation.id,
                    scheduled_date=date.today() - timedelta(days=2),
                    scheduled_time="10:00",
                ),
            )

    def test_taken_slot_rejected(self, service, requested, reserve, parties, future_day):
        requester, _, listing = parties
        other = reserve(requester, listing)

        with pytest.raises(SlotUnavailable):
            service.create_appointment(
                requester,
                AppointmentCreate(reservation_id=other.id, scheduled_date=future_day, scheduled_time="10:00"),
            )

    def test_reservation_must_hold_deposit(self, service, requested, future_day):
        requester, _, reservation, _ = requested

        with pytest.raises(StateConflict):
            service.create_appointment(
                requester,
                AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="11:00"),
            )

    def test_owner_cannot_request_visit(self, service, escrow_reservation, future_day):
        _, owner, _, reservation = escrow_reservation

        with pytest.raises(NotFoundError):
            service.create_appointment(
                owner,
                AppointmentCreate(reservation_id=reservation.id, scheduled_date=future_day, scheduled_time="10:00"),
            )


class TestOwnerActions:
    def test_accept_requires_appointment_consent(self, service, requested):
        _, owner, _, appointment = requested

        with pytest.raises(StateConflict) as exc:
            service.accept_appointment(appointment.id, owner)
        assert exc.value.code == "appointment_consent_required"

    def test_accept_after_consent(self, service, requested, client_info):
        requester, owner, _, appointment = requested

        service.accept_anti_circumvention(appointment.id, requester, client_info)
        service.accept_appointment(appointment.id, owner)

        assert appointment.status == "accepted"
        assert appointment.anti_circumvention_ip == client_info.ip
        assert appointment.anti_circumvention_version == "0.0"

    def test_requester_cannot_accept(self, service, requested):
        requester, _, _, appointment = requested

        with pytest.raises(PermissionDenied):
            service.accept_appointment(appointment.id, requester)

    def test_reject_returns_reservation_to_escrow(self, service, requested):
        _, owner, reservation, appointment = requested

        service.reject_appointment(appointment.id, owner, "  <b>unavailable</b> ")

        assert appointment.status == "rejected"
        assert appointment.rejection_reason == "&lt;b&gt;unavailable&lt;/b&gt;"
        assert reservation.status == "PAID_DEPOSIT_ESCROW"

    @pytest.mark.parametrize("no_show, expected", [(False, "completed"), (True, "no_show")])
    def test_completion_advances_reservation(self, service, requested, no_show, expected):
        requester, owner, reservation, appointment = requested
        service.accept_anti_circumvention(appointment.id, requester)
        service.accept_appointment(appointment.id, owner)

        service.complete_appointment(appointment.id, owner, no_show=no_show)

        assert appointment.status == expected
        assert appointment.completed_at is not None
        assert reservation.status == "visit_completed"

    def test_cannot_complete_unaccepted_visit(self, service, requested):
        _, owner, reservation, appointment = requested

        with pytest.raises(StateConflict):
            service.complete_appointment(appointment.id, owner)
        assert reservation.status == "appointment_scheduled"


class TestReschedule:
    def _reschedule(self, service, owner, appointment, future_day):
        return service.reschedule_appointment(
            appointment.id,
            owner,
            AppointmentReschedule(new_date=future_day + timedelta(days=1), new_time="14:00", reason="clash"),
        )

    def test_accept_reschedule_moves_slot(self, service, requested, future_day):
        requester, owner, _, appointment = requested
        self._reschedule(service, owner, appointment, future_day)
        service.accept_anti_circumvention(appointment.id, requester)

        service.accept_reschedule(appointment.id, requester)

        assert appointment.status == "accepted"
        assert appointment.scheduled_date == future_day + timedelta(days=1)
        assert appointment.scheduled_time == "14:00"

    def test_accept_reschedule_requires_consent(self, service, requested, future_day):
        requester, owner, _, appointment = requested
        self._reschedule(service, owner, appointment, future_day)

        with pytest.raises(StateConflict):
            service.accept_reschedule(appointment.id, requester)

    def test_decline_reschedule_reverts_reservation(self, service, requested, future_day):
        requester, owner, reservation, appointment = requested
        self._reschedule(service, owner, appointment, future_day)

        service.decline_reschedule(appointment.id, requester)

        assert appointment.status == "cancelled"
        assert reservation.status == "PAID_DEPOSIT_ESCROW"

    def _book_other(self, service, requester, listing, reserve, day, time_slot):
        other = reserve(requester, listing)
        return service.create_appointment(
            requester,
            AppointmentCreate(reservation_id=other.id, scheduled_date=day, scheduled_time=time_slot),
        )

    def test_reschedule_onto_booked_slot_rejected(self, service, requested, reserve, parties, future_day):
        requester, owner, _, appointment = requested
        self._book_other(service, requester, parties[2], reserve, future_day + timedelta(days=1), "14:00")

        with pytest.raises(SlotUnavailable):
            self._reschedule(service, owner, appointment, future_day)

        assert appointment.status == "requested"
        assert appointment.reschedule_date is None

    def test_reschedule_outside_availability_rejected(self, service, requested, future_day):
        _, owner, _, appointment = requested

        with pytest.raises(SlotUnavailable):
            service.reschedule_appointment(
                appointment.id, owner, AppointmentReschedule(new_date=future_day, new_time="18:00")
            )

    def test_reschedule_to_own_slot_is_not_a_clash(self, service, requested, future_day):
        _, owner, _, appointment = requested

        service.reschedule_appointment(
            appointment.id, owner, AppointmentReschedule(new_date=future_day, new_time="10:00")
        )

        assert appointment.status == "rescheduled"

    def test_proposed_slot_blocks_new_bookings(self, service, requested, reserve, parties, future_day):
        requester, owner, _, appointment = requested
        self._reschedule(service, owner, appointment, future_day)

        with pytest.raises(SlotUnavailable):
            self._book_other(service, requester, parties[2], reserve, future_day + timedelta(days=1), "14:00")

    def test_accept_reschedule_rechecks_slot(self, service, requested, parties, future_day):
        requester, owner, _, appointment = requested
        self._reschedule(service, owner, appointment, future_day)
        service.accept_anti_circumvention(appointment.id, requester)
        service.set_availability(
            parties[2].id,
            owner,
            AvailabilityUpdate(
                is_calendar_active=True,
                windows=[
                    AvailabilityWindow(day_of_week=day, start_time="09:00", end_time="12:00")
                    for day in range(7)
                ],
            ),
        )

        with pytest.raises(SlotUnavailable):
            service.accept_reschedule(appointment.id, requester)

        assert appointment.status == "rescheduled"
        assert appointment.scheduled_time == "10:00"


class TestAvailabilityManagement:
    def test_owner_replaces_windows(self, service, parties):
        _, owner, listing = parties

        result = service.set_availability(
            listing.id,
            owner,
            AvailabilityUpdate(
                is_calendar_active=True,
                windows=[AvailabilityWindow(day_of_week=2, start_time="08:00", end_time="12:00")],
            ),
        )

        assert result["is_calendar_active"] is True
        assert len(result["windows"]) == 1
        assert result["windows"][0].start_time == "08:00"

    def test_non_owner_cannot_edit(self, service, parties):
        requester, _, listing = parties

        with pytest.raises(NotFoundError):
            service.set_availability(listing.id, requester, AvailabilityUpdate(windows=[]))
