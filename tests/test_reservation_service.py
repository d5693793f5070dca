"""
Tests for reservation creation and cancellation.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as SchemaError

from spacebroker.domain.reservations.pricing import RatePeriod
from spacebroker.domain.reservations.schemas import ReservationCreate
from spacebroker.domain.reservations.service import ReservationService
from spacebroker.errors import CapacityError, NotFoundError, PermissionDenied, RefundDenied, ValidationError
from spacebroker.models import AuditLog
from spacebroker.models_reservation import Payment, Reservation
from spacebroker.services import notification_service as events
from spacebroker.services.platform_config import DEPOSIT_PERCENTAGE_KEY, set_platform_setting


class TestCreateReservation:
    def test_reservation_and_held_deposit_created_together(self, db_session, parties, reserve):
        requester, owner, listing = parties

        reservation = reserve(requester, listing)

        assert reservation.status == "PAID_DEPOSIT_ESCROW"
        assert reservation.owner_id == owner.id
        assert reservation.total_amount == Decimal("5000.00")
        assert reservation.deposit_amount == Decimal("500.00")
        assert reservation.remaining_amount == Decimal("4500.00")
        assert reservation.commission_amount == Decimal("500.00")
        assert reservation.host_payout_amount == Decimal("4500.00")

        payments = db_session.query(Payment).filter(Payment.reservation_id == reservation.id).all()
        assert len(payments) == 1
        assert payments[0].payment_type == "deposit"
        assert payments[0].escrow_status == "held"
        assert payments[0].amount == Decimal("500.00")

    def test_snapshot_frozen_at_deposit(self, parties, reserve, client_info):
        requester, _, listing = parties

        reservation = reserve(requester, listing)

        assert reservation.frozen_snapshot_created_at is not None
        assert reservation.frozen_snapshot_ip == client_info.ip
        assert reservation.frozen_unit_price_applied == Decimal("100.00")
        assert reservation.frozen_deposit_percentage == Decimal("10")
        assert '"title":"Covered warehouse bay"' in reservation.frozen_listing_data

    def test_platform_rates_read_at_creation_only(self, db_session, parties, reserve):
        requester, _, listing = parties
        first = reserve(requester, listing)

        set_platform_setting(db_session, DEPOSIT_PERCENTAGE_KEY, "25")
        second = reserve(requester, listing)
        db_session.refresh(first)

        assert first.deposit_amount == Decimal("500.00")
        assert first.deposit_percentage == Decimal("10")
        assert second.deposit_amount == Decimal("1250.00")
        assert second.frozen_deposit_percentage == Decimal("25")

    def test_notifies_both_parties(self, parties, reserve, notifier):
        requester, owner, listing = parties

        reserve(requester, listing)

        recipients = [c.args[1] for c in notifier.notify.call_args_list if c.args[0] == events.DEPOSIT_PAID]
        assert sorted(recipients) == sorted([requester.id, owner.id])

    def test_audit_entry_written(self, db_session, parties, reserve):
        requester, _, listing = parties

        reservation = reserve(requester, listing)

        entry = db_session.query(AuditLog).filter(AuditLog.action == "reservation_created").one()
        assert entry.entity_id == reservation.id
        assert entry.ip_address == "203.0.113.7"

    def test_exceeding_capacity_rejected(self, db_session, parties, reserve):
        requester, _, listing = parties

        with pytest.raises(CapacityError):
            reserve(requester, listing, quantity="51")
        assert db_session.query(Reservation).count() == 0

    def test_missing_price_tier_rejected(self, db_session, parties, reserve):
        requester, _, listing = parties

        with pytest.raises(CapacityError) as exc:
            reserve(requester, listing, period=RatePeriod.YEAR, count=1)
        assert exc.value.code == "missing_price_tier"
        assert db_session.query(Payment).count() == 0

    def test_own_listing_rejected(self, parties, reserve):
        _, owner, listing = parties
        with pytest.raises(ValidationError):
            reserve(owner, listing)

    def test_unpublished_listing_not_found(self, make_user, make_listing, reserve):
        owner = make_user("owner")
        listing = make_listing(owner, status="draft")
        with pytest.raises(NotFoundError):
            reserve(make_user("requester"), listing)

    def test_schema_rejects_bad_input(self):
        with pytest.raises(SchemaError):
            ReservationCreate(listing_id=1, requested_quantity=0, period_type="day", period_count=1)
        with pytest.raises(SchemaError):
            ReservationCreate(listing_id=1, requested_quantity=1, period_type="fortnight", period_count=1)


class TestReservationQueries:
    def test_non_party_cannot_see_reservation(self, db_session, parties, reserve, make_user, notifier):
        requester, owner, listing = parties
        reservation = reserve(requester, listing)
        service = ReservationService(db_session, notifier)

        assert service.get_reservation(reservation.id, owner).id == reservation.id
        with pytest.raises(NotFoundError):
            service.get_reservation(reservation.id, make_user("requester"))

    def test_role_filter(self, db_session, parties, reserve, notifier):
        requester, owner, listing = parties
        reserve(requester, listing)
        service = ReservationService(db_session, notifier)

        assert len(service.get_reservations(owner, role="owner")) == 1
        assert service.get_reservations(owner, role="requester") == []

    def test_frozen_snapshot_view(self, db_session, parties, reserve, notifier):
        requester, _, listing = parties
        reservation = reserve(requester, listing)

        view = ReservationService(db_session, notifier).get_frozen_snapshot(reservation.id, requester)

        assert view["snapshot"]["listing"]["title"] == "Covered warehouse bay"
        assert view["integrity"]["is_valid"] is True


class TestCancelReservation:
    def test_cancel_from_confirmed_returns_escrow(self, db_session, parties, reserve, pay_balance, notifier):
        requester, _, listing = parties
        reservation = reserve(requester, listing)
        _, contract = pay_balance(requester, reservation)

        ReservationService(db_session, notifier).cancel_reservation(reservation.id, requester, "changed plans")

        assert reservation.status == "cancelled"
        assert reservation.cancelled_at is not None
        assert contract.status == "cancelled"
        refunds = db_session.query(Payment).filter(Payment.payment_type == "refund").all()
        assert sorted(r.amount for r in refunds) == [Decimal("-4500.00"), Decimal("-500.00")]

    def test_cancel_from_escrow_state_denied(self, db_session, parties, reserve, notifier):
        requester, _, listing = parties
        reservation = reserve(requester, listing)

        with pytest.raises(RefundDenied):
            ReservationService(db_session, notifier).cancel_reservation(reservation.id, requester)
        assert reservation.status == "PAID_DEPOSIT_ESCROW"

    def test_cancel_after_signature_denied(self, db_session, parties, reserve, pay_balance, sign_as, notifier):
        requester, _, listing = parties
        reservation = reserve(requester, listing)
        _, contract = pay_balance(requester, reservation)
        sign_as(requester, contract)

        with pytest.raises(RefundDenied):
            ReservationService(db_session, notifier).cancel_reservation(reservation.id, requester)
        assert reservation.status == "confirmed"

    def test_only_requester_can_cancel(self, db_session, parties, reserve, notifier):
        requester, owner, listing = parties
        reservation = reserve(requester, listing)

        with pytest.raises(PermissionDenied):
            ReservationService(db_session, notifier).cancel_reservation(reservation.id, owner)
