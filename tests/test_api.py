"""
End-to-end tests through the HTTP surface with the database bound to the
in-memory test session and authentication overridden.
"""

from decimal import Decimal
from unittest.mock import patch

from spacebroker.models import NotificationLog


def _reserve(api_client, listing, quantity="10"):
    return api_client.post(
        "/reservations",
        json={
            "listing_id": listing.id,
            "requested_quantity": quantity,
            "period_type": "day",
            "period_count": 5,
            "payment_method": "card",
        },
    )


class TestHealth:
    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestReservationApi:
    def test_create_and_fetch(self, api_client, parties):
        requester, _, listing = parties
        api_client.user = requester

        response = _reserve(api_client, listing)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "PAID_DEPOSIT_ESCROW"
        assert Decimal(body["total_amount"]) == Decimal("5000")
        assert Decimal(body["deposit_amount"]) == Decimal("500")

        fetched = api_client.get(f"/reservations/{body['id']}")
        assert fetched.status_code == 200
        snapshot = api_client.get(f"/reservations/{body['id']}/snapshot").json()
        assert snapshot["integrity"]["is_valid"] is True

    def test_capacity_error_shape(self, api_client, parties):
        requester, _, listing = parties
        api_client.user = requester

        response = _reserve(api_client, listing, quantity="500")

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["kind"] == "capacity_error"
        assert error["code"] == "capacity_exceeded"
        assert "exceeds available capacity" in error["message"]

    def test_outsider_gets_not_found(self, api_client, parties, make_user):
        requester, _, listing = parties
        api_client.user = requester
        reservation_id = _reserve(api_client, listing).json()["id"]

        api_client.user = make_user("requester")
        response = api_client.get(f"/reservations/{reservation_id}")

        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "not_found"

    def test_invalid_body_is_422(self, api_client, parties):
        requester, _, listing = parties
        api_client.user = requester

        response = api_client.post("/reservations", json={"listing_id": listing.id})

        assert response.status_code == 422
        assert "detail" in response.json()


class TestLifecycleApi:
    def _pay_balance(self, api_client, reservation_id):
        return api_client.post(
            f"/payments/reservations/{reservation_id}/remaining", json={"payment_method": "card"}
        )

    def test_refund_before_signature(self, api_client, parties):
        requester, _, listing = parties
        api_client.user = requester
        reservation_id = _reserve(api_client, listing).json()["id"]
        self._pay_balance(api_client, reservation_id)

        response = api_client.post(f"/payments/reservations/{reservation_id}/refund", json={"reason": "moved"})

        assert response.status_code == 200
        assert sorted(Decimal(p["amount"]) for p in response.json()) == [Decimal("-4500"), Decimal("-500")]
        assert api_client.get(f"/reservations/{reservation_id}").json()["status"] == "refunded"

    def test_full_signature_then_refund_denied(self, api_client, parties):
        requester, owner, listing = parties
        api_client.user = requester
        reservation_id = _reserve(api_client, listing).json()["id"]

        paid = self._pay_balance(api_client, reservation_id)
        assert paid.status_code == 201
        contract_id = paid.json()["contract_id"]
        assert paid.json()["contract_number"].startswith("CTR-")

        # Owner may not sign first
        api_client.user = owner
        early = api_client.post(f"/contracts/{contract_id}/request-code")
        assert early.status_code == 409
        assert early.json()["error"]["code"] == "requester_must_sign_first"

        with patch("spacebroker.domain.contracts.signing.generate_code", return_value="482913"):
            for signer in (requester, owner):
                api_client.user = signer
                issued = api_client.post(f"/contracts/{contract_id}/request-code")
                assert issued.status_code == 200
                assert "code" not in issued.json()

                signed = api_client.post(f"/contracts/{contract_id}/sign", json={"code": "482913"})
                assert signed.status_code == 200

        assert signed.json()["status"] == "signed"

        api_client.user = requester
        denied = api_client.post(f"/payments/reservations/{reservation_id}/refund")
        assert denied.status_code == 409
        assert denied.json()["error"]["code"] == "refund_denied"
        assert api_client.get(f"/reservations/{reservation_id}").json()["status"] == "contract_signed"

        payments = api_client.get("/payments").json()
        assert {p["escrow_status"] for p in payments} == {"released"}

    def test_non_digit_code_rejected(self, api_client, parties):
        requester, _, listing = parties
        api_client.user = requester
        reservation_id = _reserve(api_client, listing).json()["id"]
        contract_id = self._pay_balance(api_client, reservation_id).json()["contract_id"]

        response = api_client.post(f"/contracts/{contract_id}/sign", json={"code": "abcdef"})

        assert response.status_code == 422

    def test_signature_code_not_stored_in_notification_log(self, api_client, parties, db_session):
        requester, _, listing = parties
        api_client.user = requester
        reservation_id = _reserve(api_client, listing).json()["id"]
        contract_id = self._pay_balance(api_client, reservation_id).json()["contract_id"]

        api_client.post(f"/contracts/{contract_id}/request-code")

        entry = db_session.query(NotificationLog).filter(NotificationLog.event_type == "signature_code").one()
        assert entry.payload["code"] == "***"
        assert entry.status == "sent"


class TestUsersApi:
    def test_me_and_consent(self, api_client, make_user):
        user = make_user("requester", consent=False)
        api_client.user = user

        assert api_client.get("/users/me").json()["anti_circumvention_accepted"] is False

        response = api_client.post("/users/me/anti-circumvention")
        assert response.status_code == 200
        body = response.json()
        assert body["anti_circumvention_accepted"] is True
        assert body["anti_circumvention_version"] == "0.0"

        again = api_client.post("/users/me/anti-circumvention").json()
        assert again["anti_circumvention_accepted_at"] == body["anti_circumvention_accepted_at"]

    def test_legal_identity_update(self, api_client, make_user):
        api_client.user = make_user("owner", person_type=None, national_id=None)

        response = api_client.put(
            "/users/me/legal-identity",
            json={"person_type": "company", "tax_id": "1020304050", "company_name": "Acme Freight"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["person_type"] == "company"
        assert body["tax_id"] == "1020304050"
        assert body["company_name"] == "Acme Freight"

    def test_legal_identity_requires_matching_document(self, api_client, make_user):
        api_client.user = make_user("owner")

        response = api_client.put(
            "/users/me/legal-identity", json={"person_type": "company", "national_id": "4829133"}
        )

        assert response.status_code == 422


class TestStatusApi:
    def test_automation_requires_admin(self, api_client, make_user):
        api_client.user = make_user("requester")
        assert api_client.post("/status/automation/run").status_code == 403

        api_client.user = make_user("admin")
        response = api_client.post("/status/automation/run")
        assert response.status_code == 200
        assert response.json()["total_updated"] == 0
