"""
Tests for non-fiscal contract invoices.
"""

import re
from datetime import date
from decimal import Decimal

import pytest

from spacebroker.domain.invoices.service import InvoiceService, generate_invoice_number
from spacebroker.errors import LegalIdentityIncomplete, NotFoundError, StateConflict
from spacebroker.models import AuditLog
from spacebroker.models_invoice import Invoice


@pytest.fixture
def signed_contract(parties, reserve, pay_balance, sign_as):
    requester, owner, listing = parties
    _, contract = pay_balance(requester, reserve(requester, listing))
    sign_as(requester, contract)
    sign_as(owner, contract)
    return requester, owner, contract


class TestInvoiceNumber:
    def test_format(self):
        assert re.fullmatch(r"INV-2026-[A-Z0-9]{8}", generate_invoice_number(date(2026, 5, 4)))


class TestGenerateInvoice:
    def test_amounts_come_from_contract(self, db_session, signed_contract, client_info):
        requester, owner, contract = signed_contract

        invoice, created = InvoiceService(db_session).generate_invoice(contract.id, owner, client_info)

        assert created is True
        assert invoice.total_amount == contract.total_amount == Decimal("5000.00")
        assert invoice.commission_amount == contract.commission_amount
        assert invoice.host_payout_amount == contract.host_payout_amount
        assert invoice.total_amount == invoice.commission_amount + invoice.host_payout_amount
        assert invoice.requester_id == requester.id
        assert invoice.billing_document == requester.national_id
        assert invoice.billing_name == requester.full_name
        assert "Covered warehouse bay" in invoice.concept
        assert "has no validity before the tax authority" in invoice.disclaimer
        assert invoice.status == "issued"
        entry = db_session.query(AuditLog).filter(AuditLog.action == "invoice_generated").one()
        assert entry.new_data["invoice_number"] == invoice.invoice_number

    def test_concept_uses_frozen_title(self, db_session, signed_contract, parties):
        _, owner, contract = signed_contract
        parties[2].title = "Renamed after signing"
        db_session.commit()

        invoice, _ = InvoiceService(db_session).generate_invoice(contract.id, owner)

        assert "Covered warehouse bay" in invoice.concept
        assert "Renamed" not in invoice.concept

    def test_idempotent_per_contract(self, db_session, signed_contract):
        requester, owner, contract = signed_contract
        service = InvoiceService(db_session)

        first, _ = service.generate_invoice(contract.id, requester)
        second, created = service.generate_invoice(contract.id, owner)

        assert created is False
        assert second.id == first.id
        assert db_session.query(Invoice).count() == 1

    def test_company_billed_under_company_name(self, db_session, signed_contract):
        requester, owner, contract = signed_contract
        requester.person_type = "company"
        requester.company_name = "Acme Freight"
        requester.tax_id = "1020304050"
        db_session.commit()

        invoice, _ = InvoiceService(db_session).generate_invoice(contract.id, owner)

        assert invoice.billing_name == "Acme Freight"
        assert invoice.billing_document == "1020304050"

    def test_unsigned_contract_rejected(self, db_session, parties, reserve, pay_balance):
        requester, _, listing = parties
        _, contract = pay_balance(requester, reserve(requester, listing))

        with pytest.raises(StateConflict) as exc_info:
            InvoiceService(db_session).generate_invoice(contract.id, requester)

        assert exc_info.value.code == "contract_not_invoiceable"
        assert db_session.query(Invoice).count() == 0

    def test_requester_identity_required(self, db_session, signed_contract):
        requester, owner, contract = signed_contract
        requester.national_id = None
        db_session.commit()

        with pytest.raises(LegalIdentityIncomplete):
            InvoiceService(db_session).generate_invoice(contract.id, owner)

        assert db_session.query(Invoice).count() == 0
        entry = db_session.query(AuditLog).filter(AuditLog.action == "legal_identity_incomplete").one()
        assert entry.new_data["blocked_operation"] == "invoice"

    def test_outsider_cannot_generate(self, db_session, signed_contract, make_user):
        _, _, contract = signed_contract

        with pytest.raises(NotFoundError):
            InvoiceService(db_session).generate_invoice(contract.id, make_user("owner"))

    def test_admin_can_generate(self, db_session, signed_contract, make_user):
        _, _, contract = signed_contract

        invoice, created = InvoiceService(db_session).generate_invoice(contract.id, make_user("admin"))

        assert created is True
        assert invoice.contract_id == contract.id


class TestInvoiceQueries:
    def test_parties_see_invoice(self, db_session, signed_contract, make_user):
        requester, owner, contract = signed_contract
        service = InvoiceService(db_session)
        invoice, _ = service.generate_invoice(contract.id, requester)

        assert [i.id for i in service.get_invoices(owner)] == [invoice.id]
        assert service.get_invoice(invoice.id, requester).id == invoice.id
        assert service.get_invoices(make_user("requester")) == []
        with pytest.raises(NotFoundError):
            service.get_invoice(invoice.id, make_user("requester"))


class TestInvoiceApi:
    def test_generate_then_repeat(self, api_client, signed_contract):
        requester, _, contract = signed_contract
        api_client.user = requester

        first = api_client.post(f"/invoices/contracts/{contract.id}")
        again = api_client.post(f"/invoices/contracts/{contract.id}")

        assert first.status_code == 201
        assert again.status_code == 200
        assert again.json()["invoice_number"] == first.json()["invoice_number"]
        listed = api_client.get("/invoices").json()
        assert [item["id"] for item in listed] == [first.json()["id"]]

    def test_unsigned_contract_is_409(self, api_client, parties, reserve, pay_balance):
        requester, _, listing = parties
        _, contract = pay_balance(requester, reserve(requester, listing))
        api_client.user = requester

        response = api_client.post(f"/invoices/contracts/{contract.id}")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "contract_not_invoiceable"
