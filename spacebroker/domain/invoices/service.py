"""Invoice service - non-fiscal invoices generated from signed contracts"""

import json
import logging
import secrets
import string
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CURRENCY
from ...database import unit_of_work
from ...errors import LegalIdentityIncomplete, NotFoundError, StateConflict
from ...models import User
from ...models_contract import Contract
from ...models_invoice import Invoice
from ...services.audit import log_audit
from ...shared.client_info import ClientInfo
from ...shared.validators import utcnow
from ..contracts.repository import ContractRepository
from ..users.identity import legal_name, require_legal_identity
from .repository import InvoiceRepository

logger = logging.getLogger(__name__)

INVOICEABLE_STATUSES = ("signed", "active", "extended", "completed")

INVOICE_DISCLAIMER = (
    "Non-fiscal invoice issued by the platform for the parties' records. "
    "It has no validity before the tax authority."
)

INVOICE_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
INVOICE_NUMBER_SUFFIX_LENGTH = 8
MAX_NUMBER_ATTEMPTS = 5


def generate_invoice_number(issued_on: date) -> str:
    """INV-YYYY-XXXXXXXX with a random upper-case alphanumeric suffix"""
    suffix = "".join(
        secrets.choice(INVOICE_NUMBER_ALPHABET) for _ in range(INVOICE_NUMBER_SUFFIX_LENGTH)
    )
    return f"INV-{issued_on:%Y}-{suffix}"


def invoice_concept(contract: Contract) -> str:
    listing = json.loads(contract.frozen_listing_data) if contract.frozen_listing_data else {}
    return (
        f"Space rental: {listing.get('title') or 'N/A'} - {contract.requested_quantity} units - "
        f"{contract.period_count} {contract.period_type}(s)"
    )


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = InvoiceRepository()
        self.contracts = ContractRepository()

    def _can_view(self, user: User, requester_id: int, owner_id: int) -> bool:
        return user.role == "admin" or user.id in (requester_id, owner_id)

    def get_invoices(self, user: User) -> list[Invoice]:
        return self.repo.get_invoices(self.db, user.id)

    def get_invoice(self, invoice_id: int, user: User) -> Invoice:
        invoice = self.repo.get_invoice(self.db, invoice_id)
        if not invoice or not self._can_view(user, invoice.requester_id, invoice.owner_id):
            raise NotFoundError("Invoice not found")
        return invoice

    def generate_invoice(
        self, contract_id: int, user: User, client: Optional[ClientInfo] = None
    ) -> tuple[Invoice, bool]:
        """
        Invoice the requester for a signed contract.

        Idempotent per contract: a second call returns the existing invoice
        and False.

        Raises:
            NotFoundError: Unknown contract, or the caller is not a party
            StateConflict: The contract has not been signed by both parties
            LegalIdentityIncomplete: The requester cannot be identified on the invoice
        """
        contract = self.contracts.get_contract(self.db, contract_id)
        if not contract or not self._can_view(user, contract.requester_id, contract.owner_id):
            raise NotFoundError("Contract not found")
        if contract.status not in INVOICEABLE_STATUSES:
            raise StateConflict(
                f"Contract in status '{contract.status}' cannot be invoiced",
                code="contract_not_invoiceable",
            )

        requester = self.db.get(User, contract.requester_id)
        try:
            require_legal_identity(requester, "requester")
        except LegalIdentityIncomplete as e:
            logger.warning(f"⚠️ Invoice blocked for contract {contract.id}: requester missing {e.missing}")
            with unit_of_work(self.db):
                log_audit(
                    self.db,
                    user.id,
                    "legal_identity_incomplete",
                    "user",
                    requester.id,
                    new_data={
                        "missing": e.missing,
                        "blocked_operation": "invoice",
                        "contract_id": contract.id,
                    },
                    client=client,
                )
            raise

        existing = self.repo.get_invoice_by_contract(self.db, contract.id)
        if existing:
            logger.debug(f"ℹ️ Contract {contract.id} already invoiced as {existing.invoice_number}")
            return existing, False

        with unit_of_work(self.db):
            invoice = self.repo.create_invoice(
                self.db,
                invoice_number=self._unique_invoice_number(utcnow().date()),
                contract_id=contract.id,
                requester_id=contract.requester_id,
                owner_id=contract.owner_id,
                total_amount=contract.total_amount,
                commission_amount=contract.commission_amount,
                host_payout_amount=contract.host_payout_amount,
                currency=CURRENCY,
                concept=invoice_concept(contract),
                billing_name=legal_name(requester),
                billing_document=requester.tax_id or requester.national_id,
                disclaimer=INVOICE_DISCLAIMER,
                status="issued",
            )
            log_audit(
                self.db,
                user.id,
                "invoice_generated",
                "invoice",
                invoice.id,
                new_data={
                    "contract_id": contract.id,
                    "invoice_number": invoice.invoice_number,
                    "total_amount": invoice.total_amount,
                    "commission_amount": invoice.commission_amount,
                    "host_payout_amount": invoice.host_payout_amount,
                },
                client=client,
            )

        logger.info(f"🧾 Invoice {invoice.invoice_number} generated for contract {contract.contract_number}")
        return invoice, True

    def _unique_invoice_number(self, issued_on: date) -> str:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = generate_invoice_number(issued_on)
            if not self.repo.invoice_number_exists(self.db, number):
                return number
            logger.warning(f"⚠️ Invoice number collision on {number}, regenerating")
        raise StateConflict("Could not allocate a unique invoice number", code="invoice_number_exhausted")
