"""Contract service - contract issuance and queries"""

import logging
import secrets
import string
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...database import unit_of_work
from ...errors import DuplicateContract, LegalIdentityIncomplete, NotFoundError
from ...models import User
from ...models_contract import Contract, ContractExtension
from ...models_reservation import SNAPSHOT_FIELDS, Reservation
from ...services.audit import log_audit
from ...shared.client_info import ClientInfo
from ...shared.validators import utcnow
from ..legal.repository import LegalTextRepository
from ..reservations.pricing import RatePeriod
from ..users.identity import require_legal_identity
from .periods import add_periods
from .repository import ContractRepository

logger = logging.getLogger(__name__)

CONTRACT_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
CONTRACT_NUMBER_SUFFIX_LENGTH = 8
MAX_NUMBER_ATTEMPTS = 5


def generate_contract_number(issued_on: date) -> str:
    """CTR-YYYYMM-XXXXXXXX with a random upper-case alphanumeric suffix"""
    suffix = "".join(
        secrets.choice(CONTRACT_NUMBER_ALPHABET) for _ in range(CONTRACT_NUMBER_SUFFIX_LENGTH)
    )
    return f"CTR-{issued_on:%Y%m}-{suffix}"


def effective_end_date(contract: Contract, latest_extension: Optional[ContractExtension]) -> date:
    if latest_extension and latest_extension.new_end_date > contract.end_date:
        return latest_extension.new_end_date
    return contract.end_date


class ContractService:
    """Service layer for contract issuance and lookups"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ContractRepository()

    def get_contracts(self, user: User, status: Optional[str] = None) -> list[Contract]:
        return self.repo.get_contracts(self.db, user.id, status)

    def get_contract(self, contract_id: int, user: User) -> Contract:
        """Get a contract the user is a party to"""
        contract = self.repo.get_contract(self.db, contract_id)
        if not contract or user.id not in (contract.requester_id, contract.owner_id):
            raise NotFoundError("Contract not found")
        return contract

    def get_effective_end_date(self, contract: Contract) -> date:
        return effective_end_date(
            contract, self.repo.get_latest_active_extension(self.db, contract.id)
        )

    def issue_contract(self, reservation: Reservation, issued_on: Optional[date] = None) -> Contract:
        """
        Materialize the contract for a reservation whose balance was just paid.

        Runs inside the balance payment's unit of work. The frozen terms are
        copied column by column from the reservation; the live listing is never
        consulted.

        Raises:
            DuplicateContract: If the reservation already has a contract
            LegalIdentityIncomplete: If either party lacks their identity document
        """
        if self.repo.get_contract_by_reservation(self.db, reservation.id):
            logger.warning(f"⚠️ Duplicate contract trigger for reservation {reservation.id}")
            raise DuplicateContract(f"Reservation {reservation.id} already has a contract")

        self.require_party_identities(reservation)

        start_date = issued_on or utcnow().date()
        end_date = add_periods(
            start_date, RatePeriod(reservation.period_type), reservation.period_count
        )

        frozen_terms = {field: getattr(reservation, field) for field in SNAPSHOT_FIELDS}

        contract = self.repo.create_contract(
            self.db,
            contract_number=self._unique_contract_number(start_date),
            reservation_id=reservation.id,
            requester_id=reservation.requester_id,
            owner_id=reservation.owner_id,
            listing_id=reservation.listing_id,
            requested_quantity=reservation.requested_quantity,
            period_type=reservation.period_type,
            period_count=reservation.period_count,
            total_amount=reservation.total_amount,
            deposit_amount=reservation.deposit_amount,
            remaining_amount=reservation.remaining_amount,
            commission_amount=reservation.commission_amount,
            host_payout_amount=reservation.total_amount - reservation.commission_amount,
            start_date=start_date,
            end_date=end_date,
            legal_terms=LegalTextRepository.contract_clause_bundle(self.db),
            requester_signed=False,
            owner_signed=False,
            status="pending",
            **frozen_terms,
        )

        logger.info(
            f"📝 Contract {contract.contract_number} issued for reservation {reservation.id} "
            f"({start_date} → {end_date})"
        )
        return contract

    def require_party_identities(
        self,
        reservation: Reservation,
        actor_id: Optional[int] = None,
        client: Optional[ClientInfo] = None,
    ) -> None:
        """
        Both parties must be legally identifiable before a contract names them.

        When an actor is given the refusal is recorded in the audit trail in
        its own transaction, so call it that way only outside a unit of work.
        """
        for party, user_id in (
            ("requester", reservation.requester_id),
            ("owner", reservation.owner_id),
        ):
            try:
                require_legal_identity(self.db.get(User, user_id), party)
            except LegalIdentityIncomplete as e:
                logger.warning(
                    f"⚠️ Contract blocked for reservation {reservation.id}: {party} {user_id} missing {e.missing}"
                )
                if actor_id is not None:
                    with unit_of_work(self.db):
                        log_audit(
                            self.db,
                            actor_id,
                            "legal_identity_incomplete",
                            "user",
                            user_id,
                            new_data={
                                "missing": e.missing,
                                "blocked_operation": "contract",
                                "reservation_id": reservation.id,
                            },
                            client=client,
                        )
                raise

    def _unique_contract_number(self, issued_on: date) -> str:
        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = generate_contract_number(issued_on)
            if not self.repo.contract_number_exists(self.db, number):
                return number
            logger.warning(f"⚠️ Contract number collision on {number}, regenerating")
        raise DuplicateContract("Could not allocate a unique contract number")
