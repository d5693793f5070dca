"""
Contract extensions

An extension is a new commercial act: it is priced at the listing's current
rate (not the frozen one), paid in full by its own payment, and carries a
fresh anti-circumvention acceptance.
"""

import logging
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CURRENCY
from ...database import unit_of_work
from ...errors import NotFoundError, PermissionDenied, StateConflict, ValidationError
from ...models import User
from ...models_contract import ContractExtension
from ...services import notification_service as events
from ...services.audit import log_audit
from ...services.notification_service import NotificationDispatcher
from ...services.platform_config import get_rate_percentages
from ...shared.client_info import ClientInfo
from ...shared.validators import utcnow
from ..legal.repository import ANTI_CIRCUMVENTION_REQUESTER, LegalTextRepository
from ..payments.repository import PaymentRepository
from ..reservations.pricing import calculate_pricing, price_tier_table, unit_price_for
from ..reservations.repository import ReservationRepository
from .periods import add_periods
from .repository import ContractRepository
from .schemas import ExtensionCreate
from .service import ContractService, effective_end_date

logger = logging.getLogger(__name__)

EXTENDABLE_STATUSES = ("signed", "active", "extended")


class ExtensionService:
    """Service layer for contract extensions"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.repo = ContractRepository()
        self.payments = PaymentRepository()
        self.reservations = ReservationRepository()
        self.contract_service = ContractService(db)
        self.notifier = notifier or NotificationDispatcher(db)

    def get_extensions(self, contract_id: int, user: User) -> list[ContractExtension]:
        contract = self.contract_service.get_contract(contract_id, user)
        return self.repo.get_extensions(self.db, contract.id)

    def extend_contract(
        self,
        contract_id: int,
        user: User,
        data: ExtensionCreate,
        client: Optional[ClientInfo] = None,
    ) -> ContractExtension:
        contract = self.contract_service.get_contract(contract_id, user)
        if contract.requester_id != user.id:
            raise PermissionDenied("Only the requester can extend this contract")
        if contract.status not in EXTENDABLE_STATUSES:
            raise StateConflict(
                f"Contract is '{contract.status}' and cannot be extended",
                code="contract_not_extendable",
            )
        if not data.accept_anti_circumvention:
            raise ValidationError(
                "The anti-circumvention clause must be accepted again to extend",
                code="anti_circumvention_required",
            )

        listing = (
            self.reservations.get_listing(self.db, contract.listing_id)
            if contract.listing_id
            else None
        )
        if not listing or listing.status == "deleted":
            raise NotFoundError("The listing for this contract is no longer available")

        # Live price at extension time
        unit_price = unit_price_for(price_tier_table(listing), data.period_type)
        rates = get_rate_percentages(self.db)
        pricing = calculate_pricing(unit_price, contract.requested_quantity, data.period_count, rates)

        original_end_date = effective_end_date(
            contract, self.repo.get_latest_active_extension(self.db, contract.id)
        )
        new_end_date = add_periods(original_end_date, data.period_type, data.period_count)
        consent = LegalTextRepository.active_reference(self.db, ANTI_CIRCUMVENTION_REQUESTER)
        client = client or ClientInfo()
        previous_status = contract.status

        with unit_of_work(self.db):
            payment = self.payments.create_payment(
                self.db,
                reservation_id=contract.reservation_id,
                contract_id=contract.id,
                payer_id=user.id,
                amount=pricing.total,
                payment_type="extension",
                escrow_status=None,
                method=data.payment_method,
                status="completed",
                transaction_reference=f"EXT-{secrets.token_hex(8).upper()}",
            )
            extension = self.repo.create_extension(
                self.db,
                contract_id=contract.id,
                payment_id=payment.id,
                requester_id=contract.requester_id,
                owner_id=contract.owner_id,
                original_end_date=original_end_date,
                new_end_date=new_end_date,
                period_type=data.period_type.value,
                period_count=data.period_count,
                requested_quantity=contract.requested_quantity,
                unit_price_applied=pricing.unit_price,
                amount=pricing.total,
                commission_percentage=rates.commission_percentage,
                commission_amount=pricing.commission,
                host_payout_amount=pricing.host_payout,
                anti_circumvention_reaffirmed=True,
                anti_circumvention_accepted_at=utcnow(),
                anti_circumvention_legal_text_id=consent["legal_text_id"],
                anti_circumvention_version=consent["version"],
                accepted_ip=client.ip,
                accepted_user_agent=client.user_agent,
                status="active",
            )
            contract.status = "extended"
            log_audit(
                self.db,
                user.id,
                "contract_extended",
                "contract",
                contract.id,
                old_data={"status": previous_status, "end_date": original_end_date},
                new_data={"status": "extended", "end_date": new_end_date, "amount": pricing.total},
                client=client,
            )

        logger.info(
            f"📅 Contract {contract.contract_number} extended to {new_end_date} "
            f"for {pricing.total} at unit price {pricing.unit_price}"
        )
        for party_id in (contract.requester_id, contract.owner_id):
            self.notifier.notify(
                events.CONTRACT_EXTENDED,
                party_id,
                {
                    "contract_id": contract.id,
                    "new_end_date": new_end_date,
                    "amount": pricing.total,
                    "currency": CURRENCY,
                },
            )
        return extension
