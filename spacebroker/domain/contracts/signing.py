"""
Dual-signature protocol

Each party signs with a short-lived one-time code. The requester signs first;
the owner's signature completes the contract and is the only path that
releases escrow.
"""

import hashlib
import hmac
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import OTP_EXPIRY_MINUTES, OTP_LENGTH, SECRET_KEY
from ...database import unit_of_work
from ...errors import (
    AlreadySigned,
    CodeExpired,
    InvalidCode,
    NoPendingCode,
    RequesterMustSignFirst,
    StateConflict,
)
from ...models import User
from ...models_contract import Contract
from ...services import notification_service as events
from ...services.audit import log_audit
from ...services.notification_service import NotificationDispatcher
from ...shared.client_info import ClientInfo
from ...shared.validators import utcnow
from ..payments.service import EscrowPaymentService
from ..reservations.state_machine import ReservationStatus, transition
from .repository import ContractRepository
from .service import ContractService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCode:
    contract_id: int
    user_id: int
    code: str
    expires_at: datetime


def generate_code(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


def hash_code(code: str, contract_id: int, user_id: int) -> str:
    """Keyed hash binding the code to its contract and signer"""
    message = f"{contract_id}:{user_id}:{code}".encode("utf-8")
    return hmac.new(SECRET_KEY.encode("utf-8"), message, hashlib.sha256).hexdigest()


class SignatureService:
    """Service layer for OTP-gated contract signatures"""

    def __init__(self, db: Session, notifier: Optional[NotificationDispatcher] = None):
        self.db = db
        self.repo = ContractRepository()
        self.contract_service = ContractService(db)
        self.notifier = notifier or NotificationDispatcher(db)
        self.payments = EscrowPaymentService(db, self.notifier)

    def _get_signable_contract(self, contract_id: int, user: User) -> Contract:
        contract = self.contract_service.get_contract(contract_id, user)
        if contract.status != "pending":
            raise StateConflict(
                f"Contract is '{contract.status}' and cannot be signed", code="contract_not_signable"
            )
        return contract

    @staticmethod
    def _check_signing_order(contract: Contract, user: User) -> bool:
        """Returns True when ``user`` signs as requester"""
        if user.id == contract.requester_id:
            if contract.requester_signed:
                raise AlreadySigned("You have already signed this contract")
            return True

        if contract.owner_signed:
            raise AlreadySigned("You have already signed this contract")
        if not contract.requester_signed:
            raise RequesterMustSignFirst("The requester must sign before the owner")
        return False

    def request_code(self, contract_id: int, user: User) -> IssuedCode:
        """Issue a fresh code for (user, contract), invalidating unused prior ones"""
        contract = self._get_signable_contract(contract_id, user)
        self._check_signing_order(contract, user)

        code = generate_code()
        expires_at = utcnow() + timedelta(minutes=OTP_EXPIRY_MINUTES)

        with unit_of_work(self.db):
            removed = self.repo.delete_unused_codes(self.db, user.id, contract.id)
            self.repo.create_code(
                self.db,
                user_id=user.id,
                contract_id=contract.id,
                code_hash=hash_code(code, contract.id, user.id),
                expires_at=expires_at,
                used=False,
            )

        if removed:
            logger.info(f"🔐 Invalidated {removed} previous code(s) for contract {contract.id}")
        logger.info(f"🔐 Signature code issued for contract {contract.id}, user {user.id}")

        self.notifier.notify(
            events.SIGNATURE_CODE,
            user.id,
            {
                "contract_id": contract.id,
                "contract_number": contract.contract_number,
                "code": code,
                "expires_at": expires_at,
            },
            redact=("code",),
        )
        return IssuedCode(contract_id=contract.id, user_id=user.id, code=code, expires_at=expires_at)

    def _consume_code(self, contract: Contract, user: User, code: str) -> str:
        pending = self.repo.get_latest_code(self.db, user.id, contract.id)
        if not pending:
            raise NoPendingCode("No signature code has been requested")
        if pending.used:
            raise InvalidCode("This code has already been used")

        now = utcnow()
        if pending.expires_at < now:
            with unit_of_work(self.db):
                self.db.delete(pending)
            logger.warning(f"⚠️ Expired signature code discarded for contract {contract.id}")
            raise CodeExpired("The signature code has expired, request a new one")

        code_hash = hash_code(code.strip(), contract.id, user.id)
        if not hmac.compare_digest(pending.code_hash, code_hash):
            logger.warning(f"⚠️ Invalid signature code for contract {contract.id}, user {user.id}")
            raise InvalidCode("Invalid signature code")

        pending.used = True
        pending.used_at = now
        return code_hash

    def sign(
        self, contract_id: int, user: User, code: str, client: Optional[ClientInfo] = None
    ) -> Contract:
        """
        Record the caller's signature.

        The owner's signature flips the contract to signed, the reservation to
        contract_signed and every held payment to released, all at once.
        """
        contract = self._get_signable_contract(contract_id, user)
        as_requester = self._check_signing_order(contract, user)
        client = client or ClientInfo()

        # Marks the code used in-session; committed together with the signature
        code_hash = self._consume_code(contract, user, code)

        released = 0
        with unit_of_work(self.db):
            now = utcnow()

            if as_requester:
                contract.requester_signed = True
                contract.requester_signed_at = now
                contract.requester_sign_ip = client.ip
                contract.requester_sign_user_agent = client.user_agent
                contract.requester_sign_code_hash = code_hash
            else:
                contract.owner_signed = True
                contract.owner_signed_at = now
                contract.owner_sign_ip = client.ip
                contract.owner_sign_user_agent = client.user_agent
                contract.owner_sign_code_hash = code_hash
                contract.status = "signed"
                transition(contract.reservation, ReservationStatus.CONTRACT_SIGNED)
                released = self.payments.release_held_escrow(contract.reservation)

            log_audit(
                self.db,
                user.id,
                "contract_signed_requester" if as_requester else "contract_signed_owner",
                "contract",
                contract.id,
                new_data={"status": contract.status, "released_payments": released},
                client=client,
            )

        if as_requester:
            logger.info(f"✍️ Requester signed contract {contract.contract_number}")
            self.notifier.notify(
                events.CONTRACT_SIGNED,
                contract.owner_id,
                {"contract_id": contract.id, "signed_by": "requester"},
            )
        else:
            logger.info(
                f"✅ Contract {contract.contract_number} fully signed, {released} payment(s) released"
            )
            for party_id in (contract.requester_id, contract.owner_id):
                self.notifier.notify(
                    events.CONTRACT_SIGNED,
                    party_id,
                    {"contract_id": contract.id, "signed_by": "owner", "status": contract.status},
                )
        return contract
