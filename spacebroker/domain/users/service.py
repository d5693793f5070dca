"""User service - account-level consents and legal identity"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...database import unit_of_work
from ...models import User
from ...services.audit import log_audit
from ...shared.client_info import ClientInfo
from ...shared.validators import sanitize_text, utcnow
from ..legal.repository import ANTI_CIRCUMVENTION_REQUESTER, LegalTextRepository
from .schemas import LegalIdentityUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def accept_anti_circumvention(self, user: User, client: Optional[ClientInfo] = None) -> User:
        """
        Record account-level anti-circumvention consent.

        Consent is one-way: accepting again keeps the original timestamp
        and version.
        """
        if user.anti_circumvention_accepted:
            logger.debug(f"ℹ️ User {user.id} already accepted anti-circumvention")
            return user

        reference = LegalTextRepository.active_reference(self.db, ANTI_CIRCUMVENTION_REQUESTER)
        with unit_of_work(self.db):
            user.anti_circumvention_accepted = True
            user.anti_circumvention_accepted_at = utcnow()
            user.anti_circumvention_version = reference["version"]
            log_audit(
                self.db,
                user.id,
                "anti_circumvention_accepted",
                "user",
                user.id,
                new_data={"version": reference["version"]},
                client=client,
            )

        logger.info(f"✅ User {user.id} accepted anti-circumvention v{reference['version']}")
        return user

    def update_legal_identity(
        self, user: User, data: LegalIdentityUpdate, client: Optional[ClientInfo] = None
    ) -> User:
        """Set the identity printed on the user's contracts and invoices"""
        old = {
            "person_type": user.person_type,
            "national_id": user.national_id,
            "tax_id": user.tax_id,
            "company_name": user.company_name,
        }
        new = {
            "person_type": data.person_type.value,
            "national_id": sanitize_text(data.national_id, 50),
            "tax_id": sanitize_text(data.tax_id, 50),
            "company_name": sanitize_text(data.company_name, 255),
        }
        with unit_of_work(self.db):
            for field, value in new.items():
                setattr(user, field, value)
            log_audit(
                self.db,
                user.id,
                "legal_identity_updated",
                "user",
                user.id,
                old_data=old,
                new_data=new,
                client=client,
            )

        logger.info(f"🪪 User {user.id} updated legal identity ({new['person_type']})")
        return user
