"""Legal text repository - active clause versions for contracts and consents"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...models import LegalText

logger = logging.getLogger(__name__)

PLACEHOLDER_VERSION = "0.0"

LIABILITY_LIMITATION = "liability_limitation"
APPLICABLE_LAW = "applicable_law"
INTERMEDIATION = "intermediation"
ANTI_CIRCUMVENTION_REQUESTER = "anti_circumvention_requester"
ANTI_CIRCUMVENTION_OWNER = "anti_circumvention_owner"
CONTRACT_DISCLAIMER = "contract_disclaimer"
SIGNATURE_DISCLAIMER = "signature_disclaimer"
PAYMENTS_REFUNDS = "payments_refunds"

# Clauses bundled into every contract's legal terms
CONTRACT_CLAUSE_TYPES = (
    LIABILITY_LIMITATION,
    APPLICABLE_LAW,
    INTERMEDIATION,
    ANTI_CIRCUMVENTION_REQUESTER,
    ANTI_CIRCUMVENTION_OWNER,
    CONTRACT_DISCLAIMER,
    SIGNATURE_DISCLAIMER,
    PAYMENTS_REFUNDS,
)


class LegalTextRepository:
    """Repository for legal text lookups"""

    @staticmethod
    def get_active(db: Session, text_type: str) -> Optional[LegalText]:
        return (
            db.query(LegalText)
            .filter(LegalText.text_type == text_type, LegalText.is_active.is_(True))
            .order_by(LegalText.id.desc())
            .first()
        )

    @staticmethod
    def active_reference(db: Session, text_type: str) -> dict:
        """
        ``{"legal_text_id", "version"}`` of the active text for ``text_type``.
        Falls back to the placeholder version when nothing is configured.
        """
        text = LegalTextRepository.get_active(db, text_type)
        if not text:
            logger.warning(f"⚠️ No active legal text for {text_type}, using placeholder")
            return {"legal_text_id": None, "version": PLACEHOLDER_VERSION}
        return {"legal_text_id": text.id, "version": text.version}

    @staticmethod
    def contract_clause_bundle(db: Session) -> dict:
        return {
            clause_type: LegalTextRepository.active_reference(db, clause_type)
            for clause_type in CONTRACT_CLAUSE_TYPES
        }
