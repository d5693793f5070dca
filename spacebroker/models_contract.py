"""
Contract, signature code and extension models
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .immutability import FrozenGuard, install_frozen_triggers
from .models import generate_public_id
from .models_reservation import SNAPSHOT_FIELDS, SnapshotColumnsMixin


class Contract(SnapshotColumnsMixin, Base):
    """
    Rental contract issued when the balance is paid.

    The frozen_* columns are a verbatim copy of the reservation's snapshot.
    Status workflow: pending -> signed -> active | extended -> completed, or cancelled.
    """

    __tablename__ = "contracts"
    __frozen_guard__ = FrozenGuard(fields=SNAPSHOT_FIELDS, deletable_statuses=("cancelled",))

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    contract_number = Column(String(32), unique=True, nullable=False, index=True)

    reservation_id = Column(Integer, ForeignKey("reservations.id"), unique=True, nullable=False)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=True)

    requested_quantity = Column(Numeric(12, 2), nullable=False)
    period_type = Column(String(20), nullable=False)
    period_count = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    deposit_amount = Column(Numeric(12, 2), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    host_payout_amount = Column(Numeric(12, 2), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # {clause_type: {"legal_text_id": int | None, "version": str}}
    legal_terms = Column(JSON, nullable=False, default=dict)

    # Requester signature audit trail
    requester_signed = Column(Boolean, default=False, nullable=False)
    requester_signed_at = Column(DateTime, nullable=True)
    requester_sign_ip = Column(String(64), nullable=True)
    requester_sign_user_agent = Column(String(500), nullable=True)
    requester_sign_code_hash = Column(String(128), nullable=True)

    # Owner signature audit trail
    owner_signed = Column(Boolean, default=False, nullable=False)
    owner_signed_at = Column(DateTime, nullable=True)
    owner_sign_ip = Column(String(64), nullable=True)
    owner_sign_user_agent = Column(String(500), nullable=True)
    owner_sign_code_hash = Column(String(128), nullable=True)

    status = Column(String(20), default="pending", nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reservation = relationship("Reservation", back_populates="contract")
    extensions = relationship(
        "ContractExtension", back_populates="contract", order_by="ContractExtension.id"
    )


class PendingOneTimeCode(Base):
    """Hashed signature code; issuing a new one removes unused ones for the pair"""

    __tablename__ = "pending_one_time_codes"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    code_hash = Column(String(128), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ContractExtension(Base):
    """Additional billing period appended to a signed contract, priced at the live rate"""

    __tablename__ = "contract_extensions"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    original_end_date = Column(Date, nullable=False)
    new_end_date = Column(Date, nullable=False)
    period_type = Column(String(20), nullable=False)
    period_count = Column(Integer, nullable=False)
    requested_quantity = Column(Numeric(12, 2), nullable=False)
    unit_price_applied = Column(Numeric(12, 2), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    host_payout_amount = Column(Numeric(12, 2), nullable=False)

    # Fresh anti-circumvention re-acceptance for this commercial act
    anti_circumvention_reaffirmed = Column(Boolean, default=False, nullable=False)
    anti_circumvention_accepted_at = Column(DateTime, nullable=True)
    anti_circumvention_legal_text_id = Column(Integer, ForeignKey("legal_texts.id"), nullable=True)
    anti_circumvention_version = Column(String(20), nullable=True)
    accepted_ip = Column(String(64), nullable=True)
    accepted_user_agent = Column(String(500), nullable=True)

    status = Column(String(20), default="pending", nullable=False)  # pending, active, completed
    created_at = Column(DateTime, server_default=func.now())

    contract = relationship("Contract", back_populates="extensions")


install_frozen_triggers(Contract)
