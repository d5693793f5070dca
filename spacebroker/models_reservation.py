"""
Reservation and escrow payment models
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .immutability import FrozenGuard, LiveDependent, install_frozen_triggers
from .models import generate_public_id

# Columns holding the deposit-time snapshot. Written once, then immutable.
SNAPSHOT_FIELDS = (
    "frozen_listing_data",
    "frozen_media_url",
    "frozen_media_duration",
    "frozen_description",
    "frozen_pricing",
    "frozen_deposit_percentage",
    "frozen_commission_percentage",
    "frozen_unit_price_applied",
    "frozen_snapshot_created_at",
    "frozen_snapshot_ip",
    "frozen_snapshot_user_agent",
)


class SnapshotColumnsMixin:
    """Serialized FrozenSnapshot, shared by reservations and contracts"""

    frozen_listing_data = Column(Text, nullable=True)  # canonical JSON
    frozen_media_url = Column(String(500), nullable=True)
    frozen_media_duration = Column(Integer, nullable=True)
    frozen_description = Column(Text, nullable=True)
    frozen_pricing = Column(Text, nullable=True)  # canonical JSON, every price tier
    frozen_deposit_percentage = Column(Numeric(5, 2), nullable=True)
    frozen_commission_percentage = Column(Numeric(5, 2), nullable=True)
    frozen_unit_price_applied = Column(Numeric(12, 2), nullable=True)
    frozen_snapshot_created_at = Column(DateTime, nullable=True)
    frozen_snapshot_ip = Column(String(64), nullable=True)
    frozen_snapshot_user_agent = Column(String(500), nullable=True)


class Reservation(SnapshotColumnsMixin, Base):
    """
    Reservation created at deposit payment.

    Status workflow (see domain/reservations/state_machine.py):
    pending -> PAID_DEPOSIT_ESCROW -> appointment_scheduled -> visit_completed
    -> confirmed -> contract_signed -> completed, with cancelled/refunded terminal.
    """

    __tablename__ = "reservations"
    __frozen_guard__ = FrozenGuard(
        fields=SNAPSHOT_FIELDS,
        deletable_statuses=("cancelled", "refunded"),
        snapshot_column="frozen_snapshot_created_at",
        dependents=(LiveDependent("contracts", "reservation_id", ("cancelled",)),),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)

    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=True, index=True)

    requested_quantity = Column(Numeric(12, 2), nullable=False)
    period_type = Column(String(20), nullable=False)  # day, week, month, quarter, semester, year
    period_count = Column(Integer, nullable=False)

    # Financial breakdown as computed at deposit time
    total_amount = Column(Numeric(12, 2), nullable=False)
    deposit_amount = Column(Numeric(12, 2), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    deposit_percentage = Column(Numeric(5, 2), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    host_payout_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(String(30), default="pending", nullable=False, index=True)
    cancelled_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    refund_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    payments = relationship("Payment", back_populates="reservation", order_by="Payment.id")
    appointments = relationship("Appointment", back_populates="reservation")
    contract = relationship("Contract", back_populates="reservation", uselist=False)


class Payment(Base):
    """
    Escrow ledger entry. Amounts are signed: refunds are negative.

    escrow_status: held -> released (final signature) | refunded (refund path).
    Extension payments are not escrowed (escrow_status NULL).
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=False, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=True, index=True)
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Original payment a refund entry returns
    refunded_payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_type = Column(String(20), nullable=False)  # deposit, remaining, extension, refund
    escrow_status = Column(String(20), nullable=True)  # held, released, refunded
    method = Column(String(20), nullable=False, default="card")  # card, qr
    status = Column(String(20), nullable=False, default="pending")  # pending, completed, failed
    transaction_reference = Column(String(64), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    reservation = relationship("Reservation", back_populates="payments")


install_frozen_triggers(Reservation)
