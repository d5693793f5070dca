"""
Invoice model
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models import generate_public_id


class Invoice(Base):
    """
    Non-fiscal platform invoice for a contract, one per contract.

    Amounts are copied from the contract's frozen figures at generation time.
    """

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    invoice_number = Column(String(32), unique=True, nullable=False, index=True)

    contract_id = Column(Integer, ForeignKey("contracts.id"), unique=True, nullable=False)
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    host_payout_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    concept = Column(String(500), nullable=False)

    # Billed party as identified when the invoice was generated
    billing_name = Column(String(255), nullable=True)
    billing_document = Column(String(50), nullable=True)

    disclaimer = Column(Text, nullable=False)
    status = Column(String(20), default="issued", nullable=False)  # issued, void
    created_at = Column(DateTime, server_default=func.now())

    contract = relationship("Contract")
