"""Payment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class RemainingPaymentRequest(BaseModel):
    payment_method: Literal["card", "qr"] = "card"


class RefundRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class PaymentResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    reservation_id: int
    contract_id: Optional[int] = None
    payer_id: int
    refunded_payment_id: Optional[int] = None
    amount: Decimal
    payment_type: str
    escrow_status: Optional[str] = None
    method: str
    status: str
    transaction_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RemainingPaymentResponse(BaseModel):
    """Balance payment together with the contract it produced"""

    payment: PaymentResponse
    contract_id: int
    contract_number: str
    start_date: date
    end_date: date
