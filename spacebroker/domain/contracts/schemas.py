"""Contract domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..reservations.pricing import RatePeriod


class SignatureCodeResponse(BaseModel):
    """The code itself is delivered out-of-band, never in the response"""

    contract_id: int
    expires_at: datetime
    message: str = "Signature code sent"


class SignContractRequest(BaseModel):
    code: str = Field(..., min_length=4, max_length=12)

    @field_validator("code")
    @classmethod
    def digits_only(cls, value: str) -> str:
        value = value.strip()
        if not value.isdigit():
            raise ValueError("Code must contain digits only")
        return value


class ExtensionCreate(BaseModel):
    period_type: RatePeriod
    period_count: int = Field(..., ge=1, le=120)
    payment_method: Literal["card", "qr"] = "card"
    accept_anti_circumvention: bool = False


class ContractResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    contract_number: str
    reservation_id: int
    requester_id: int
    owner_id: int
    listing_id: Optional[int] = None
    requested_quantity: Decimal
    period_type: str
    period_count: int
    total_amount: Decimal
    deposit_amount: Decimal
    remaining_amount: Decimal
    commission_amount: Decimal
    host_payout_amount: Decimal
    start_date: date
    end_date: date
    legal_terms: dict
    frozen_listing_data: Optional[str] = None
    frozen_pricing: Optional[str] = None
    frozen_unit_price_applied: Optional[Decimal] = None
    frozen_deposit_percentage: Optional[Decimal] = None
    frozen_commission_percentage: Optional[Decimal] = None
    frozen_snapshot_created_at: Optional[datetime] = None
    requester_signed: bool
    requester_signed_at: Optional[datetime] = None
    owner_signed: bool
    owner_signed_at: Optional[datetime] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExtensionResponse(BaseModel):
    id: int
    contract_id: int
    payment_id: Optional[int] = None
    original_end_date: date
    new_end_date: date
    period_type: str
    period_count: int
    unit_price_applied: Decimal
    amount: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    host_payout_amount: Decimal
    anti_circumvention_reaffirmed: bool
    anti_circumvention_version: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
