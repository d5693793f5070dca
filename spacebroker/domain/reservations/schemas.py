"""Reservation domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .pricing import RatePeriod

PaymentMethod = Literal["card", "qr"]


class ReservationCreate(BaseModel):
    """Schema for reserving a listing and paying the deposit"""

    listing_id: int
    requested_quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    period_type: RatePeriod
    period_count: int = Field(..., ge=1, le=120)
    payment_method: PaymentMethod = "card"


class ReservationCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class ReservationResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    requester_id: int
    owner_id: int
    listing_id: Optional[int]
    requested_quantity: Decimal
    period_type: str
    period_count: int
    total_amount: Decimal
    deposit_amount: Decimal
    remaining_amount: Decimal
    deposit_percentage: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    host_payout_amount: Decimal
    status: str
    frozen_unit_price_applied: Optional[Decimal] = None
    frozen_snapshot_created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FrozenSnapshotResponse(BaseModel):
    reservation_id: int
    snapshot: dict
    integrity: dict
