"""Invoice domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class InvoiceResponse(BaseModel):
    id: int
    public_id: Optional[str] = None
    invoice_number: str
    contract_id: int
    requester_id: int
    owner_id: int
    total_amount: Decimal
    commission_amount: Decimal
    host_payout_amount: Decimal
    currency: str
    concept: str
    billing_name: Optional[str] = None
    billing_document: Optional[str] = None
    disclaimer: str
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
