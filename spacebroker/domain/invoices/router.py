"""Invoice router - FastAPI endpoints for contract invoices"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.client_info import ClientInfo, get_client_info
from .schemas import InvoiceResponse
from .service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def get_invoice_service(db: Session = Depends(get_db)) -> InvoiceService:
    return InvoiceService(db)


@router.post("/contracts/{contract_id}", response_model=InvoiceResponse, status_code=201)
async def generate_invoice(
    contract_id: int,
    response: Response,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Generate the contract's invoice, or return it with 200 if it already exists"""
    invoice, created = service.generate_invoice(contract_id, current_user, client)
    if not created:
        response.status_code = 200
    return invoice


@router.get("", response_model=list[InvoiceResponse])
async def get_invoices(
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Invoices where the current user is requester or owner"""
    return service.get_invoices(current_user)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    current_user: User = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    return service.get_invoice(invoice_id, current_user)
