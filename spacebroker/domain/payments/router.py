"""Payment router - FastAPI endpoints for escrow payments"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notifier
from ...shared.client_info import ClientInfo, get_client_info
from .schemas import PaymentResponse, RefundRequest, RemainingPaymentRequest, RemainingPaymentResponse
from .service import EscrowPaymentService

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> EscrowPaymentService:
    """Dependency injection for EscrowPaymentService"""
    return EscrowPaymentService(db, notifier)


@router.get("", response_model=list[PaymentResponse])
async def get_payments(
    current_user: User = Depends(get_current_user),
    service: EscrowPaymentService = Depends(get_payment_service),
):
    """Ledger entries on every reservation the caller is a party to"""
    return service.get_payments(current_user)


@router.post(
    "/reservations/{reservation_id}/remaining",
    response_model=RemainingPaymentResponse,
    status_code=201,
)
async def pay_remaining(
    reservation_id: int,
    data: RemainingPaymentRequest,
    current_user: User = Depends(get_current_user),
    service: EscrowPaymentService = Depends(get_payment_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Pay the balance; the contract is issued in the same transaction"""
    payment, contract = service.record_remaining(
        current_user, reservation_id, data.payment_method, client
    )
    return RemainingPaymentResponse(
        payment=PaymentResponse.model_validate(payment),
        contract_id=contract.id,
        contract_number=contract.contract_number,
        start_date=contract.start_date,
        end_date=contract.end_date,
    )


@router.post("/reservations/{reservation_id}/refund", response_model=list[PaymentResponse])
async def refund_reservation(
    reservation_id: int,
    data: Optional[RefundRequest] = None,
    current_user: User = Depends(get_current_user),
    service: EscrowPaymentService = Depends(get_payment_service),
    client: ClientInfo = Depends(get_client_info),
):
    reason = data.reason if data else None
    return service.record_refund(current_user, reservation_id, reason, client)
