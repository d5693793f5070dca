"""Contract router - FastAPI endpoints for contracts, signatures and extensions"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notifier
from ...shared.client_info import ClientInfo, get_client_info
from .extension import ExtensionService
from .schemas import (
    ContractResponse,
    ExtensionCreate,
    ExtensionResponse,
    SignatureCodeResponse,
    SignContractRequest,
)
from .service import ContractService
from .signing import SignatureService

router = APIRouter(prefix="/contracts", tags=["Contracts"])


def get_contract_service(db: Session = Depends(get_db)) -> ContractService:
    """Dependency injection for ContractService"""
    return ContractService(db)


def get_signature_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> SignatureService:
    return SignatureService(db, notifier)


def get_extension_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> ExtensionService:
    return ExtensionService(db, notifier)


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[ContractResponse])
async def get_contracts(
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
    status: Optional[str] = Query(None, description="Filter by contract status"),
):
    """Contracts where the current user is requester or owner"""
    return service.get_contracts(current_user, status)


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: ContractService = Depends(get_contract_service),
):
    return service.get_contract(contract_id, current_user)


# ============================================================================
# SIGNATURES
# ============================================================================


@router.post("/{contract_id}/request-code", response_model=SignatureCodeResponse)
async def request_signature_code(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: SignatureService = Depends(get_signature_service),
):
    """Send a one-time signature code to the caller"""
    issued = service.request_code(contract_id, current_user)
    return SignatureCodeResponse(contract_id=issued.contract_id, expires_at=issued.expires_at)


@router.post("/{contract_id}/sign", response_model=ContractResponse)
async def sign_contract(
    contract_id: int,
    data: SignContractRequest,
    current_user: User = Depends(get_current_user),
    service: SignatureService = Depends(get_signature_service),
    client: ClientInfo = Depends(get_client_info),
):
    return service.sign(contract_id, current_user, data.code, client)


# ============================================================================
# EXTENSIONS
# ============================================================================


@router.post("/{contract_id}/extensions", response_model=ExtensionResponse, status_code=201)
async def extend_contract(
    contract_id: int,
    data: ExtensionCreate,
    current_user: User = Depends(get_current_user),
    service: ExtensionService = Depends(get_extension_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Append a billing period priced at the listing's current rate"""
    return service.extend_contract(contract_id, current_user, data, client)


@router.get("/{contract_id}/extensions", response_model=list[ExtensionResponse])
async def get_extensions(
    contract_id: int,
    current_user: User = Depends(get_current_user),
    service: ExtensionService = Depends(get_extension_service),
):
    return service.get_extensions(contract_id, current_user)
