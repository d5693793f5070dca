"""User router - current account and consents"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...shared.client_info import ClientInfo, get_client_info
from .schemas import LegalIdentityUpdate, UserResponse
from .service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/me/anti-circumvention", response_model=UserResponse)
async def accept_anti_circumvention(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Accept the platform's anti-circumvention policy (cannot be revoked)"""
    return service.accept_anti_circumvention(current_user, client)


@router.put("/me/legal-identity", response_model=UserResponse)
async def update_legal_identity(
    data: LegalIdentityUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    client: ClientInfo = Depends(get_client_info),
):
    """National ID for natural persons, tax ID and company name for companies"""
    return service.update_legal_identity(current_user, data, client)
