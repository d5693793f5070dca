"""Reservation router - FastAPI endpoints for the reservation ledger"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notifier
from ...shared.client_info import ClientInfo, get_client_info
from .schemas import (
    FrozenSnapshotResponse,
    ReservationCancel,
    ReservationCreate,
    ReservationResponse,
)
from .service import ReservationService

router = APIRouter(prefix="/reservations", tags=["Reservations"])


def get_reservation_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> ReservationService:
    """Dependency injection for ReservationService"""
    return ReservationService(db, notifier)


@router.post("", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    data: ReservationCreate,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Reserve listing capacity and pay the escrowed deposit"""
    return service.create_reservation(current_user, data, client)


@router.get("", response_model=list[ReservationResponse])
async def get_reservations(
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
    role: Optional[Literal["requester", "owner"]] = Query(None, description="Filter by your role"),
    status: Optional[str] = Query(None, description="Filter by reservation status"),
):
    return service.get_reservations(current_user, role, status)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.get_reservation(reservation_id, current_user)


@router.get("/{reservation_id}/snapshot", response_model=FrozenSnapshotResponse)
async def get_frozen_snapshot(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
):
    """Frozen terms captured at deposit time, with an integrity report"""
    return service.get_frozen_snapshot(reservation_id, current_user)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: int,
    data: Optional[ReservationCancel] = None,
    current_user: User = Depends(get_current_user),
    service: ReservationService = Depends(get_reservation_service),
    client: ClientInfo = Depends(get_client_info),
):
    reason = data.reason if data else None
    return service.cancel_reservation(reservation_id, current_user, reason, client)
