"""Appointment router - FastAPI endpoints for site visits and owner availability"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notifier
from ...shared.client_info import ClientInfo, get_client_info
from .schemas import (
    AppointmentCreate,
    AppointmentReject,
    AppointmentReschedule,
    AppointmentResponse,
    AvailabilityResponse,
    AvailabilityUpdate,
)
from .service import AppointmentService

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    db: Session = Depends(get_db), notifier: NotificationDispatcher = Depends(get_notifier)
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, notifier)


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability/{listing_id}", response_model=AvailabilityResponse)
async def get_availability(
    listing_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_availability(listing_id)


@router.put("/availability/{listing_id}", response_model=AvailabilityResponse)
async def set_availability(
    listing_id: int,
    data: AvailabilityUpdate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Replace the owner's visit windows for a listing"""
    return service.set_availability(listing_id, current_user, data)


# ============================================================================
# APPOINTMENTS
# ============================================================================


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
    client: ClientInfo = Depends(get_client_info),
):
    """Request a site visit for a reservation whose deposit is in escrow"""
    return service.create_appointment(current_user, data, client)


@router.get("", response_model=list[AppointmentResponse])
async def get_appointments(
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
    reservation_id: Optional[int] = Query(None),
):
    return service.get_appointments(current_user, reservation_id)


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.get_appointment(appointment_id, current_user)


@router.post("/{appointment_id}/anti-circumvention", response_model=AppointmentResponse)
async def accept_anti_circumvention(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
    client: ClientInfo = Depends(get_client_info),
):
    return service.accept_anti_circumvention(appointment_id, current_user, client)


# ============================================================================
# OWNER ACTIONS
# ============================================================================


@router.put("/{appointment_id}/accept", response_model=AppointmentResponse)
async def accept_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.accept_appointment(appointment_id, current_user)


@router.put("/{appointment_id}/reject", response_model=AppointmentResponse)
async def reject_appointment(
    appointment_id: int,
    data: Optional[AppointmentReject] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    reason = data.reason if data else None
    return service.reject_appointment(appointment_id, current_user, reason)


@router.put("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.reschedule_appointment(appointment_id, current_user, data)


@router.put("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Close the visit, unlocking the balance payment"""
    return service.complete_appointment(appointment_id, current_user)


@router.put("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.complete_appointment(appointment_id, current_user, no_show=True)


# ============================================================================
# REQUESTER ACTIONS
# ============================================================================


@router.put("/{appointment_id}/reschedule/accept", response_model=AppointmentResponse)
async def accept_reschedule(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.accept_reschedule(appointment_id, current_user)


@router.put("/{appointment_id}/reschedule/decline", response_model=AppointmentResponse)
async def decline_reschedule(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    return service.decline_reschedule(appointment_id, current_user)
