"""
API endpoint for status automation and analytics
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_admin
from ..database import get_db
from ..models import User
from ..models_contract import Contract
from ..services.status_automation import update_contract_statuses

router = APIRouter(prefix="/status", tags=["status"])


class StatusSummary(BaseModel):
    pending: int
    signed: int
    active: int
    extended: int
    cancelled: int
    completed: int


class AutomationResult(BaseModel):
    signed_to_active: int
    active_to_completed: int
    reservations_completed: int
    total_updated: int


@router.get("/analytics", response_model=StatusSummary)
async def get_status_analytics(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Get count of contracts by status where the current user is a party"""
    status_counts = (
        db.query(Contract.status, func.count(Contract.id).label("count"))
        .filter(or_(Contract.requester_id == current_user.id, Contract.owner_id == current_user.id))
        .group_by(Contract.status)
        .all()
    )

    summary = {"pending": 0, "signed": 0, "active": 0, "extended": 0, "cancelled": 0, "completed": 0}
    for status, count in status_counts:
        if status in summary:
            summary[status] = count

    return StatusSummary(**summary)


@router.post("/automation/run", response_model=AutomationResult)
async def run_status_automation(
    current_user: User = Depends(require_admin), db: Session = Depends(get_db)
):
    """
    Manually trigger status automation
    (In production this runs from the worker's daily cron)
    """
    result = update_contract_statuses(db)
    return AutomationResult(**result)
