"""
Automated status transitions for contracts and reservations
Handles signed → active and active/extended → completed transitions for contracts
Completes the reservation once its contract has run its course
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..domain.contracts.repository import ContractRepository
from ..domain.contracts.service import effective_end_date
from ..domain.reservations.state_machine import ReservationStatus, can_transition, status_of, transition
from ..models_contract import Contract
from ..shared.validators import utcnow

logger = logging.getLogger(__name__)

RUNNING_STATUSES = ("active", "extended")


def update_contract_statuses(db: Session, today: Optional[date] = None) -> dict:
    """
    Update contract and reservation statuses based on dates
    Should be run as a scheduled job (see worker.py cron)

    Contract statuses: pending → signed → active → (extended) → completed
    Reservation: contract_signed → completed alongside its contract

    Returns:
        dict: Summary of status changes made
    """
    summary = {
        "signed_to_active": 0,
        "active_to_completed": 0,
        "reservations_completed": 0,
        "total_updated": 0,
    }

    try:
        today = today or utcnow().date()

        # 1. Update SIGNED → ACTIVE (start date has arrived)
        signed_contracts = (
            db.query(Contract)
            .filter(Contract.status == "signed", Contract.start_date <= today)
            .all()
        )

        for contract in signed_contracts:
            contract.status = "active"
            summary["signed_to_active"] += 1
            logger.info(f"✅ Contract {contract.id} transitioned: signed → active")

        # Contracts activated above must be visible to the next query
        db.flush()

        # 2. Update ACTIVE/EXTENDED → COMPLETED (effective end date has passed)
        running_contracts = db.query(Contract).filter(Contract.status.in_(RUNNING_STATUSES)).all()

        for contract in running_contracts:
            latest_extension = ContractRepository.get_latest_active_extension(db, contract.id)
            end_date = effective_end_date(contract, latest_extension)
            if end_date >= today:
                continue

            previous = contract.status
            contract.status = "completed"
            for extension in contract.extensions:
                if extension.status == "active":
                    extension.status = "completed"
            summary["active_to_completed"] += 1
            logger.info(f"✅ Contract {contract.id} transitioned: {previous} → completed (ended {end_date})")

            reservation = contract.reservation
            if reservation and can_transition(status_of(reservation), ReservationStatus.COMPLETED):
                transition(reservation, ReservationStatus.COMPLETED)
                summary["reservations_completed"] += 1

        total = summary["signed_to_active"] + summary["active_to_completed"]
        if total > 0:
            db.commit()
            summary["total_updated"] = total
            logger.info(f"📊 Status automation summary: {summary}")
        else:
            logger.debug("ℹ️ No contract status updates needed")

        return summary

    except Exception as e:
        logger.error(f"❌ Error updating contract statuses: {str(e)}")
        db.rollback()
        raise
