"""Audit trail for contractual actions, written inside the caller's transaction"""

import logging
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from ..models import AuditLog
from ..shared.client_info import ClientInfo

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int],
    old_data: Optional[dict[str, Any]] = None,
    new_data: Optional[dict[str, Any]] = None,
    client: Optional[ClientInfo] = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_data=jsonable_encoder(old_data) if old_data is not None else None,
        new_data=jsonable_encoder(new_data) if new_data is not None else None,
        ip_address=client.ip if client else None,
        user_agent=client.user_agent if client else None,
    )
    db.add(entry)
    logger.debug(f"📝 Audit {action} on {entity_type}:{entity_id} by user {user_id}")
    return entry
