"""
Notification dispatch

Fire-and-forget signals sent after the authoritative transaction commits.
Every event is recorded in ``notification_log``; when a webhook is
configured the event is POSTed to it from a background task once the
response is sent. Failures are logged and never propagate to the caller.
"""

import logging
from typing import Optional

import httpx
from fastapi import BackgroundTasks, Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session, sessionmaker

from ..config import NOTIFICATION_TIMEOUT_SECONDS, NOTIFICATION_WEBHOOK_URL
from ..database import SessionLocal, get_db
from ..models import NotificationLog

logger = logging.getLogger(__name__)

# Events emitted by the reservation/contract lifecycle
DEPOSIT_PAID = "deposit_paid"
BALANCE_PAID = "balance_paid"
CONTRACT_CREATED = "contract_created"
CONTRACT_SIGNED = "contract_signed"
CONTRACT_EXTENDED = "contract_extended"
REFUND_PROCESSED = "refund_processed"
RESERVATION_CANCELLED = "reservation_cancelled"
SIGNATURE_CODE = "signature_code"
APPOINTMENT_REQUESTED = "appointment_requested"
APPOINTMENT_ACCEPTED = "appointment_accepted"
APPOINTMENT_REJECTED = "appointment_rejected"
APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
APPOINTMENT_COMPLETED = "appointment_completed"


class NotificationDispatcher:
    """Records lifecycle events and schedules their delivery; never raises"""

    def __init__(
        self,
        db: Session,
        background_tasks: Optional[BackgroundTasks] = None,
        webhook_url: Optional[str] = NOTIFICATION_WEBHOOK_URL,
    ):
        self.db = db
        self.background_tasks = background_tasks
        self.webhook_url = webhook_url

    def notify(
        self,
        event_type: str,
        recipient_id: Optional[int],
        payload: dict,
        redact: tuple = (),
    ) -> bool:
        """
        Record one event and hand its delivery to the background queue.

        ``redact`` keys are delivered but never stored. Without a webhook the
        log row is the delivery and is marked sent straight away. Returns
        whether the event was recorded.
        """
        try:
            body = jsonable_encoder(payload)
            stored = {key: ("***" if key in redact else value) for key, value in body.items()}
            entry = NotificationLog(
                recipient_id=recipient_id,
                event_type=event_type,
                payload=stored,
                status="pending" if self.webhook_url else "sent",
            )
            self.db.add(entry)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Notification {event_type} for user {recipient_id} not recorded: {e}")
            return False

        if not self.webhook_url:
            logger.debug(f"📭 No notification webhook configured, {event_type} logged only")
        elif self.background_tasks is None:
            logger.warning(f"⚠️ No background queue for {event_type} (log {entry.id}), left pending")
        else:
            self.background_tasks.add_task(
                deliver_notification,
                entry.id,
                event_type,
                recipient_id,
                body,
                webhook_url=self.webhook_url,
                session_factory=sessionmaker(bind=self.db.get_bind()),
            )
        return True


async def deliver_notification(
    log_id: int,
    event_type: str,
    recipient_id: Optional[int],
    body: dict,
    webhook_url: Optional[str] = NOTIFICATION_WEBHOOK_URL,
    session_factory=SessionLocal,
) -> bool:
    """POST one recorded event to the webhook and store the outcome on its log row"""
    status, error_message = "sent", None
    try:
        async with httpx.AsyncClient(timeout=NOTIFICATION_TIMEOUT_SECONDS) as client:
            response = await client.post(
                webhook_url,
                json={"event": event_type, "recipient_id": recipient_id, "payload": body},
            )
            response.raise_for_status()
        logger.info(f"✅ {event_type} notification sent to user {recipient_id}")
    except httpx.HTTPError as e:
        status, error_message = "failed", str(e)[:1000]
        logger.error(f"❌ Failed to deliver {event_type} to user {recipient_id}: {e}")

    db = session_factory()
    try:
        entry = db.get(NotificationLog, log_id)
        if entry is not None:
            entry.status = status
            entry.error_message = error_message
            db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Could not record delivery outcome for notification {log_id}: {e}")
    finally:
        db.close()
    return status == "sent"


def get_notifier(background_tasks: BackgroundTasks, db: Session = Depends(get_db)) -> NotificationDispatcher:
    """Dependency injection for the request-scoped NotificationDispatcher"""
    return NotificationDispatcher(db, background_tasks)
