# fieldlog/services/notifications.py
import logging

from sqlalchemy.orm import Session

from fieldlog.core.config import settings
from fieldlog.core.errors import ValidationFailed
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.schemas import notification as notification_schema
from fieldlog.services import store

logger = logging.getLogger(__name__)


def validate_outgoing(payload: notification_schema.NotificationCreate) -> str:
    """Checks a message before anything is written. Returns the trimmed text."""
    message = (payload.message or "").strip()
    if not message:
        raise ValidationFailed("Please enter a message")
    if payload.recipient_type == "specific" and payload.recipient_engineer_id is None:
        raise ValidationFailed("Please select an engineer")
    return message


def send(
    db: Session,
    sender: engineer_schema.Engineer,
    payload: notification_schema.NotificationCreate,
) -> notification_schema.Notification:
    try:
        message = validate_outgoing(payload)
    except ValidationFailed as e:
        logger.warning("Rejected notification from %s: %s", sender.employee_id, e.detail)
        raise
    # Broadcasts never carry a recipient, even if the client sent one
    recipient = payload.recipient_engineer_id if payload.recipient_type == "specific" else None
    return store.send_notification(
        db,
        message=message,
        recipient_type=payload.recipient_type,
        recipient_engineer_id=recipient,
        sent_by=sender.id,
    )


def inbox(db: Session, engineer: engineer_schema.Engineer) -> notification_schema.NotificationInbox:
    items = store.list_notifications_for(db, engineer.id, limit=settings.NOTIFICATION_LIMIT)
    return notification_schema.NotificationInbox(
        items=items,
        unread_count=sum(1 for item in items if not item.is_read),
    )


def mark_read(db: Session, engineer: engineer_schema.Engineer, notification_id: int) -> notification_schema.Notification:
    return store.mark_read(db, engineer.id, notification_id)


def mark_all_read(db: Session, engineer: engineer_schema.Engineer) -> int:
    return store.mark_all_read(db, engineer.id, limit=settings.NOTIFICATION_LIMIT)
