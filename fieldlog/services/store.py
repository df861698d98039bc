# fieldlog/services/store.py
"""
Store access for engineers, activities, service categories and notifications.

This is the only module that touches ORM rows for those tables. Everything
it returns is a pydantic schema, so the filtering/analytics/calendar code
never sees a loosely-shaped database row. Every committed write publishes a
change signal on the change feed.
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from fieldlog.core.errors import Conflict, NotFound, StoreError, ValidationFailed
from fieldlog.db import models
from fieldlog.schemas import activity as activity_schema
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.schemas import notification as notification_schema
from fieldlog.services.changes import get_change_feed

logger = logging.getLogger(__name__)

# The only role a login account can attach to by matching email
SELF_SERVICE_ROLE = "engineer"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _transaction(db: Session, action: str):
    """Commit on success; roll back and translate database errors otherwise."""
    try:
        yield
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Integrity error while trying to %s: %s", action, e.orig)
        raise Conflict(f"Could not {action}: conflicts with existing data") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Store request failed while trying to %s", action)
        raise StoreError(f"Failed to {action}") from e
    except Exception:
        db.rollback()
        raise


@contextmanager
def _reading(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("Store read failed while trying to %s", action)
        raise StoreError(f"Failed to {action}") from e


def _publish(table: str, action: str, row_id: Optional[int] = None) -> None:
    get_change_feed().publish(table, action, row_id)


# --- Mapping ---

def to_engineer(row: models.Engineer) -> engineer_schema.Engineer:
    return engineer_schema.Engineer.model_validate(row)


def to_activity_record(row: models.DailyActivity) -> activity_schema.ActivityRecord:
    return activity_schema.ActivityRecord(
        id=row.id,
        activity_date=row.activity_date,
        customer_name=row.customer_name,
        site_location=row.site_location,
        notes=row.notes,
        status=row.status or "executed",
        total_hours=row.total_hours or 0,
        submitted_at=row.submitted_at,
        version=row.version or 1,
        engineer=engineer_schema.EngineerRef.model_validate(row.engineer),
        activity_hours=[
            activity_schema.ActivityHour(
                service_category_id=ah.service_category_id,
                category_name=ah.category.name if ah.category else None,
                hours=ah.hours,
                description=ah.description,
            )
            for ah in row.hours
        ],
    )


def to_notification(row: models.Notification, is_read: bool = False) -> notification_schema.Notification:
    return notification_schema.Notification(
        id=row.id,
        message=row.message,
        recipient_type=row.recipient_type,
        recipient_engineer_id=row.recipient_engineer_id,
        sent_by=row.sent_by,
        sent_at=row.sent_at,
        is_read=is_read,
    )


# --- Engineers ---

def _engineer_row(db: Session, engineer_id: int) -> models.Engineer:
    row = db.query(models.Engineer).filter(models.Engineer.id == engineer_id).first()
    if not row:
        raise NotFound("Engineer not found")
    return row


def _check_engineer_unique(db: Session, email: Optional[str], employee_id: Optional[str], exclude_id: Optional[int] = None):
    query = db.query(models.Engineer)
    if exclude_id is not None:
        query = query.filter(models.Engineer.id != exclude_id)
    if email and query.filter(models.Engineer.email == email).first():
        raise Conflict("Email already registered to an engineer")
    if employee_id and query.filter(models.Engineer.employee_id == employee_id).first():
        raise Conflict(f"Employee ID '{employee_id}' already in use")


def list_engineers(
    db: Session,
    roles: Optional[Iterable[str]] = None,
    active_only: bool = False,
) -> List[engineer_schema.Engineer]:
    with _reading("load engineers"):
        query = db.query(models.Engineer)
        if roles is not None:
            query = query.filter(models.Engineer.role.in_(list(roles)))
        if active_only:
            query = query.filter(models.Engineer.is_active.is_(True))
        return [to_engineer(row) for row in query.order_by(models.Engineer.full_name).all()]


def get_engineer(db: Session, engineer_id: int) -> engineer_schema.Engineer:
    with _reading("load engineer"):
        return to_engineer(_engineer_row(db, engineer_id))


def get_engineer_for_user(db: Session, user_id: int) -> Optional[engineer_schema.Engineer]:
    with _reading("load engineer profile"):
        row = db.query(models.Engineer).filter(models.Engineer.user_id == user_id).first()
        return to_engineer(row) if row else None


def create_engineer(
    db: Session,
    fields: engineer_schema.EngineerCreate,
    user_id: Optional[int] = None,
) -> engineer_schema.Engineer:
    with _transaction(db, "create engineer"):
        _check_engineer_unique(db, fields.email, fields.employee_id)
        if user_id is None and fields.role == SELF_SERVICE_ROLE:
            # Engineer profiles attach to an existing login account with the same email;
            # admin roles are only linked through link_engineer_account
            account = db.query(models.User).filter(models.User.email == fields.email).first()
            if account and account.engineer is None:
                user_id = account.id
        row = models.Engineer(user_id=user_id, **fields.model_dump())
        db.add(row)
    db.refresh(row)
    logger.info("Created engineer %s (%s)", row.employee_id, row.role)
    _publish("engineers", "insert", row.id)
    return to_engineer(row)


def claim_engineer_profile(db: Session, user_id: int, email: str) -> Optional[engineer_schema.Engineer]:
    """
    Link an unclaimed engineer profile with this email to the login account,
    if there is one. Registration does not prove ownership of the email, so
    profiles with an admin role are never claimed this way.
    """
    with _transaction(db, "claim engineer profile"):
        row = db.query(models.Engineer).filter(
            models.Engineer.email == email, models.Engineer.user_id.is_(None)
        ).first()
        if row is not None and row.role != SELF_SERVICE_ROLE:
            logger.warning("Account %s tried to claim %s profile %s", user_id, row.role, row.employee_id)
            raise Conflict("This email belongs to an admin profile; ask an administrator to link your account")
        if row is not None:
            row.user_id = user_id
    if row is None:
        return None
    db.refresh(row)
    logger.info("Account %s claimed engineer profile %s", user_id, row.employee_id)
    _publish("engineers", "update", row.id)
    return to_engineer(row)


def link_engineer_account(db: Session, engineer_id: int) -> engineer_schema.Engineer:
    """Admin action: attach the profile to the login account registered with its email."""
    with _transaction(db, "link engineer account"):
        row = _engineer_row(db, engineer_id)
        if row.user_id is not None:
            raise Conflict("Engineer profile is already linked to a login account")
        account = db.query(models.User).filter(models.User.email == row.email).first()
        if account is None:
            raise NotFound(f"No login account registered for {row.email}")
        if account.engineer is not None:
            raise Conflict("That login account already has an engineer profile")
        row.user_id = account.id
        row.updated_at = _now()
    db.refresh(row)
    logger.info("Linked %s profile %s to account %s", row.role, row.employee_id, row.user_id)
    _publish("engineers", "update", row.id)
    return to_engineer(row)


def update_engineer(db: Session, engineer_id: int, fields: engineer_schema.EngineerUpdate) -> engineer_schema.Engineer:
    update_data = fields.model_dump(exclude_unset=True)
    with _transaction(db, "update engineer"):
        row = _engineer_row(db, engineer_id)
        _check_engineer_unique(db, update_data.get("email"), update_data.get("employee_id"), exclude_id=engineer_id)
        for field, value in update_data.items():
            setattr(row, field, value)
        row.updated_at = _now()
    db.refresh(row)
    logger.info("Updated engineer %s: %s", row.employee_id, sorted(update_data))
    _publish("engineers", "update", row.id)
    return to_engineer(row)


def delete_engineer(db: Session, engineer_id: int) -> None:
    with _transaction(db, "delete engineer"):
        row = _engineer_row(db, engineer_id)
        db.delete(row)
    logger.info("Deleted engineer %s", engineer_id)
    _publish("engineers", "delete", engineer_id)


# --- Service categories ---

def list_service_categories(db: Session, active_only: bool = True) -> List[activity_schema.ServiceCategory]:
    with _reading("load service categories"):
        query = db.query(models.ServiceCategory)
        if active_only:
            query = query.filter(models.ServiceCategory.is_active.is_(True))
        return [
            activity_schema.ServiceCategory.model_validate(row)
            for row in query.order_by(models.ServiceCategory.name).all()
        ]


def create_service_category(db: Session, fields: activity_schema.ServiceCategoryCreate) -> activity_schema.ServiceCategory:
    with _transaction(db, "create service category"):
        row = models.ServiceCategory(**fields.model_dump())
        db.add(row)
    db.refresh(row)
    _publish("service_categories", "insert", row.id)
    return activity_schema.ServiceCategory.model_validate(row)


def update_service_category(
    db: Session, category_id: int, fields: activity_schema.ServiceCategoryUpdate
) -> activity_schema.ServiceCategory:
    with _transaction(db, "update service category"):
        row = db.query(models.ServiceCategory).filter(models.ServiceCategory.id == category_id).first()
        if not row:
            raise NotFound("Service category not found")
        for field, value in fields.model_dump(exclude_unset=True).items():
            setattr(row, field, value)
    db.refresh(row)
    _publish("service_categories", "update", row.id)
    return activity_schema.ServiceCategory.model_validate(row)


# --- Activities ---

def _activity_query(db: Session):
    return db.query(models.DailyActivity).options(
        joinedload(models.DailyActivity.engineer),
        selectinload(models.DailyActivity.hours).joinedload(models.ActivityHour.category),
    )


def list_activities(
    db: Session,
    engineer_id: Optional[int] = None,
    activity_date: Optional[date] = None,
) -> List[activity_schema.ActivityRecord]:
    """Newest date first, then newest submission."""
    with _reading("load activities"):
        query = _activity_query(db)
        if engineer_id is not None:
            query = query.filter(models.DailyActivity.engineer_id == engineer_id)
        if activity_date is not None:
            query = query.filter(models.DailyActivity.activity_date == activity_date)
        rows = query.order_by(
            models.DailyActivity.activity_date.desc(),
            models.DailyActivity.submitted_at.desc(),
            models.DailyActivity.id.desc(),
        ).all()
        return [to_activity_record(row) for row in rows]


def get_activity_for_date(db: Session, engineer_id: int, activity_date: date) -> Optional[activity_schema.ActivityRecord]:
    with _reading("load activity"):
        row = _activity_query(db).filter(
            models.DailyActivity.engineer_id == engineer_id,
            models.DailyActivity.activity_date == activity_date,
        ).first()
        return to_activity_record(row) if row else None


def _nonzero_hours(entries: Iterable[activity_schema.ActivityHourIn]) -> List[activity_schema.ActivityHourIn]:
    entries = list(entries)
    category_ids = [entry.service_category_id for entry in entries]
    if len(category_ids) != len(set(category_ids)):
        raise ValidationFailed("Each service category may appear only once per activity")
    return [entry for entry in entries if entry.hours > 0]


def _replace_hours(db: Session, row: models.DailyActivity, entries: List[activity_schema.ActivityHourIn]) -> None:
    """Swap the activity's category rows for `entries` inside the caller's transaction."""
    if entries:
        wanted = {entry.service_category_id for entry in entries}
        known = {
            cid for (cid,) in db.query(models.ServiceCategory.id)
            .filter(models.ServiceCategory.id.in_(wanted)).all()
        }
        unknown = sorted(wanted - known)
        if unknown:
            raise ValidationFailed(f"Unknown service categories: {unknown}")

    row.hours.clear()
    db.flush()
    for entry in entries:
        row.hours.append(models.ActivityHour(
            service_category_id=entry.service_category_id,
            hours=entry.hours,
            description=entry.description or None,
        ))
    row.total_hours = sum(entry.hours for entry in entries)


def upsert_activity(
    db: Session,
    engineer_id: int,
    activity_date: date,
    payload: activity_schema.ActivityIn,
) -> activity_schema.ActivityRecord:
    """
    Create or overwrite the engineer's activity for a date and replace its
    category hours, all in one transaction. Last write wins unless the
    payload carries expected_version, in which case a stale version is a
    Conflict.
    """
    entries = _nonzero_hours(payload.activity_hours)
    if sum(entry.hours for entry in entries) <= 0:
        raise ValidationFailed("Total hours must be greater than zero")

    with _transaction(db, "save activity"):
        row = db.query(models.DailyActivity).filter(
            models.DailyActivity.engineer_id == engineer_id,
            models.DailyActivity.activity_date == activity_date,
        ).with_for_update().first()

        if payload.expected_version is not None:
            current = row.version if row else 0
            if current != payload.expected_version:
                raise Conflict(
                    f"Activity for {activity_date} was changed by another session "
                    f"(version {current}, expected {payload.expected_version})"
                )

        if row is None:
            row = models.DailyActivity(engineer_id=engineer_id, activity_date=activity_date, version=0)
            db.add(row)

        row.customer_name = payload.customer_name
        row.site_location = payload.site_location
        row.notes = payload.notes
        row.status = payload.status
        row.submitted_at = _now()
        row.version = (row.version or 0) + 1
        _replace_hours(db, row, entries)

    logger.info(
        "Saved activity %s for engineer %s on %s (%.2fh, v%d)",
        row.id, engineer_id, activity_date, row.total_hours, row.version,
    )
    _publish("daily_activities", "upsert", row.id)
    return get_activity(db, row.id)


def replace_activity_hours(
    db: Session,
    activity_id: int,
    hours: Iterable[activity_schema.ActivityHourIn],
) -> activity_schema.ActivityRecord:
    entries = _nonzero_hours(hours)
    with _transaction(db, "replace activity hours"):
        row = db.query(models.DailyActivity).filter(models.DailyActivity.id == activity_id).first()
        if not row:
            raise NotFound("Activity not found")
        _replace_hours(db, row, entries)
        row.version = (row.version or 0) + 1
    _publish("activity_hours", "replace", activity_id)
    return get_activity(db, activity_id)


def get_activity(db: Session, activity_id: int) -> activity_schema.ActivityRecord:
    with _reading("load activity"):
        row = _activity_query(db).filter(models.DailyActivity.id == activity_id).first()
        if not row:
            raise NotFound("Activity not found")
        return to_activity_record(row)


def delete_activity(db: Session, activity_id: int, engineer_id: Optional[int] = None) -> None:
    """Delete an activity; with engineer_id set, only if that engineer owns it."""
    with _transaction(db, "delete activity"):
        query = db.query(models.DailyActivity).filter(models.DailyActivity.id == activity_id)
        if engineer_id is not None:
            query = query.filter(models.DailyActivity.engineer_id == engineer_id)
        row = query.first()
        if not row:
            raise NotFound("Activity not found")
        db.delete(row)
    logger.info("Deleted activity %s", activity_id)
    _publish("daily_activities", "delete", activity_id)


# --- Notifications ---

def send_notification(
    db: Session,
    message: str,
    recipient_type: str,
    recipient_engineer_id: Optional[int],
    sent_by: Optional[int],
) -> notification_schema.Notification:
    with _transaction(db, "send notification"):
        if recipient_engineer_id is not None:
            _engineer_row(db, recipient_engineer_id)
        row = models.Notification(
            message=message,
            recipient_type=recipient_type,
            recipient_engineer_id=recipient_engineer_id,
            sent_by=sent_by,
            sent_at=_now(),
        )
        db.add(row)
    db.refresh(row)
    logger.info("Notification %s sent to %s", row.id, recipient_engineer_id or "all engineers")
    _publish("notifications", "insert", row.id)
    return to_notification(row)


def _visible_query(db: Session, engineer_id: int):
    return db.query(models.Notification).filter(
        or_(
            models.Notification.recipient_type == "all",
            models.Notification.recipient_engineer_id == engineer_id,
        )
    )


def list_notifications_for(db: Session, engineer_id: int, limit: int = 20) -> List[notification_schema.Notification]:
    """The engineer's visible notifications, newest first, capped at `limit`."""
    with _reading("load notifications"):
        rows = _visible_query(db, engineer_id).order_by(
            models.Notification.sent_at.desc(), models.Notification.id.desc()
        ).limit(limit).all()
        read_ids = {
            nid for (nid,) in db.query(models.NotificationRead.notification_id)
            .filter(models.NotificationRead.engineer_id == engineer_id).all()
        }
        return [to_notification(row, is_read=row.id in read_ids) for row in rows]


def _mark(db: Session, engineer_id: int, notification_ids: Iterable[int]) -> int:
    already = {
        nid for (nid,) in db.query(models.NotificationRead.notification_id)
        .filter(models.NotificationRead.engineer_id == engineer_id).all()
    }
    marked = 0
    for notification_id in notification_ids:
        if notification_id in already:
            continue
        db.add(models.NotificationRead(notification_id=notification_id, engineer_id=engineer_id, read_at=_now()))
        already.add(notification_id)
        marked += 1
    return marked


def mark_read(db: Session, engineer_id: int, notification_id: int) -> notification_schema.Notification:
    """Mark one visible notification read. Already-read notifications stay read."""
    with _transaction(db, "mark notification read"):
        row = _visible_query(db, engineer_id).filter(models.Notification.id == notification_id).first()
        if not row:
            raise NotFound("Notification not found")
        marked = _mark(db, engineer_id, [notification_id])
    if marked:
        _publish("notifications", "read", notification_id)
    return to_notification(row, is_read=True)


def mark_all_read(db: Session, engineer_id: int, limit: int = 20) -> int:
    """Mark every currently visible notification read; returns how many changed."""
    visible = list_notifications_for(db, engineer_id, limit)
    with _transaction(db, "mark notifications read"):
        marked = _mark(db, engineer_id, [n.id for n in visible if not n.is_read])
    if marked:
        _publish("notifications", "read")
    return marked
