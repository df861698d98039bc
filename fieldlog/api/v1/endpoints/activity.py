# fieldlog/api/v1/endpoints/activity.py
# Engineer-facing timesheet endpoints: the daily entry form and the personal calendar.
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from fieldlog.core import security
from fieldlog.core.errors import NotFound
from fieldlog.db import session
from fieldlog.schemas import activity as activity_schema
from fieldlog.schemas import analytics as analytics_schema
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.services import calendar, store

router = APIRouter()


# --- Helper Function to build the entry form ---

def build_activity_form(
    activity_date: date,
    record: Optional[activity_schema.ActivityRecord],
    categories: List[activity_schema.ServiceCategory],
) -> activity_schema.ActivityForm:
    """
    Every active category gets a row; stored hours fill in the ones the
    engineer already logged, the rest start at zero. Stored rows for
    categories that have since been deactivated are kept.
    """
    stored = {ah.service_category_id: ah for ah in record.activity_hours} if record else {}
    rows = []
    for category in categories:
        existing = stored.pop(category.id, None)
        rows.append(activity_schema.ActivityHour(
            service_category_id=category.id,
            category_name=category.name,
            hours=existing.hours if existing else 0,
            description=existing.description if existing else None,
        ))
    rows.extend(stored.values())

    if record is None:
        return activity_schema.ActivityForm(activity_date=activity_date, activity_hours=rows)
    return activity_schema.ActivityForm(
        id=record.id,
        activity_date=record.activity_date,
        customer_name=record.customer_name or "",
        site_location=record.site_location or "",
        notes=record.notes or "",
        status=record.status,
        total_hours=record.total_hours,
        version=record.version,
        activity_hours=rows,
    )


# --- API Endpoints ---

@router.get("/categories", response_model=List[activity_schema.ServiceCategory])
def read_service_categories(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """ Active service categories, by name. """
    return store.list_service_categories(db, active_only=True)


@router.get("/activities", response_model=List[activity_schema.ActivityRecord])
def read_my_activities(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    return store.list_activities(db, engineer_id=engineer.id)


@router.get("/activities/calendar", response_model=analytics_schema.CalendarDates)
def read_my_calendar(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """ Executed and planning dates for the caller's own calendar. """
    index = calendar.build_status_index(store.list_activities(db, engineer_id=engineer.id))
    return index.get(engineer.employee_id, calendar.DateSets()).to_schema()


@router.get("/activities/{activity_date}", response_model=activity_schema.ActivityForm)
def read_activity_form(
    activity_date: date,
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """ The stored activity for a date, or a blank form with every active category at zero hours. """
    record = store.get_activity_for_date(db, engineer.id, activity_date)
    categories = store.list_service_categories(db, active_only=True)
    return build_activity_form(activity_date, record, categories)


@router.put("/activities/{activity_date}", response_model=activity_schema.ActivityRecord)
def save_activity(
    activity_date: date,
    payload: activity_schema.ActivityIn,
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """
    Creates or overwrites the caller's activity for the date. Zero-hour
    categories are dropped; total_hours is recomputed from what remains.
    """
    return store.upsert_activity(db, engineer.id, activity_date, payload)


@router.delete("/activities/{activity_date}", status_code=status.HTTP_204_NO_CONTENT)
def delete_my_activity(
    activity_date: date,
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    record = store.get_activity_for_date(db, engineer.id, activity_date)
    if record is None:
        raise NotFound(f"No activity logged for {activity_date}")
    store.delete_activity(db, record.id, engineer_id=engineer.id)
    return
