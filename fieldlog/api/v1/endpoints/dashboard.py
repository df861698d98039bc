# fieldlog/api/v1/endpoints/dashboard.py
import logging
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from fieldlog.core import security
from fieldlog.core.errors import ValidationFailed
from fieldlog.db import session
from fieldlog.schemas import activity as activity_schema
from fieldlog.schemas import analytics as analytics_schema
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.services import analytics, calendar, export, store
from fieldlog.services.filtering import ALL_ENGINEERS, filter_activities

logger = logging.getLogger(__name__)

router = APIRouter()

# Roster for performance and missed-submission figures: engineers only, not admins
ROSTER_ROLES = ("engineer",)


def get_today() -> date:
    return date.today()


def activity_filter(
    engineer_id: str = Query(ALL_ENGINEERS, description="Employee code, or 'all'"),
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    customer: Optional[str] = None,
    site: Optional[str] = None,
    excluded_category: List[str] = Query([], description="Category names left out of analytics"),
) -> activity_schema.ActivityFilter:
    if date_from and date_to and date_from > date_to:
        raise ValidationFailed("date_from must not be after date_to")
    return activity_schema.ActivityFilter(
        engineer_id=engineer_id,
        date_from=date_from,
        date_to=date_to,
        customer=customer,
        site=site,
        excluded_categories=frozenset(excluded_category),
    )


# --- API Endpoints ---

@router.get("/activities", response_model=List[activity_schema.ActivityRecord])
def read_filtered_activities(
    criteria: activity_schema.ActivityFilter = Depends(activity_filter),
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ All submissions matching the filter, newest date first. """
    return filter_activities(store.list_activities(db), criteria)


@router.get("/stats", response_model=analytics_schema.DashboardStats)
def read_dashboard_stats(
    criteria: activity_schema.ActivityFilter = Depends(activity_filter),
    db: Session = Depends(session.get_db),
    today: date = Depends(get_today),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """
    Header figures for the console. Missed submissions are counted over the
    filter's date range, or the current week when no range is given.
    """
    roster = store.list_engineers(db, roles=ROSTER_ROLES)
    activities = store.list_activities(db)
    overall = analytics.overall_stats(activities)

    start = criteria.date_from or analytics.week_start(today)
    end = criteria.date_to or start + timedelta(days=6)
    index = calendar.build_status_index(activities)
    missed = sum(
        len(calendar.missing_dates(index, engineer.employee_id, start, end, today))
        for engineer in roster if engineer.is_active
    )

    return analytics_schema.DashboardStats(
        total_engineers=len(roster),
        active_engineers=sum(1 for engineer in roster if engineer.is_active),
        total_submissions=overall.total_submissions,
        avg_hours_per_day=overall.avg_hours_per_submission,
        missed_submissions=missed,
    )


@router.get("/analytics", response_model=analytics_schema.AnalyticsReport)
def read_analytics(
    period: analytics_schema.Period = "current-week",
    criteria: activity_schema.ActivityFilter = Depends(activity_filter),
    db: Session = Depends(session.get_db),
    today: date = Depends(get_today),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """
    Category breakdown and engineer performance for a period. The
    engineer_id filter narrows the category breakdown only; performance
    always lists the whole roster.
    """
    window = analytics.resolve_window(period, today, criteria.date_from, criteria.date_to)
    roster = store.list_engineers(db, roles=ROSTER_ROLES)
    return analytics.build_report(
        store.list_activities(db),
        roster,
        window,
        engineer_id=criteria.engineer_id,
        excluded_categories=criteria.excluded_categories,
    )


@router.get("/calendar", response_model=analytics_schema.CalendarIndex)
def read_calendar_index(
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ Executed and planning dates for every engineer, keyed by employee code. """
    return calendar.to_calendar_index(calendar.build_status_index(store.list_activities(db)))


@router.get("/calendar/{activity_date}", response_model=List[activity_schema.ActivityRecord])
def read_calendar_day(
    activity_date: date,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ Every engineer's activity on one date. """
    return store.list_activities(db, activity_date=activity_date)


@router.get("/export")
def export_activities(
    criteria: activity_schema.ActivityFilter = Depends(activity_filter),
    db: Session = Depends(session.get_db),
    today: date = Depends(get_today),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ CSV download of the filtered activities. """
    activities = filter_activities(store.list_activities(db), criteria)
    filename = export.export_filename(today)
    logger.info("Exporting %d activities to %s for %s", len(activities), filename, admin.employee_id)
    return Response(
        content=export.activities_to_csv(activities),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
