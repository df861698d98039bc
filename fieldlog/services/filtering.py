# fieldlog/services/filtering.py
"""
Narrows a fetched activity collection to the records an admin asked for.

All predicates are ANDed. Input order is preserved, so callers get back the
ordering the store returned (newest date first, then newest submission).
Category exclusions are carried on the filter but applied by the analytics
module, not here.
"""
from datetime import date
from typing import Iterable, List, Optional

from fieldlog.schemas.activity import ActivityFilter, ActivityRecord

ALL_ENGINEERS = "all"


def matches_engineer(activity: ActivityRecord, engineer_id: Optional[str]) -> bool:
    if not engineer_id or engineer_id == ALL_ENGINEERS:
        return True
    return activity.engineer.employee_id == engineer_id


def matches_dates(activity: ActivityRecord, date_from: Optional[date], date_to: Optional[date]) -> bool:
    if date_from and activity.activity_date < date_from:
        return False
    if date_to and activity.activity_date > date_to:
        return False
    return True


def matches_text(value: Optional[str], needle: Optional[str]) -> bool:
    """Case-insensitive substring match; an empty needle matches everything."""
    if not needle:
        return True
    if not value:
        return False
    return needle.lower() in value.lower()


def activity_matches(activity: ActivityRecord, criteria: ActivityFilter) -> bool:
    return (
        matches_engineer(activity, criteria.engineer_id)
        and matches_dates(activity, criteria.date_from, criteria.date_to)
        and matches_text(activity.customer_name, criteria.customer)
        and matches_text(activity.site_location, criteria.site)
    )


def filter_activities(activities: Iterable[ActivityRecord], criteria: ActivityFilter) -> List[ActivityRecord]:
    return [activity for activity in activities if activity_matches(activity, criteria)]
