# fieldlog/services/calendar.py
# Per-engineer calendar colouring: executed / planning / none, plus missed working days.
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Literal, Set

from fieldlog.schemas.activity import ActivityRecord
from fieldlog.schemas.analytics import CalendarDates, CalendarIndex

DayStatus = Literal["executed", "planning", "none"]


@dataclass
class DateSets:
    executed: Set[date] = field(default_factory=set)
    planning: Set[date] = field(default_factory=set)

    def to_schema(self) -> CalendarDates:
        return CalendarDates(executed=sorted(self.executed), planning=sorted(self.planning))


def build_status_index(activities: Iterable[ActivityRecord]) -> Dict[str, DateSets]:
    """Group activity dates by engineer code. Anything not marked planning counts as executed."""
    index: Dict[str, DateSets] = {}
    for activity in activities:
        dates = index.setdefault(activity.engineer.employee_id, DateSets())
        if activity.status == "planning":
            dates.planning.add(activity.activity_date)
        else:
            dates.executed.add(activity.activity_date)
    return index


def status_for(index: Dict[str, DateSets], employee_id: str, day: date) -> DayStatus:
    dates = index.get(employee_id)
    if dates is None:
        return "none"
    if day in dates.executed:
        return "executed"
    if day in dates.planning:
        return "planning"
    return "none"


def to_calendar_index(index: Dict[str, DateSets]) -> CalendarIndex:
    return CalendarIndex(engineers={code: dates.to_schema() for code, dates in index.items()})


def missing_dates(
    index: Dict[str, DateSets],
    employee_id: str,
    date_from: date,
    date_to: date,
    today: date,
) -> List[date]:
    """Weekdays in [date_from, min(date_to, today)] with no activity of any status."""
    missing = []
    day = date_from
    last = min(date_to, today)
    while day <= last:
        if day.weekday() < 5 and status_for(index, employee_id, day) == "none":
            missing.append(day)
        day += timedelta(days=1)
    return missing
