# fieldlog/services/analytics.py
"""
Activity analytics for the admin console.

Everything here is a pure reduction over ActivityRecord lists that have
already been fetched; nothing touches the database. The two main views are
independent of each other:

* category_breakdown: hours per service category, top N, with percentages
* engineer_performance: one row per roster engineer, normalized to a
  weekly figure and compared with that engineer's weekly requirement
"""
import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from fieldlog.core.config import settings
from fieldlog.schemas.activity import ActivityFilter, ActivityRecord
from fieldlog.schemas.analytics import (
    AnalyticsReport, AnalyticsWindow, CategoryStat, EngineerPerformance, OverallStats,
)
from fieldlog.schemas.engineer import Engineer
from fieldlog.services.filtering import ALL_ENGINEERS, filter_activities, matches_engineer

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "Unknown"
CATEGORY_COLORS = [
    "#3b82f6", "#ef4444", "#10b981", "#f59e0b", "#8b5cf6",
    "#06b6d4", "#84cc16", "#f97316", "#ec4899", "#6366f1",
]
CHART_PADDING = 1.1


# --- Windows ---

def week_start(day: date) -> date:
    """Weeks run Sunday to Saturday."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def resolve_window(
    period: str,
    today: date,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> AnalyticsWindow:
    if period == "current-week":
        start = week_start(today)
        return AnalyticsWindow(period=period, date_from=start, date_to=start + timedelta(days=6), fixed_week=True)
    if period == "last-week":
        start = week_start(today) - timedelta(days=7)
        return AnalyticsWindow(period=period, date_from=start, date_to=start + timedelta(days=6), fixed_week=True)
    if period == "last-30-days":
        return AnalyticsWindow(period=period, date_from=today - timedelta(days=29), date_to=today)
    if period == "custom":
        return AnalyticsWindow(period=period, date_from=date_from, date_to=date_to)
    raise ValueError(f"Unknown analytics period '{period}'")


def weekly_average(total_hours: float, window: AnalyticsWindow) -> float:
    # Unbounded ranges have no day count to normalize by
    if window.fixed_week or window.day_count <= 0:
        return total_hours
    return total_hours * 7 / window.day_count


def completion_rate(weekly_hours: float, requirement: float) -> float:
    if requirement <= 0:
        return 0.0
    return max(0.0, min(100.0, weekly_hours / requirement * 100))


def display_percent(value: float) -> int:
    """Round half up (62.5 -> 63), unlike Python's banker's rounding."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# --- Hours ---

def category_name(name: Optional[str]) -> str:
    return name or UNKNOWN_CATEGORY


def activity_hours(activity: ActivityRecord, excluded_categories: Iterable[str] = ()) -> float:
    """
    Hours an activity contributes. Without exclusions this is the stored
    total; with exclusions it is recomputed from the category rows.
    """
    excluded = frozenset(excluded_categories)
    if not excluded:
        return activity.total_hours
    return sum(
        ah.hours for ah in activity.activity_hours
        if category_name(ah.category_name) not in excluded
    )


# --- Views ---

def category_breakdown(
    activities: Iterable[ActivityRecord],
    engineer_id: str = ALL_ENGINEERS,
    excluded_categories: Iterable[str] = (),
    limit: int = 10,
) -> List[CategoryStat]:
    excluded = frozenset(excluded_categories)
    totals: Dict[str, float] = {}
    grand_total = 0.0

    for activity in activities:
        if not matches_engineer(activity, engineer_id):
            continue
        for ah in activity.activity_hours:
            name = category_name(ah.category_name)
            if name in excluded:
                continue
            totals[name] = totals.get(name, 0.0) + ah.hours
            grand_total += ah.hours

    # Colours follow discovery order so a category keeps its colour when re-sorted
    stats = [
        CategoryStat(
            name=name,
            total_hours=hours,
            percentage=(hours / grand_total * 100) if grand_total > 0 else 0.0,
            color=CATEGORY_COLORS[index % len(CATEGORY_COLORS)],
        )
        for index, (name, hours) in enumerate(totals.items())
    ]
    stats.sort(key=lambda stat: stat.total_hours, reverse=True)
    return stats[:limit]


def engineer_performance(
    activities: Sequence[ActivityRecord],
    engineers: Iterable[Engineer],
    window: AnalyticsWindow,
    excluded_categories: Iterable[str] = (),
) -> List[EngineerPerformance]:
    excluded = frozenset(excluded_categories)
    by_engineer: Dict[str, List[ActivityRecord]] = {}
    for activity in activities:
        by_engineer.setdefault(activity.engineer.employee_id, []).append(activity)

    rows = []
    for engineer in engineers:
        own = by_engineer.get(engineer.employee_id, [])
        total = sum(activity_hours(activity, excluded) for activity in own)
        weekly = weekly_average(total, window)
        rate = completion_rate(weekly, engineer.weekly_hour_requirement)
        rows.append(EngineerPerformance(
            engineer=engineer,
            total_hours=total,
            weekly_average=weekly,
            completion_rate=rate,
            completion_display=display_percent(rate),
            days_worked=len(own),
        ))
    rows.sort(key=lambda row: row.total_hours, reverse=True)
    return rows


def overall_stats(activities: Sequence[ActivityRecord]) -> OverallStats:
    total_hours = sum(activity.total_hours for activity in activities)
    submissions = len(activities)
    return OverallStats(
        total_hours=total_hours,
        total_submissions=submissions,
        unique_engineers=len({activity.engineer.employee_id for activity in activities}),
        avg_hours_per_submission=total_hours / submissions if submissions else 0.0,
    )


def chart_max(performance: Iterable[EngineerPerformance]) -> float:
    """Upper bound for the hours bar chart, with headroom above the tallest bar."""
    values = [0.0]
    for row in performance:
        values.append(row.total_hours)
        values.append(row.engineer.weekly_hour_requirement)
    return max(values) * CHART_PADDING


def category_chart_max(stats: Iterable[CategoryStat]) -> float:
    return max([0.0] + [stat.total_hours for stat in stats]) * CHART_PADDING


def build_report(
    activities: Sequence[ActivityRecord],
    engineers: Sequence[Engineer],
    window: AnalyticsWindow,
    engineer_id: str = ALL_ENGINEERS,
    excluded_categories: Iterable[str] = (),
) -> AnalyticsReport:
    excluded = frozenset(excluded_categories)
    in_window = filter_activities(
        activities, ActivityFilter(date_from=window.date_from, date_to=window.date_to)
    )
    categories = category_breakdown(in_window, engineer_id, excluded, limit=settings.CATEGORY_LIMIT)
    performance = engineer_performance(in_window, engineers, window, excluded)
    logger.debug(
        "Analytics for %s..%s: %d activities, %d engineers",
        window.date_from, window.date_to, len(in_window), len(performance),
    )
    return AnalyticsReport(
        window=window,
        overall=overall_stats(in_window),
        categories=categories,
        performance=performance,
        chart_max=chart_max(performance),
        category_chart_max=category_chart_max(categories),
    )
