# fieldlog/services/export.py
import csv
import io
from datetime import date
from typing import Iterable

from fieldlog.schemas.activity import ActivityHour, ActivityRecord

CSV_HEADER = ["Date", "Engineer", "Customer", "Site", "Total Hours", "Categories", "Notes"]


def format_hours(hours: float) -> str:
    """2.0 -> '2', 2.5 -> '2.5'; up to six decimals, never exponent form."""
    return f"{hours:.6f}".rstrip("0").rstrip(".")


def format_categories(activity_hours: Iterable[ActivityHour]) -> str:
    return "; ".join(
        f"{ah.category_name or 'Unknown'}: {format_hours(ah.hours)}h" for ah in activity_hours
    )


def export_filename(today: date) -> str:
    return f"activity-report-{today.isoformat()}.csv"


def activities_to_csv(activities: Iterable[ActivityRecord]) -> str:
    """One row per activity. Fields with commas, quotes or newlines are quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for activity in activities:
        writer.writerow([
            activity.activity_date.isoformat(),
            activity.engineer.full_name,
            activity.customer_name or "",
            activity.site_location or "",
            format_hours(activity.total_hours),
            format_categories(activity.activity_hours),
            activity.notes or "",
        ])
    return buffer.getvalue()
