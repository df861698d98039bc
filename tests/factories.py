"""
Builders for in-memory records used by the engine tests.
"""

from datetime import date

from fieldlog.schemas.activity import ActivityHour, ActivityRecord
from fieldlog.schemas.engineer import Engineer, EngineerRef

_next_id = {"activity": 0}


def make_engineer(code="E1", name=None, weekly=40.0, engineer_id=None, role="engineer", active=True) -> Engineer:
    number = engineer_id or int("".join(ch for ch in code if ch.isdigit()) or 1)
    return Engineer(
        id=number,
        employee_id=code,
        full_name=name or f"Engineer {code}",
        email=f"{code.lower()}@acme.com",
        role=role,
        weekly_hour_requirement=weekly,
        is_active=active,
    )


def make_activity(
    engineer: Engineer,
    day: date,
    hours=None,
    customer="Acme Corp",
    site="Plant 1",
    notes="",
    status="executed",
    total=None,
) -> ActivityRecord:
    """hours is a dict of category name -> hours; total defaults to their sum."""
    _next_id["activity"] += 1
    hours = hours if hours is not None else {"Installation": 8}
    rows = [
        ActivityHour(service_category_id=index + 1, category_name=name, hours=value)
        for index, (name, value) in enumerate(hours.items())
    ]
    return ActivityRecord(
        id=_next_id["activity"],
        activity_date=day,
        customer_name=customer,
        site_location=site,
        notes=notes,
        status=status,
        total_hours=sum(hours.values()) if total is None else total,
        engineer=EngineerRef(
            id=engineer.id,
            employee_id=engineer.employee_id,
            full_name=engineer.full_name,
            email=engineer.email,
        ),
        activity_hours=rows,
    )
