# fieldlog/schemas/analytics.py
from pydantic import BaseModel
from datetime import date
from typing import Dict, List, Literal, Optional

from fieldlog.schemas.engineer import Engineer

Period = Literal["current-week", "last-week", "last-30-days", "custom"]

class AnalyticsWindow(BaseModel):
    period: Period
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    # Fixed calendar-week windows report the raw total as the weekly figure
    fixed_week: bool = False

    @property
    def day_count(self) -> int:
        if self.date_from is None or self.date_to is None:
            return 0
        return (self.date_to - self.date_from).days + 1

class CategoryStat(BaseModel):
    name: str
    total_hours: float
    percentage: float
    color: str

class EngineerPerformance(BaseModel):
    engineer: Engineer
    total_hours: float
    weekly_average: float
    completion_rate: float
    completion_display: int
    days_worked: int

class OverallStats(BaseModel):
    total_hours: float = 0
    total_submissions: int = 0
    unique_engineers: int = 0
    avg_hours_per_submission: float = 0

class AnalyticsReport(BaseModel):
    window: AnalyticsWindow
    overall: OverallStats
    categories: List[CategoryStat]
    performance: List[EngineerPerformance]
    chart_max: float
    category_chart_max: float

class DashboardStats(BaseModel):
    total_engineers: int
    active_engineers: int
    total_submissions: int
    avg_hours_per_day: float
    missed_submissions: int

class CalendarDates(BaseModel):
    executed: List[date] = []
    planning: List[date] = []

class CalendarIndex(BaseModel):
    engineers: Dict[str, CalendarDates]
