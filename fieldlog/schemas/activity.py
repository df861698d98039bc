# fieldlog/schemas/activity.py
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import FrozenSet, List, Literal, Optional

from fieldlog.schemas.engineer import EngineerRef

ActivityStatus = Literal["planning", "executed"]

class ServiceCategoryBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True

class ServiceCategoryCreate(ServiceCategoryBase):
    pass

class ServiceCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None

class ServiceCategory(ServiceCategoryBase):
    id: int

    class Config:
        from_attributes = True

class ActivityHourIn(BaseModel):
    service_category_id: int
    hours: float = Field(0, ge=0)
    description: Optional[str] = None

class ActivityHour(BaseModel):
    service_category_id: Optional[int] = None
    category_name: Optional[str] = None
    hours: float
    description: Optional[str] = None

class ActivityIn(BaseModel):
    customer_name: Optional[str] = None
    site_location: Optional[str] = None
    notes: Optional[str] = None
    status: ActivityStatus = "executed"
    activity_hours: List[ActivityHourIn] = []
    # Optional optimistic check against a concurrent save for the same date
    expected_version: Optional[int] = None

class ActivityRecord(BaseModel):
    """A daily activity with its engineer and category hours, as the engines consume it."""
    id: int
    activity_date: date
    customer_name: Optional[str] = None
    site_location: Optional[str] = None
    notes: Optional[str] = None
    status: ActivityStatus = "executed"
    total_hours: float = 0
    submitted_at: Optional[datetime] = None
    version: int = 1
    engineer: EngineerRef
    activity_hours: List[ActivityHour] = []

class ActivityForm(BaseModel):
    """What the engineer's entry form shows for one date."""
    id: Optional[int] = None
    activity_date: date
    customer_name: str = ""
    site_location: str = ""
    notes: str = ""
    status: ActivityStatus = "executed"
    total_hours: float = 0
    version: Optional[int] = None
    activity_hours: List[ActivityHour]

class ActivityFilter(BaseModel):
    engineer_id: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    customer: Optional[str] = None
    site: Optional[str] = None
    excluded_categories: FrozenSet[str] = frozenset()
