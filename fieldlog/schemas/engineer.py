# fieldlog/schemas/engineer.py
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional
from datetime import datetime

Role = Literal["engineer", "admin", "limited_admin"]
ADMIN_ROLES = ("admin", "limited_admin")

class EngineerBase(BaseModel):
    employee_id: str = Field(min_length=1, max_length=50)
    full_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    role: Role = "engineer"
    weekly_hour_requirement: float = Field(40, gt=0)
    is_active: bool = True

class EngineerCreate(EngineerBase):
    pass

class EngineerUpdate(BaseModel):
    employee_id: Optional[str] = Field(None, min_length=1, max_length=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    weekly_hour_requirement: Optional[float] = Field(None, gt=0)
    is_active: Optional[bool] = None

class Engineer(EngineerBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class EngineerRef(BaseModel):
    """The engineer fields denormalized onto every activity record."""
    id: int
    employee_id: str
    full_name: str
    email: str

    class Config:
        from_attributes = True
