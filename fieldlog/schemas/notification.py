# fieldlog/schemas/notification.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Literal, Optional

RecipientType = Literal["all", "specific"]

class NotificationCreate(BaseModel):
    message: str = ""
    recipient_type: RecipientType = "all"
    recipient_engineer_id: Optional[int] = None

class Notification(BaseModel):
    id: int
    message: str
    recipient_type: RecipientType
    recipient_engineer_id: Optional[int] = None
    sent_by: Optional[int] = None
    sent_at: datetime
    is_read: bool = False

class NotificationInbox(BaseModel):
    items: List[Notification]
    unread_count: int
