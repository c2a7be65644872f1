"""Pydantic schemas for Notifications."""
from datetime import datetime
from pydantic import BaseModel


class NotificationOut(BaseModel):
    notification_id: str
    user_id: str
    title: str
    message: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
