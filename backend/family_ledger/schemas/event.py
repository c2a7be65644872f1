"""Pydantic schemas for Events.

Request bodies are deliberately loose: the event service owns validation
so the same rules apply to every caller.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel

from family_ledger.models.event import Priority
from family_ledger.schemas.transaction import DeliveryWarningOut, TransactionOut


class EventCreate(BaseModel):
    event_name: Any = None
    contact_mobile: Any = None
    booking_total_value: Any = None
    advance_payment: Any = 0
    payment_method: Any = None
    notes: Any = None
    category_name: Any = None
    priority: Any = "medium"


class EventUpdate(BaseModel):
    event_name: Optional[str] = None
    contact_mobile: Optional[str] = None
    booking_total_value: Optional[float] = None
    advance_payment: Optional[float] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    category_id: Optional[str] = None
    status: Any = None
    priority: Any = None


class StatusPriorityUpdate(BaseModel):
    status: Any = None
    priority: Any = None


class EventOut(BaseModel):
    event_id: str
    owner_id: str
    created_by: str
    updated_by: Optional[str] = None
    category_id: str
    event_name: str
    contact_mobile: str
    booking_total_value: float
    advance_payment: float
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    status: int
    priority: Priority
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventDetailOut(EventOut):
    transactions: list[TransactionOut] = []


class EventChangeOut(BaseModel):
    event: EventOut
    notified_users: list[str] = []
    warning: Optional[DeliveryWarningOut] = None


# Rebuild models now that nested types are defined
EventDetailOut.model_rebuild()
EventChangeOut.model_rebuild()
