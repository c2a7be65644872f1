"""Pydantic schemas for payment transactions."""
from __future__ import annotations
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel

from family_ledger.models.transaction import TransactionState


class PaymentCreate(BaseModel):
    amount: Any = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    note: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Any = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    note: Optional[str] = None


class TransactionOut(BaseModel):
    transaction_id: str
    event_id: str
    added_by: str
    amount: float
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    note: Optional[str] = None
    deleted_at: Optional[datetime] = None
    old_transaction_id: Optional[str] = None
    state: TransactionState
    created_at: datetime

    model_config = {"from_attributes": True}


class DeliveryWarningOut(BaseModel):
    message: str
    provider_errors: list[str] = []

    model_config = {"from_attributes": True}


class PaymentResult(BaseModel):
    transaction: TransactionOut
    notified_users: list[str] = []
    warning: Optional[DeliveryWarningOut] = None


class BalanceOut(BaseModel):
    booking_total_value: float
    paid: float
    outstanding: float

    model_config = {"from_attributes": True}


# Rebuild models now that nested types are defined
PaymentResult.model_rebuild()
