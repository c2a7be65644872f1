"""Pydantic schemas for family grants."""
from __future__ import annotations
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from family_ledger.models.grant import GrantLevel


class GrantCreate(BaseModel):
    member_email: Optional[str] = None
    permission: Optional[str] = None


class GrantUpdate(BaseModel):
    permission: Optional[str] = None


class GrantMemberOut(BaseModel):
    user_id: str
    fullname: str
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class GrantOut(BaseModel):
    grant_id: str
    owner_id: str
    member_id: str
    permission: GrantLevel
    created_at: datetime
    updated_at: datetime
    member: Optional[GrantMemberOut] = None

    model_config = {"from_attributes": True}


# Rebuild GrantOut now that GrantMemberOut is defined
GrantOut.model_rebuild()
