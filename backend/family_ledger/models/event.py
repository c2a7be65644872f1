"""Event ORM model: a booking owned by exactly one user."""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    Column, String, Text, DateTime, Integer, Boolean, Numeric, ForeignKey, CheckConstraint,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from family_ledger.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventStatus(int, enum.Enum):
    draft = 0
    active = 1
    completed = 2


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (CheckConstraint("status IN (0, 1, 2)", name="ck_events_status"),)

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    updated_by = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    category_id = Column(String(36), ForeignKey("categories.category_id"), nullable=False)
    event_name = Column(String(255), nullable=False)
    contact_mobile = Column(String(20), nullable=False)
    booking_total_value = Column(Numeric(12, 2), nullable=False)
    advance_payment = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(Integer, nullable=False, default=EventStatus.active.value)
    priority = Column(SAEnum(Priority, validate_strings=True), nullable=False, default=Priority.medium)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    category = relationship("Category")
    owner = relationship("User", foreign_keys=[owner_id])

    # Concurrent writers against a stale row raise StaleDataError on flush
    __mapper_args__ = {"version_id_col": version}
