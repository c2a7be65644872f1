"""Grant ORM model: owner-to-member delegation with a permission level."""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum
from sqlalchemy.orm import relationship
from family_ledger.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GrantLevel(str, enum.Enum):
    read = "read"
    write = "write"
    owner = "owner"


class Grant(Base):
    __tablename__ = "grants"
    __table_args__ = (UniqueConstraint("owner_id", "member_id", name="uq_grants_owner_member"),)

    grant_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    member_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    permission = Column(SAEnum(GrantLevel, validate_strings=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    member = relationship("User", foreign_keys=[member_id])
