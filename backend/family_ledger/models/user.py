"""User ORM model: the acting identity supplied by the session provider."""
import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from family_ledger.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    fullname = Column(String(150), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
