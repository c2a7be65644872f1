"""Transaction ORM model: append-only payment ledger entries.

A record's financial fields are written once. "Updating" a payment
soft-deletes the record and appends a successor whose ``old_transaction_id``
points back at it, so the ledger for an event reads as a set of chains.
"""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship, backref
from family_ledger.database import Base


class TransactionState(str, enum.Enum):
    active = "active"
    superseded = "superseded"
    deleted = "deleted"


class Transaction(Base):
    __tablename__ = "transactions"

    transaction_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_id = Column(String(36), ForeignKey("events.event_id"), nullable=False, index=True)
    added_by = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String(100), nullable=True)
    reference = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    old_transaction_id = Column(String(36), ForeignKey("transactions.transaction_id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    predecessor = relationship(
        "Transaction",
        remote_side=[transaction_id],
        backref=backref("successor", uselist=False),
    )
    author = relationship("User", foreign_keys=[added_by])

    @property
    def state(self) -> TransactionState:
        if self.deleted_at is None:
            return TransactionState.active
        if self.successor is not None:
            return TransactionState.superseded
        return TransactionState.deleted
