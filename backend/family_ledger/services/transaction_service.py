"""Payment ledger for events.

Transactions are append-only. Replacing a payment soft-deletes the current
record and inserts a successor linked through ``old_transaction_id``;
deleting a payment only soft-deletes. The soft-delete stamp is written with a
conditional UPDATE so that two writers racing on the same record cannot both
see it as live: the loser gets a ConflictError and chains nothing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

import pytz
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from family_ledger.config import settings
from family_ledger.errors import ConflictError, DeliveryWarning, NotFoundError, ValidationError
from family_ledger.models.event import Event
from family_ledger.models.transaction import Transaction
from family_ledger.models.user import User
from family_ledger.services.access import Access, require_access
from family_ledger.services.event_service import load_event, parse_amount
from family_ledger.services.notification_service import fan_out
from family_ledger.services.push import PushSink

logger = logging.getLogger(__name__)

REPLACED_NOTE = "Soft deleted because user requested update at {timestamp}"
DELETED_NOTE = "Soft deleted by user at {timestamp}"
SUCCESSOR_NOTE = "Soft deleted transaction id: {transaction_id}"
CARRIED_FIELDS = ("amount", "payment_method", "note")


@dataclass
class PaymentChange:
    transaction: Transaction
    notified_user_ids: list[str] = field(default_factory=list)
    warning: Optional[DeliveryWarning] = None


@dataclass
class Balance:
    booking_total_value: Decimal
    paid: Decimal
    outstanding: Decimal


def format_amount(amount: Any) -> str:
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    if value == value.to_integral_value():
        return str(value.to_integral_value())
    return str(value)


def audit_timestamp(moment: datetime) -> str:
    """Render ``moment`` in the configured audit zone."""
    tz = pytz.timezone(settings.AUDIT_TIMEZONE)
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def _join_reference(*parts: Optional[str]) -> str:
    return " | ".join(p for p in parts if p)


def _writable_event(db: Session, actor: User, event_id: str) -> Event:
    event = load_event(db, event_id)
    require_access(db, actor.user_id, event.owner_id, Access.write)
    return event


def _live_transaction(db: Session, event_id: str, transaction_id: str) -> Transaction:
    txn = (
        db.query(Transaction)
        .filter(
            Transaction.transaction_id == transaction_id,
            Transaction.event_id == event_id,
            Transaction.deleted_at.is_(None),
        )
        .first()
    )
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


def _stamp_deleted(db: Session, txn: Transaction, note_template: str) -> datetime:
    """Soft delete ``txn`` if it is still live, inside the caller's unit of work."""
    now = datetime.now(timezone.utc)
    reference = _join_reference(txn.reference, note_template.format(timestamp=audit_timestamp(now)))
    result = db.execute(
        update(Transaction)
        .where(
            Transaction.transaction_id == txn.transaction_id,
            Transaction.deleted_at.is_(None),
        )
        .values(deleted_at=now, reference=reference)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Transaction was already deleted or replaced")
    return now


def active_balance(db: Session, event_id: str) -> Decimal:
    """Sum of amounts over the event's non-deleted transactions."""
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.event_id == event_id, Transaction.deleted_at.is_(None))
        .scalar()
    )
    return Decimal(str(total))


def add_payment(
    db: Session,
    actor: User,
    event_id: str,
    sink: PushSink,
    amount: Any = None,
    payment_method: Optional[str] = None,
    reference: Optional[str] = None,
    note: Optional[str] = None,
) -> PaymentChange:
    if amount is None:
        raise ValidationError("amount is required and must be >= 0", field="amount")
    value = parse_amount(amount, "amount")

    event = _writable_event(db, actor, event_id)
    txn = Transaction(
        event_id=event.event_id,
        added_by=actor.user_id,
        amount=value,
        payment_method=payment_method,
        reference=reference,
        note=note,
    )
    db.add(txn)
    db.commit()
    db.refresh(txn)
    logger.info("User %s added payment %s of %s to event %s", actor.user_id, txn.transaction_id, value, event_id)

    message = f"{actor.fullname} added a payment of {format_amount(txn.amount)} for {event.event_name}."
    result = fan_out(db, event, actor, "New Payment Added", message, sink)
    return PaymentChange(txn, result.notified_user_ids, result.warning)


def replace_payment(
    db: Session,
    actor: User,
    event_id: str,
    transaction_id: str,
    patch: dict[str, Any],
    sink: PushSink,
) -> PaymentChange:
    """Supersede a payment with a new record; returns only the successor.

    Fields missing from ``patch`` are carried forward from the old record.
    """
    if patch.get("amount") is not None:
        patch = {**patch, "amount": parse_amount(patch["amount"], "amount")}

    event = _writable_event(db, actor, event_id)
    old = _live_transaction(db, event_id, transaction_id)
    carried = {name: getattr(old, name) for name in CARRIED_FIELDS}

    _stamp_deleted(db, old, REPLACED_NOTE)

    values = {
        name: patch[name] if patch.get(name) is not None else carried[name]
        for name in CARRIED_FIELDS
    }
    successor = Transaction(
        event_id=event.event_id,
        added_by=actor.user_id,
        reference=_join_reference(
            patch.get("reference"), SUCCESSOR_NOTE.format(transaction_id=old.transaction_id)
        ),
        old_transaction_id=old.transaction_id,
        **values,
    )
    db.add(successor)
    db.commit()
    db.refresh(successor)
    logger.info(
        "User %s replaced transaction %s with %s on event %s",
        actor.user_id, old.transaction_id, successor.transaction_id, event_id,
    )

    message = (
        f"{actor.fullname} updated a payment to {format_amount(successor.amount)} "
        f"for {event.event_name}."
    )
    result = fan_out(db, event, actor, "Payment Updated", message, sink)
    return PaymentChange(successor, result.notified_user_ids, result.warning)


def soft_delete_payment(
    db: Session,
    actor: User,
    event_id: str,
    transaction_id: str,
    sink: PushSink,
) -> PaymentChange:
    event = _writable_event(db, actor, event_id)
    txn = _live_transaction(db, event_id, transaction_id)
    _stamp_deleted(db, txn, DELETED_NOTE)
    db.commit()
    db.refresh(txn)
    logger.info("User %s soft deleted transaction %s on event %s", actor.user_id, transaction_id, event_id)

    message = (
        f"{actor.fullname} removed a payment of {format_amount(txn.amount)} "
        f"for {event.event_name}."
    )
    result = fan_out(db, event, actor, "Payment Removed", message, sink)
    return PaymentChange(txn, result.notified_user_ids, result.warning)


def payment_chain(db: Session, actor: User, event_id: str, transaction_id: str) -> list[Transaction]:
    """History of one logical payment, oldest first, ending at ``transaction_id``."""
    event = load_event(db, event_id)
    require_access(db, actor.user_id, event.owner_id, Access.read)

    chain = []
    seen = set()
    current = (
        db.query(Transaction)
        .filter(Transaction.transaction_id == transaction_id, Transaction.event_id == event_id)
        .first()
    )
    if not current:
        raise NotFoundError("Transaction not found")
    while current is not None and current.transaction_id not in seen:
        seen.add(current.transaction_id)
        chain.append(current)
        current = current.predecessor
    chain.reverse()
    return chain


def event_balance(db: Session, actor: User, event_id: str) -> Balance:
    event = load_event(db, event_id)
    require_access(db, actor.user_id, event.owner_id, Access.read)
    paid = active_balance(db, event_id)
    total = Decimal(str(event.booking_total_value))
    return Balance(booking_total_value=total, paid=paid, outstanding=total - paid)
