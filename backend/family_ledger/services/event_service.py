"""Core event service: the booking ledger.

Responsibilities:
- Effective-owner resolution and write/read authorization on every call
- Field validation on create and on status/priority updates
- Soft delete only; finders hide deleted events unless asked not to
- Optimistic locking via the ``version`` column
- Notification fan-out after status/priority changes
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, StatementError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from family_ledger.errors import ConflictError, DeliveryWarning, NotFoundError, ValidationError
from family_ledger.models.event import Event, EventStatus, Priority
from family_ledger.models.grant import GrantLevel
from family_ledger.models.transaction import Transaction
from family_ledger.models.user import User
from family_ledger.services import category_service
from family_ledger.services.access import (
    Access, memberships, require_access, resolve_effective_owner,
)
from family_ledger.services.notification_service import fan_out
from family_ledger.services.push import PushSink

logger = logging.getLogger(__name__)

ADVANCE_PAYMENT_NOTE = "Advance payment (initial)"

STATUS_CLAUSES = {
    EventStatus.draft: "set to inactive",
    EventStatus.active: "marked as pending",
    EventStatus.completed: "completed the event",
}

IMMUTABLE_FIELDS = frozenset(
    {"event_id", "owner_id", "created_by", "created_at", "version", "is_deleted", "deleted_at"}
)


@dataclass
class LedgerView:
    """An event with the transactions visible to the caller."""

    event: Event
    transactions: list[Transaction] = field(default_factory=list)


@dataclass
class EventChange:
    event: Event
    notified_user_ids: list[str] = field(default_factory=list)
    warning: Optional[DeliveryWarning] = None


# ---------------------------------------------------------------------------
# Finders
# ---------------------------------------------------------------------------
def event_query(db: Session, include_deleted: bool = False):
    query = db.query(Event)
    if not include_deleted:
        query = query.filter(Event.is_deleted.is_(False))
    return query


def load_event(db: Session, event_id: str, include_deleted: bool = False) -> Event:
    event = event_query(db, include_deleted).filter(Event.event_id == event_id).first()
    if not event:
        raise NotFoundError("Event not found")
    return event


def active_transactions(
    db: Session, event_ids: list[str], added_by: Optional[str] = None
) -> list[Transaction]:
    """Non-deleted transactions for ``event_ids``, oldest first."""
    if not event_ids:
        return []
    query = db.query(Transaction).filter(
        Transaction.event_id.in_(event_ids),
        Transaction.deleted_at.is_(None),
    )
    if added_by is not None:
        query = query.filter(Transaction.added_by == added_by)
    return query.order_by(Transaction.created_at).all()


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def parse_amount(value: Any, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number >= 0", field=name)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{name} must be a number >= 0", field=name) from None
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{name} must be a number >= 0", field=name)
    return amount


def _optional_str(payload: dict, name: str) -> Optional[str]:
    value = payload.get(name)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", field=name)
    return value or None


def _required_str(payload: dict, name: str, max_length: int) -> str:
    value = payload.get(name)
    if not value or not isinstance(value, str) or len(value) > max_length:
        raise ValidationError(
            f"{name} is required and must be a string (max {max_length})", field=name
        )
    return value


def _priority(value: Any) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise ValidationError("priority must be one of: low, medium, high", field="priority") from None


def _status(value: Any) -> EventStatus:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("Invalid status (must be 0, 1, or 2)", field="status")
    try:
        return EventStatus(int(value))
    except (TypeError, ValueError):
        raise ValidationError("Invalid status (must be 0, 1, or 2)", field="status") from None


def validate_create_payload(payload: dict) -> dict:
    """Check a create payload and return the normalized field values."""
    cleaned = {
        "event_name": _required_str(payload, "event_name", 255),
        "contact_mobile": _required_str(payload, "contact_mobile", 20),
    }
    if payload.get("booking_total_value") is None:
        raise ValidationError(
            "booking_total_value is required and must be >= 0", field="booking_total_value"
        )
    cleaned["booking_total_value"] = parse_amount(payload["booking_total_value"], "booking_total_value")
    advance = payload.get("advance_payment")
    cleaned["advance_payment"] = parse_amount(advance, "advance_payment") if advance else Decimal("0")
    cleaned["payment_method"] = _optional_str(payload, "payment_method")
    cleaned["notes"] = _optional_str(payload, "notes")

    category_name = payload.get("category_name")
    if not category_name or not isinstance(category_name, str) or not category_name.strip():
        raise ValidationError("category_name is required and must be a string", field="category_name")
    cleaned["category_name"] = category_name.strip()

    priority = payload.get("priority")
    cleaned["priority"] = _priority(priority) if priority is not None else Priority.medium
    return cleaned


def status_message(
    actor: User, event: Event, status: Optional[EventStatus], priority: Optional[Priority]
) -> str:
    parts = []
    if status is not None:
        parts.append(STATUS_CLAUSES[status])
    if priority is not None:
        parts.append(f"priority set to {priority.value}")
    return f"{actor.fullname} {event.event_name}: {', '.join(parts)}."


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def list_accessible(db: Session, actor: User) -> list[LedgerView]:
    """Events the actor owns or was granted, newest first.

    Main owners (no memberships) and holders of an ``owner`` grant see every
    transaction. Plain read/write members see only the transactions they
    added themselves.
    """
    grants = memberships(db, actor.user_id)
    owner_ids = [actor.user_id] + [g.owner_id for g in grants]
    full_reach = not grants or any(GrantLevel(g.permission) == GrantLevel.owner for g in grants)

    events = (
        event_query(db)
        .filter(Event.owner_id.in_(owner_ids))
        .order_by(Event.created_at.desc())
        .all()
    )
    transactions = active_transactions(
        db,
        [e.event_id for e in events],
        added_by=None if full_reach else actor.user_id,
    )
    by_event: dict[str, list[Transaction]] = {}
    for txn in transactions:
        by_event.setdefault(txn.event_id, []).append(txn)
    return [LedgerView(event, by_event.get(event.event_id, [])) for event in events]


def search_events(db: Session, actor: User, query_text: Optional[str]) -> list[Event]:
    """Case-insensitive search on name and notes across accessible owners."""
    if not query_text or not query_text.strip():
        raise ValidationError('Query parameter "q" is required', field="q")
    owner_ids = [actor.user_id] + [g.owner_id for g in memberships(db, actor.user_id)]
    pattern = f"%{query_text.strip()}%"
    return (
        event_query(db)
        .filter(
            Event.owner_id.in_(owner_ids),
            or_(Event.event_name.ilike(pattern), Event.notes.ilike(pattern)),
        )
        .order_by(Event.created_at.desc())
        .all()
    )


def create_event(db: Session, actor: User, payload: dict) -> Event:
    """Create an event under the actor's effective owner.

    An advance payment greater than zero is recorded as the event's first
    transaction in the same unit of work.
    """
    fields = validate_create_payload(payload)

    owner_id = resolve_effective_owner(db, actor.user_id)
    require_access(
        db, actor.user_id, owner_id, Access.write,
        "You do not have permission to create an event (read-only access)",
    )

    category = category_service.find_or_create(db, fields.pop("category_name"))
    event = Event(
        owner_id=owner_id,
        created_by=actor.user_id,
        category_id=category.category_id,
        status=EventStatus.active.value,
        **fields,
    )
    db.add(event)
    db.flush()

    if fields["advance_payment"] > 0:
        db.add(Transaction(
            event_id=event.event_id,
            added_by=actor.user_id,
            amount=fields["advance_payment"],
            payment_method=fields["payment_method"],
            note=ADVANCE_PAYMENT_NOTE,
        ))

    db.commit()
    db.refresh(event)
    logger.info(
        "Created event '%s' (%s) for owner %s by user %s",
        event.event_name, event.event_id, owner_id, actor.user_id,
    )
    return event


def update_status_and_priority(
    db: Session,
    actor: User,
    event_id: str,
    sink: PushSink,
    status: Any = None,
    priority: Any = None,
) -> EventChange:
    if status is None and priority is None:
        raise ValidationError("Please provide at least one field to update: status or priority")
    new_status = _status(status) if status is not None else None
    new_priority = _priority(priority) if priority is not None else None

    owner_id = resolve_effective_owner(db, actor.user_id)
    require_access(
        db, actor.user_id, owner_id, Access.write,
        "You do not have permission to update this event (read-only access)",
    )
    # Scoped by owner: another owner's event reads as missing, not forbidden
    event = event_query(db).filter(Event.event_id == event_id, Event.owner_id == owner_id).first()
    if not event:
        raise NotFoundError("Event not found or access denied")

    if new_status is not None:
        event.status = new_status.value
    if new_priority is not None:
        event.priority = new_priority
    event.updated_by = actor.user_id
    _commit(db)
    db.refresh(event)
    logger.info("Updated status/priority of event %s by user %s", event_id, actor.user_id)

    message = status_message(actor, event, new_status, new_priority)
    result = fan_out(db, event, actor, "Event Updated", message, sink)
    return EventChange(event, result.notified_user_ids, result.warning)


def update_fields(db: Session, actor: User, event_id: str, patch: dict[str, Any]) -> Event:
    """Overwrite event columns from ``patch`` after a write check on the stored owner.

    Values are not validated here; column types and constraints reject bad
    values at flush time.
    """
    event = load_event(db, event_id)
    require_access(db, actor.user_id, event.owner_id, Access.write)

    columns = Event.__table__.columns.keys()
    for name, value in patch.items():
        if name in IMMUTABLE_FIELDS or name not in columns:
            continue
        setattr(event, name, value)
    event.updated_by = actor.user_id

    try:
        _commit(db)
    except (IntegrityError, StatementError) as exc:
        db.rollback()
        raise ValidationError(f"Invalid event update: {exc.orig or exc}") from exc
    db.refresh(event)
    logger.info("Updated event %s to version %d", event_id, event.version)
    return event


def soft_delete_event(db: Session, actor: User, event_id: str) -> Event:
    event = load_event(db, event_id, include_deleted=True)
    require_access(db, actor.user_id, event.owner_id, Access.write)
    if event.is_deleted:
        raise ConflictError("Event already deleted")

    now = datetime.now(timezone.utc)
    result = db.execute(
        update(Event)
        .where(Event.event_id == event_id, Event.is_deleted.is_(False))
        .values(
            is_deleted=True,
            deleted_at=now,
            updated_by=actor.user_id,
            version=Event.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictError("Event already deleted")
    db.commit()
    db.refresh(event)
    logger.info("Soft deleted event %s by user %s", event_id, actor.user_id)
    return event


def get_event(db: Session, actor: User, event_id: str) -> LedgerView:
    event = load_event(db, event_id)
    require_access(db, actor.user_id, event.owner_id, Access.read)
    return LedgerView(event, active_transactions(db, [event.event_id]))


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError("Event was modified concurrently. Re-fetch and retry.") from exc
