"""Event and payment API routes: delegate to the ledger services."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from family_ledger.database import get_db
from family_ledger.models.user import User
from family_ledger.routers.dependencies import get_actor
from family_ledger.schemas.event import (
    EventChangeOut, EventCreate, EventDetailOut, EventOut, EventUpdate, StatusPriorityUpdate,
)
from family_ledger.schemas.transaction import (
    BalanceOut, DeliveryWarningOut, PaymentCreate, PaymentResult, PaymentUpdate, TransactionOut,
)
from family_ledger.services import event_service, transaction_service
from family_ledger.services.event_service import LedgerView
from family_ledger.services.push import PushSink, get_push_sink

logger = logging.getLogger(__name__)
router = APIRouter()


def _detail(view: LedgerView) -> EventDetailOut:
    return EventDetailOut(
        **EventOut.model_validate(view.event).model_dump(),
        transactions=[TransactionOut.model_validate(t) for t in view.transactions],
    )


def _warning(warning) -> Optional[DeliveryWarningOut]:
    return DeliveryWarningOut.model_validate(warning) if warning else None


def _payment_result(change: transaction_service.PaymentChange) -> PaymentResult:
    return PaymentResult(
        transaction=TransactionOut.model_validate(change.transaction),
        notified_users=change.notified_user_ids,
        warning=_warning(change.warning),
    )


@router.get("/", response_model=list[EventDetailOut])
def list_events(actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    """Events owned by or shared with the caller, each with its visible payments."""
    return [_detail(view) for view in event_service.list_accessible(db, actor)]


@router.get("/search", response_model=list[EventOut])
def search_events(
    q: Optional[str] = Query(None),
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return event_service.search_events(db, actor, q)


@router.post("/", response_model=EventDetailOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    """Create an event under the caller's effective owner."""
    event = event_service.create_event(db, actor, payload.model_dump())
    return _detail(event_service.get_event(db, actor, event.event_id))


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event_id: str, actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    return _detail(event_service.get_event(db, actor, event_id))


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Overwrite event fields (write access on the event's owner)."""
    return event_service.update_fields(db, actor, event_id, payload.model_dump(exclude_unset=True))


@router.put("/{event_id}/update", response_model=EventChangeOut)
def update_status_priority(
    event_id: str,
    payload: StatusPriorityUpdate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
    sink: PushSink = Depends(get_push_sink),
):
    """Change status and/or priority and notify the owner's co-owners and writers."""
    change = event_service.update_status_and_priority(
        db, actor, event_id, sink, status=payload.status, priority=payload.priority
    )
    return EventChangeOut(
        event=EventOut.model_validate(change.event),
        notified_users=change.notified_user_ids,
        warning=_warning(change.warning),
    )


@router.delete("/{event_id}", response_model=EventOut)
def delete_event(event_id: str, actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    """Soft delete an event."""
    return event_service.soft_delete_event(db, actor, event_id)


@router.get("/{event_id}/balance", response_model=BalanceOut)
def get_balance(event_id: str, actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    return transaction_service.event_balance(db, actor, event_id)


@router.post("/{event_id}/payments", response_model=PaymentResult, status_code=status.HTTP_201_CREATED)
def add_payment(
    event_id: str,
    payload: PaymentCreate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
    sink: PushSink = Depends(get_push_sink),
):
    change = transaction_service.add_payment(db, actor, event_id, sink, **payload.model_dump())
    return _payment_result(change)


@router.put("/{event_id}/payments/{transaction_id}", response_model=PaymentResult)
def update_payment(
    event_id: str,
    transaction_id: str,
    payload: PaymentUpdate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
    sink: PushSink = Depends(get_push_sink),
):
    """Replace a payment: the old record is soft deleted and a linked successor created."""
    change = transaction_service.replace_payment(
        db, actor, event_id, transaction_id, payload.model_dump(exclude_unset=True), sink
    )
    return _payment_result(change)


@router.delete("/{event_id}/payments/{transaction_id}", response_model=PaymentResult)
def delete_payment(
    event_id: str,
    transaction_id: str,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
    sink: PushSink = Depends(get_push_sink),
):
    change = transaction_service.soft_delete_payment(db, actor, event_id, transaction_id, sink)
    return _payment_result(change)


@router.get("/{event_id}/payments/{transaction_id}/history", response_model=list[TransactionOut])
def payment_history(
    event_id: str,
    transaction_id: str,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """The chain of records behind one payment, oldest first."""
    return transaction_service.payment_chain(db, actor, event_id, transaction_id)
