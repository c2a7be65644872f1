"""Notification fan-out.

Runs after the ledger mutation has committed. Nothing here may undo that
mutation: persistence and push problems come back as a DeliveryWarning.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from family_ledger.errors import DeliveryWarning
from family_ledger.models.event import Event
from family_ledger.models.grant import Grant, GrantLevel
from family_ledger.models.notification import Notification
from family_ledger.models.user import User
from family_ledger.services.push import PushDeliveryError, PushSink

logger = logging.getLogger(__name__)

NOTIFIED_LEVELS = (GrantLevel.owner, GrantLevel.write)


@dataclass
class FanOutResult:
    notified_user_ids: list[str] = field(default_factory=list)
    warning: Optional[DeliveryWarning] = None


def compute_audience(owner_id: str, grants: Iterable[Grant], actor_id: str) -> list[str]:
    """Owner plus owner/write members, de-duplicated, without the actor."""
    audience = [str(owner_id)]
    for grant in grants:
        if grant.owner_id == owner_id and GrantLevel(grant.permission) in NOTIFIED_LEVELS:
            audience.append(str(grant.member_id))
    unique = list(dict.fromkeys(audience))
    return [uid for uid in unique if uid != str(actor_id)]


def audience_for(db: Session, owner_id: str, actor_id: str) -> list[str]:
    grants = (
        db.query(Grant)
        .filter(Grant.owner_id == owner_id, Grant.permission.in_(NOTIFIED_LEVELS))
        .order_by(Grant.created_at)
        .all()
    )
    return compute_audience(owner_id, grants, actor_id)


def fan_out(
    db: Session,
    event: Event,
    actor: User,
    title: str,
    message: str,
    sink: PushSink,
) -> FanOutResult:
    recipients = audience_for(db, event.owner_id, actor.user_id)
    if not recipients:
        return FanOutResult()

    logger.info("Notifying %d user(s) about event %s: %s", len(recipients), event.event_id, title)
    warning = None
    try:
        db.add_all(
            [Notification(user_id=uid, title=title, message=message) for uid in recipients]
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to store notifications for event %s", event.event_id)
        warning = DeliveryWarning("Notification records could not be stored")

    try:
        result = sink.send(recipients, title, message)
    except PushDeliveryError as exc:
        logger.warning("Push delivery failed for event %s: %s", event.event_id, exc)
        return FanOutResult(recipients, warning or DeliveryWarning("Push delivery failed", [str(exc)]))
    except Exception as exc:
        # The mutation is already committed; an unexpected sink fault is still only advisory
        logger.exception("Push sink raised unexpectedly for event %s", event.event_id)
        return FanOutResult(recipients, warning or DeliveryWarning("Push delivery failed", [str(exc)]))

    if not result.delivered:
        logger.warning(
            "Push delivery rejected for event %s: %s", event.event_id, result.provider_errors
        )
        warning = warning or DeliveryWarning("Push delivery failed", list(result.provider_errors))
    return FanOutResult(recipients, warning)


def list_notifications(db: Session, user: User) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user.user_id)
        .order_by(Notification.created_at.desc())
        .all()
    )
