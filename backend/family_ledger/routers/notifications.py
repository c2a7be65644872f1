"""Notification inbox routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_ledger.database import get_db
from family_ledger.models.user import User
from family_ledger.routers.dependencies import get_actor
from family_ledger.schemas.notification import NotificationOut
from family_ledger.services import notification_service

router = APIRouter()


@router.get("/", response_model=list[NotificationOut])
def list_notifications(actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    """The caller's notifications, newest first."""
    return notification_service.list_notifications(db, actor)
