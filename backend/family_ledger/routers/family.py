"""Family grant routes: the caller always acts as the owner side."""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from family_ledger.database import get_db
from family_ledger.models.user import User
from family_ledger.routers.dependencies import get_actor
from family_ledger.schemas.grant import GrantCreate, GrantOut, GrantUpdate
from family_ledger.services import grant_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/share", response_model=GrantOut)
def give_family_access(
    payload: GrantCreate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Grant (or re-grant) a member access to the caller's ledger."""
    return grant_service.grant_access(db, actor, payload.member_email, payload.permission)


@router.get("/", response_model=list[GrantOut])
def list_family_permissions(actor: User = Depends(get_actor), db: Session = Depends(get_db)):
    return grant_service.list_grants(db, actor)


@router.put("/permissions/{grant_id}", response_model=GrantOut)
def edit_family_permission(
    grant_id: str,
    payload: GrantUpdate,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return grant_service.edit_grant(db, actor, grant_id, payload.permission)


@router.delete("/permissions/{grant_id}", status_code=status.HTTP_204_NO_CONTENT)
def revoke_family_permission(
    grant_id: str,
    actor: User = Depends(get_actor),
    db: Session = Depends(get_db),
):
    grant_service.revoke_grant(db, actor, grant_id)
