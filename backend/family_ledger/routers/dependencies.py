"""Shared router dependencies."""
from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from family_ledger.database import get_db
from family_ledger.models.user import User


def get_actor(
    actor_user_id: str = Query(..., description="ID of the authenticated user performing the call"),
    db: Session = Depends(get_db),
) -> User:
    """Stand-in for the session provider: resolve the acting user."""
    user = db.query(User).filter(User.user_id == actor_user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown actor")
    return user
