"""Family grant management: only the owner side may mutate its grants."""
import logging

from sqlalchemy.orm import Session

from family_ledger.errors import NotFoundError, ValidationError
from family_ledger.models.grant import Grant, GrantLevel
from family_ledger.models.user import User
from family_ledger.services.access import find_grant

logger = logging.getLogger(__name__)


def _parse_level(permission) -> GrantLevel:
    try:
        return GrantLevel(permission)
    except ValueError:
        raise ValidationError(
            "permission must be one of: read, write, owner", field="permission"
        ) from None


def _owned_grant(db: Session, owner: User, grant_id: str) -> Grant:
    grant = (
        db.query(Grant)
        .filter(Grant.grant_id == grant_id, Grant.owner_id == owner.user_id)
        .first()
    )
    if not grant:
        raise NotFoundError("Family permission not found or not owned by you")
    return grant


def grant_access(db: Session, owner: User, member_email: str, permission: str) -> Grant:
    """Grant ``member_email`` access to the owner's ledger, upserting the level."""
    if not member_email or not permission:
        raise ValidationError("member_email and permission are required")
    level = _parse_level(permission)
    if owner.email and member_email.strip().lower() == owner.email.lower():
        raise ValidationError("You cannot grant access to yourself", field="member_email")

    member = db.query(User).filter(User.email == member_email.strip()).first()
    if not member:
        raise NotFoundError("Member not found")
    if member.user_id == owner.user_id:
        raise ValidationError("You cannot grant access to yourself", field="member_email")

    grant = find_grant(db, owner.user_id, member.user_id)
    if grant:
        grant.permission = level
    else:
        grant = Grant(owner_id=owner.user_id, member_id=member.user_id, permission=level)
        db.add(grant)
    db.commit()
    db.refresh(grant)
    logger.info("Owner %s granted %s access to member %s", owner.user_id, level.value, member.user_id)
    return grant


def list_grants(db: Session, owner: User) -> list[Grant]:
    return (
        db.query(Grant)
        .filter(Grant.owner_id == owner.user_id)
        .order_by(Grant.created_at)
        .all()
    )


def edit_grant(db: Session, owner: User, grant_id: str, permission: str) -> Grant:
    level = _parse_level(permission)
    grant = _owned_grant(db, owner, grant_id)
    grant.permission = level
    db.commit()
    db.refresh(grant)
    logger.info("Owner %s changed grant %s to %s", owner.user_id, grant_id, level.value)
    return grant


def revoke_grant(db: Session, owner: User, grant_id: str) -> None:
    grant = _owned_grant(db, owner, grant_id)
    member_id = grant.member_id
    db.delete(grant)
    db.commit()
    logger.info("Owner %s revoked grant %s (member %s)", owner.user_id, grant_id, member_id)
