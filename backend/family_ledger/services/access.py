"""Access resolution over the Grant table.

``can_access`` is the single authorization rule and takes every input
explicitly so it can be exercised without a database. The remaining helpers
load grants and feed them to it.
"""
import enum
import logging
from typing import Optional

from sqlalchemy.orm import Session

from family_ledger.errors import ForbiddenError
from family_ledger.models.grant import Grant, GrantLevel

logger = logging.getLogger(__name__)


class Access(str, enum.Enum):
    read = "read"
    write = "write"


_SATISFIES = {
    GrantLevel.owner: {Access.read, Access.write},
    GrantLevel.write: {Access.read, Access.write},
    GrantLevel.read: {Access.read},
}


def can_access(
    actor_id: str,
    owner_id: str,
    required: Access,
    grant_level: Optional[GrantLevel],
) -> bool:
    """Decide whether ``actor_id`` may ``required`` resources of ``owner_id``.

    ``grant_level`` is the level of the (owner_id, member=actor_id) grant, or
    None when no such grant exists.
    """
    if str(actor_id) == str(owner_id):
        return True
    if grant_level is None:
        return False
    return Access(required) in _SATISFIES.get(GrantLevel(grant_level), set())


def find_grant(db: Session, owner_id: str, member_id: str) -> Optional[Grant]:
    return (
        db.query(Grant)
        .filter(Grant.owner_id == owner_id, Grant.member_id == member_id)
        .first()
    )


def check_access(db: Session, actor_id: str, owner_id: str, required: Access) -> bool:
    if str(actor_id) == str(owner_id):
        return True
    grant = find_grant(db, owner_id, actor_id)
    return can_access(actor_id, owner_id, required, grant.permission if grant else None)


def require_access(
    db: Session,
    actor_id: str,
    owner_id: str,
    required: Access,
    message: str = "Permission denied",
) -> None:
    """Raise ForbiddenError unless the actor holds ``required`` on ``owner_id``."""
    if not check_access(db, actor_id, owner_id, required):
        logger.info("Denied %s access for user %s on owner %s", required.value, actor_id, owner_id)
        raise ForbiddenError(message)


def memberships(db: Session, member_id: str) -> list[Grant]:
    """Grants held by ``member_id``, most recently granted first."""
    return (
        db.query(Grant)
        .filter(Grant.member_id == member_id)
        .order_by(Grant.created_at.desc(), Grant.grant_id)
        .all()
    )


def resolve_effective_owner(db: Session, actor_id: str) -> str:
    """Return the owner namespace the actor's writes are filed under.

    A user without memberships is their own owner. A member writes into the
    owner's namespace whatever the grant level; write permission is checked
    separately. When a user is a member under several owners the most
    recently granted membership wins.
    """
    grants = memberships(db, actor_id)
    if not grants:
        return actor_id
    if len(grants) > 1:
        logger.debug(
            "User %s is a member under %d owners; using most recent grant %s",
            actor_id, len(grants), grants[0].grant_id,
        )
    return grants[0].owner_id
