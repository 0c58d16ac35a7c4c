"""
Admin-safety guard: the system must always keep at least one active Administrator.

Both checks run inside the caller's transaction, before the mutation is
flushed, so a violation rolls back together with the mutation. The count is
taken while holding a FOR UPDATE lock on the Administrator role row: every
transaction that could shrink the set of active Administrators queues on that
single row, and under READ COMMITTED the count that follows sees whatever the
previous holder committed.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.rbac import ADMINISTRATOR
from app.models import Role, User
from app.services.errors import InvariantViolation

logger = logging.getLogger(__name__)

LAST_ADMIN_MESSAGE = "At least one Administrator must remain active"
OWN_ROLE_MESSAGE = "Cannot change own role"


def lock_administrator_role(db: Session) -> Role | None:
    """Take the row lock that serializes changes to the active Administrator set."""
    return db.query(Role).filter(Role.name == ADMINISTRATOR).with_for_update().first()


def would_violate_invariant(db: Session, target_user_id: int) -> bool:
    """Return True if no active Administrator other than target_user_id exists."""
    lock_administrator_role(db)
    others = (
        db.query(func.count(User.id))
        .join(Role, Role.id == User.role_id)
        .filter(
            Role.name == ADMINISTRATOR,
            User.is_active.is_(True),
            User.id != target_user_id,
        )
        .scalar()
    )
    return not others


def ensure_admin_safety(
    db: Session,
    actor_id: int,
    target: User,
    new_role_name: str | None = None,
    new_is_active: bool | None = None,
) -> None:
    """
    Raise InvariantViolation if the proposed change to target is not allowed.

    A user may never change their own role. An active Administrator may only be
    deactivated or moved to another role while another active Administrator exists.
    """
    current_role = target.role.name
    role_changes = new_role_name is not None and new_role_name != current_role

    if actor_id == target.id and role_changes:
        logger.warning(
            "User mutation blocked",
            extra={"guard": "own_role", "actor_id": actor_id, "target_id": target.id},
        )
        raise InvariantViolation(OWN_ROLE_MESSAGE)

    reduces_admins = (
        current_role == ADMINISTRATOR
        and target.is_active
        and (new_is_active is False or role_changes)
    )
    if reduces_admins and would_violate_invariant(db, target.id):
        logger.warning(
            "User mutation blocked",
            extra={"guard": "last_admin", "actor_id": actor_id, "target_id": target.id},
        )
        raise InvariantViolation(LAST_ADMIN_MESSAGE)
