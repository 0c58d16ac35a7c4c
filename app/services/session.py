"""Session resolution: session token → Identity with the role's permission grants."""

import logging

from sqlalchemy.orm import Session

from app.core.security import ExpiredTokenError, TokenError, decode_access_token
from app.models import Permission, Role, RolePermission, User
from app.schemas.auth import Identity
from app.services.errors import AccountInactive, Unauthenticated

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def extract_token(cookie_token: str | None, authorization: str | None) -> str | None:
    """Return the session token from the cookie, else from 'Authorization: Bearer <token>'."""
    if cookie_token and cookie_token.strip():
        return cookie_token.strip()
    if authorization and authorization[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX:
        token = authorization[len(BEARER_PREFIX):].strip()
        return token or None
    return None


def load_grants(db: Session, role_id: int) -> frozenset[tuple[str, str]]:
    """All (module, action) pairs granted to a role."""
    rows = (
        db.query(Permission.module, Permission.action)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id == role_id)
        .all()
    )
    return frozenset((module, action) for module, action in rows)


def resolve_identity(db: Session, token: str) -> Identity:
    """
    Verify token and build the caller's Identity.

    Raises Unauthenticated for bad/expired tokens and unknown users (the two
    are indistinguishable to the caller), AccountInactive for deactivated users.
    Performs only reads: one for the user and role, one for the grants.
    """
    try:
        user_id = decode_access_token(token)
    except ExpiredTokenError:
        logger.info("Session rejected", extra={"auth_reason": "token_expired"})
        raise Unauthenticated()
    except TokenError:
        logger.info("Session rejected", extra={"auth_reason": "token_invalid"})
        raise Unauthenticated()

    row = (
        db.query(User, Role.name)
        .join(Role, Role.id == User.role_id)
        .filter(User.id == user_id)
        .first()
    )
    if row is None:
        logger.info("Session rejected", extra={"auth_reason": "unknown_user"})
        raise Unauthenticated()
    user, role_name = row
    if not user.is_active:
        logger.info(
            "Session rejected",
            extra={"auth_reason": "inactive", "user_id": user.id},
        )
        raise AccountInactive()

    return Identity(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=role_name,
        permissions=load_grants(db, user.role_id),
    )
