"""Account management: login, first-admin bootstrap and user CRUD (soft deactivation)."""

import logging
import math
from functools import lru_cache

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import hash_password, verify_password
from app.models import Role, User
from app.schemas.auth import BootstrapRequest
from app.schemas.users import (
    PaginationMeta,
    UserCreateRequest,
    UserListQuery,
    UserResponse,
    UsersListResponse,
    UserUpdateRequest,
)
from app.services.admin_guard import ensure_admin_safety, lock_administrator_role
from app.services.errors import (
    AccountInactive,
    BootstrapCompleted,
    InvalidCredentials,
    NoFieldsToUpdate,
    RoleNotFound,
    UserAlreadyExists,
    UserNotFound,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": User.created_at,
    "first_name": User.first_name,
    "last_name": User.last_name,
    "email": User.email,
    "role": Role.name,
}


@lru_cache
def _dummy_hash() -> str:
    return hash_password("not-a-real-password")


def to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.name,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _get_role(db: Session, role_name: str) -> Role:
    role = db.query(Role).filter(Role.name == role_name).first()
    if role is None:
        raise RoleNotFound()
    return role


def _lock_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).with_for_update(of=User).first()
    if user is None:
        raise UserNotFound()
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Return the user for valid credentials.

    Unknown email and wrong password raise the same InvalidCredentials. An
    inactive account is reported only after its password matched.
    """
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        # Same bcrypt cost whether or not the account exists.
        verify_password(password, _dummy_hash())
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()
    if not user.is_active:
        raise AccountInactive()
    return user


def bootstrap_administrator(db: Session, body: BootstrapRequest) -> User:
    """Create the first Administrator. Only allowed while the users table is empty."""
    try:
        # Same lock as the admin-safety guard; serializes concurrent bootstrap attempts.
        admin_role = lock_administrator_role(db)
        if admin_role is None:
            raise RoleNotFound("Administrator role missing", status_code=500)
        if db.query(func.count(User.id)).scalar():
            raise BootstrapCompleted()
        user = User(
            email=body.email,
            password_hash=hash_password(body.password),
            first_name=body.first_name,
            last_name=body.last_name,
            role=admin_role,
        )
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("Initial Administrator created", extra={"user_id": user.id})
    return user


def create_user(db: Session, body: UserCreateRequest) -> User:
    try:
        role = _get_role(db, body.role_name)
        if db.query(User.id).filter(User.email == body.email).first() is not None:
            raise UserAlreadyExists()
        user = User(
            email=body.email,
            password_hash=hash_password(body.password),
            first_name=body.first_name,
            last_name=body.last_name,
            role=role,
        )
        db.add(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise UserAlreadyExists() from e
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("User created", extra={"user_id": user.id, "role": role.name})
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise UserNotFound()
    return user


def list_users(db: Session, params: UserListQuery) -> UsersListResponse:
    query = db.query(User).join(Role, Role.id == User.role_id)
    if params.search:
        pattern = f"%{params.search}%"
        query = query.filter(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    if params.role:
        query = query.filter(Role.name == params.role)
    if params.is_active is not None:
        query = query.filter(User.is_active.is_(params.is_active))

    total = query.count()
    column = SORT_COLUMNS[params.sort]
    ordering = column.desc() if params.order == "desc" else column.asc()
    users = (
        query.order_by(ordering, User.id)
        .offset((params.page - 1) * params.page_size)
        .limit(params.page_size)
        .all()
    )
    return UsersListResponse(
        data=[to_user_response(u) for u in users],
        pagination=PaginationMeta(
            page=params.page,
            page_size=params.page_size,
            total=total,
            total_pages=math.ceil(total / params.page_size) if total else 0,
        ),
    )


def update_user(db: Session, actor_id: int, user_id: int, body: UserUpdateRequest) -> User:
    """
    Apply a partial update. Role and active-flag changes pass the admin-safety
    guard inside the same transaction as the write.
    """
    if not body.has_changes():
        raise NoFieldsToUpdate()
    try:
        user = _lock_user(db, user_id)
        new_role = _get_role(db, body.role_name) if body.role_name is not None else None
        ensure_admin_safety(
            db,
            actor_id,
            user,
            new_role_name=body.role_name,
            new_is_active=body.is_active,
        )
        if new_role is not None and new_role.id != user.role_id:
            user.role = new_role
        if body.first_name is not None:
            user.first_name = body.first_name
        if body.last_name is not None:
            user.last_name = body.last_name
        if body.is_active is not None:
            user.is_active = body.is_active
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("User updated", extra={"actor_id": actor_id, "user_id": user.id})
    return user


def deactivate_user(db: Session, actor_id: int, user_id: int) -> None:
    """Soft-delete: mark the user inactive, subject to the admin-safety guard."""
    try:
        user = _lock_user(db, user_id)
        if user.is_active:
            ensure_admin_safety(db, actor_id, user, new_is_active=False)
            user.is_active = False
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("User deactivated", extra={"actor_id": actor_id, "user_id": user_id})
