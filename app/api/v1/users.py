"""Account management routes guarded by the users:* permissions."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.v1.auth import raise_http, require_permission
from app.core.database import get_db
from app.schemas.auth import Identity
from app.schemas.users import (
    UserCreateRequest,
    UserListQuery,
    UserResponse,
    UsersListResponse,
    UserUpdateRequest,
)
from app.services import accounts
from app.services.errors import AuthServiceError

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def list_users(
    params: Annotated[UserListQuery, Query()],
    _identity: Annotated[Identity, Depends(require_permission("users", "read"))],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List users with optional search, role and active filters, sorted and paged."""
    return accounts.list_users(db, params)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreateRequest,
    _identity: Annotated[Identity, Depends(require_permission("users", "create"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    try:
        user = accounts.create_user(db, body)
    except AuthServiceError as e:
        raise_http(e)
    return accounts.to_user_response(user)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    _identity: Annotated[Identity, Depends(require_permission("users", "read"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    try:
        user = accounts.get_user(db, user_id)
    except AuthServiceError as e:
        raise_http(e)
    return accounts.to_user_response(user)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    identity: Annotated[Identity, Depends(require_permission("users", "update"))],
    db: Annotated[Session, Depends(get_db)],
) -> UserResponse:
    """
    Update names, role or active flag.

    403 if the caller changes their own role or the change would leave no
    active Administrator.
    """
    try:
        user = accounts.update_user(db, identity.id, user_id, body)
    except AuthServiceError as e:
        raise_http(e)
    return accounts.to_user_response(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(
    user_id: int,
    identity: Annotated[Identity, Depends(require_permission("users", "delete"))],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Deactivate (soft-delete) a user; the last active Administrator cannot be deactivated."""
    try:
        accounts.deactivate_user(db, identity.id, user_id)
    except AuthServiceError as e:
        raise_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
