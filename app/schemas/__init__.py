"""Pydantic request/response schemas."""

from app.schemas.auth import (
    AuthResponse,
    AuthUser,
    BootstrapRequest,
    Identity,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    PermissionGrant,
)
from app.schemas.health import HealthResponse
from app.schemas.users import (
    PaginationMeta,
    UserCreateRequest,
    UserListQuery,
    UserResponse,
    UsersListResponse,
    UserUpdateRequest,
)

__all__ = [
    "AuthResponse",
    "AuthUser",
    "BootstrapRequest",
    "HealthResponse",
    "Identity",
    "IdentityResponse",
    "LoginRequest",
    "MessageResponse",
    "PaginationMeta",
    "PermissionGrant",
    "UserCreateRequest",
    "UserListQuery",
    "UserResponse",
    "UsersListResponse",
    "UserUpdateRequest",
]
