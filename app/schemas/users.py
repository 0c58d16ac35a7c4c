"""Request/response schemas for account management (/users)."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.rbac import ROLE_DESCRIPTIONS
from app.core.security import (
    EMAIL_MAX_LEN,
    EMAIL_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from app.schemas.auth import normalize_email

SortField = Literal["created_at", "first_name", "last_name", "email", "role"]


class UserCreateRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    role_name: str = Field(..., min_length=1, max_length=64, description="One of the seeded roles")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class UserUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, min_length=1, max_length=255)
    role_name: str | None = Field(default=None, min_length=1, max_length=64)
    is_active: bool | None = None

    def has_changes(self) -> bool:
        return any(
            v is not None
            for v in (self.first_name, self.last_name, self.role_name, self.is_active)
        )


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaginationMeta(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class UsersListResponse(BaseModel):
    data: list[UserResponse]
    pagination: PaginationMeta


class UserListQuery(BaseModel):
    """Filters, sorting and paging for GET /users."""

    search: str | None = Field(default=None, max_length=255)
    role: str | None = None
    is_active: bool | None = None
    sort: SortField = "created_at"
    order: Literal["asc", "desc"] = "asc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str | None) -> str | None:
        if v is not None and v not in ROLE_DESCRIPTIONS:
            raise ValueError("Unknown role")
        return v
