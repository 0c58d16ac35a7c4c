"""Request/response schemas for auth endpoints and the request-scoped Identity."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.security import (
    EMAIL_MAX_LEN,
    EMAIL_MIN_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)


def normalize_email(value: str) -> str:
    """Trim and lower-case an email; reject values without a single '@'."""
    email = value.strip().lower()
    if email.count("@") != 1 or email.startswith("@") or email.endswith("@"):
        raise ValueError("Invalid email address")
    return email


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class BootstrapRequest(BaseModel):
    """First Administrator account, accepted only while no user exists."""

    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class Identity(BaseModel):
    """
    Authenticated caller resolved from a session token.

    Built fresh on every request and never mutated afterwards; permissions
    holds the (module, action) grants of the caller's role.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    permissions: frozenset[tuple[str, str]] = frozenset()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PermissionGrant(BaseModel):
    module: str
    action: str


class IdentityResponse(BaseModel):
    """Current user as returned by GET /auth/me."""

    id: int
    email: str
    first_name: str
    last_name: str
    display_name: str
    role: str
    permissions: list[PermissionGrant]

    @classmethod
    def from_identity(cls, identity: Identity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            display_name=identity.display_name,
            role=identity.role,
            permissions=[
                PermissionGrant(module=m, action=a) for m, a in sorted(identity.permissions)
            ],
        )


class AuthUser(BaseModel):
    """User summary returned after login/bootstrap (no password hash)."""

    id: int
    email: str
    first_name: str
    last_name: str
    role: str


class AuthResponse(BaseModel):
    """Login/bootstrap result. The token is also set as an http-only cookie."""

    user: AuthUser
    access_token: str = Field(..., description="Session token for Bearer clients")
    token_type: str = Field(default="bearer", description="Token type")


class MessageResponse(BaseModel):
    message: str
