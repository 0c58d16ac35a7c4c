"""Login/logout/bootstrap routes and the auth dependencies (get_current_identity, require_permission)."""

import logging
from collections.abc import Callable
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.rbac import validate_route_requirement
from app.core.security import create_access_token
from app.models import User
from app.schemas.auth import (
    AuthResponse,
    AuthUser,
    BootstrapRequest,
    Identity,
    IdentityResponse,
    LoginRequest,
    MessageResponse,
)
from app.services import accounts
from app.services.errors import AuthServiceError, PermissionDenied, Unauthenticated
from app.services.permissions import allow
from app.services.session import extract_token, resolve_identity

logger = logging.getLogger(__name__)

router = APIRouter()
cookie_scheme = APIKeyCookie(name=settings.AUTH_COOKIE_NAME, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)

COOKIE_MAX_AGE_SECONDS = settings.JWT_EXPIRE_DAYS * 24 * 60 * 60


def raise_http(e: AuthServiceError) -> NoReturn:
    """Re-raise a service error as an HTTPException with its status and message."""
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == 401 else None
    raise HTTPException(status_code=e.status_code, detail=e.message, headers=headers) from e


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.APP_ENV == "prod",
        samesite="strict",
    )


def _auth_response(response: Response, user: User) -> AuthResponse:
    token = create_access_token(user.id)
    _set_session_cookie(response, token)
    return AuthResponse(
        user=AuthUser(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role.name,
        ),
        access_token=token,
        token_type="bearer",
    )


def get_current_identity(
    cookie_token: Annotated[str | None, Depends(cookie_scheme)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> Identity:
    """
    Dependency: resolve the caller from the session cookie or Bearer token.

    401 when no token is present or it does not resolve to a user (no query is
    made without a token); 403 when the account is inactive.
    """
    authorization = f"Bearer {credentials.credentials}" if credentials else None
    token = extract_token(cookie_token, authorization)
    if token is None:
        raise_http(Unauthenticated())
    try:
        return resolve_identity(db, token)
    except AuthServiceError as e:
        raise_http(e)


def require_permission(module: str, action: str) -> Callable[..., Identity]:
    """
    Dependency factory: the route needs (module, action).

    The declaration is checked against the catalog when the route is defined.
    """
    validate_route_requirement(module, action)

    def dependency(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if not allow(identity, module, action):
            logger.info(
                "Permission denied",
                extra={
                    "user_id": identity.id,
                    "role": identity.role,
                    "required": f"{module}:{action}",
                },
            )
            raise_http(PermissionDenied())
        return identity

    dependency.__name__ = f"require_{module}_{action}"
    return dependency


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> AuthResponse:
    """
    Authenticate with email and password.

    Sets the http-only session cookie and returns the token for clients that
    send it as: Authorization: Bearer <access_token>
    """
    try:
        user = accounts.authenticate(db, body.email, body.password)
    except AuthServiceError as e:
        raise_http(e)
    return _auth_response(response, user)


@router.post("/bootstrap", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def bootstrap(
    body: BootstrapRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
) -> AuthResponse:
    """Create the first Administrator; refused once any user exists."""
    try:
        user = accounts.bootstrap_administrator(db, body)
    except AuthServiceError as e:
        raise_http(e)
    return _auth_response(response, user)


@router.get("/me", response_model=IdentityResponse)
def me(identity: Annotated[Identity, Depends(get_current_identity)]) -> IdentityResponse:
    return IdentityResponse.from_identity(identity)


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    _identity: Annotated[Identity, Depends(get_current_identity)],
) -> MessageResponse:
    """Clear the session cookie. Tokens are stateless; a copied token stays valid until exp."""
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.APP_ENV == "prod",
        samesite="strict",
    )
    return MessageResponse(message="Logged out")
