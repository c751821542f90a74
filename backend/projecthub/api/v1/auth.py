"""Authentication endpoints, token helpers and auth dependencies."""

from datetime import datetime, timedelta, timezone
from typing import Annotated, Callable
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import EmailStr, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, ok
from projecthub.config import Settings
from projecthub.db.session import get_db_session
from projecthub.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    RateLimitError,
)
from projecthub.models.enums import UserRole, UserStatus
from projecthub.models.user import User
from projecthub.services.permissions import Capability, has_capability
from projecthub.utils.passwords import hash_password, verify_password

router = APIRouter()
logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)

AUTH_LIMIT_MESSAGE = "Too many login attempts, please try again later."


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str | None = None


class UserResponse(CamelModel):
    """User information response."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    status: UserStatus
    last_login_at: datetime | None
    created_at: datetime


class AuthPayload(CamelModel):
    user: UserResponse
    token: str
    refresh_token: str
    expires_in: int


# =============================================================================
# Tokens
# =============================================================================


def _encode(user_id: UUID, token_type: str, lifetime: timedelta, settings: Settings) -> str:
    to_encode = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + lifetime,
        "type": token_type,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(user_id: UUID, settings: Settings) -> str:
    """Create a JWT access token."""
    lifetime = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(user_id, "access", lifetime, settings)


def create_refresh_token(user_id: UUID, settings: Settings) -> str:
    """Create a JWT refresh token."""
    lifetime = timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(user_id, "refresh", lifetime, settings)


def decode_token(token: str, expected_type: str, settings: Settings) -> UUID:
    """Return the user id carried by ``token``.

    Raises AuthenticationError for bad signatures, expired tokens and tokens
    of the wrong type.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise AuthenticationError("Invalid token") from None

    subject = payload.get("sub")
    if subject is None or payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token")
    try:
        return UUID(subject)
    except ValueError:
        raise AuthenticationError("Invalid token") from None


def _set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )


def _auth_payload(user: User, settings: Settings) -> dict:
    return {
        "user": user,
        "token": create_access_token(user.id, settings),
        "refresh_token": create_refresh_token(user.id, settings),
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
    }


# =============================================================================
# Dependencies
# =============================================================================


async def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Resolve the caller from the bearer token, falling back to the auth cookie."""
    token = credentials.credentials if credentials else None
    if not token:
        token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise AuthenticationError("Not authenticated")

    user_id = decode_token(token, "access", settings)

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is disabled")

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


# Type alias for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]


def require(capability: Capability) -> Callable:
    """Dependency factory admitting only users whose role grants ``capability``."""

    async def dependency(current_user: CurrentUser) -> User:
        if not has_capability(current_user.role, capability):
            logger.info(
                "Permission denied",
                user_id=str(current_user.id),
                role=current_user.role.value,
                capability=capability.value,
            )
            raise AuthorizationError()
        return current_user

    return dependency


async def auth_rate_limit(request: Request) -> None:
    """Stricter per-IP quota shared by the login and registration endpoints."""
    limiter = request.app.state.rate_limiter
    if not limiter.enabled:
        return
    key = request.client.host if request.client else "unknown"
    retry_after = limiter.hit(limiter.auth_limit, "auth", key)
    if retry_after is not None:
        logger.warning("Rate limit exceeded", scope="auth", key=key, path=request.url.path)
        raise RateLimitError(AUTH_LIMIT_MESSAGE, retry_after=retry_after)


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/register",
    response_model=Envelope[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
@router.post(
    "/signup",
    response_model=Envelope[AuthPayload],
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
    dependencies=[Depends(auth_rate_limit)],
)
async def register(
    body: RegisterRequest,
    response: Response,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create an account with the default Developer role and sign it in."""
    email = body.email.lower()
    existing = await db.scalar(select(User.id).where(func.lower(User.email) == email))
    if existing is not None:
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(body.password, settings.bcrypt_rounds),
        first_name=body.first_name,
        last_name=body.last_name,
        role=UserRole.DEVELOPER,
        status=UserStatus.ACTIVE,
        last_login_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.commit()

    logger.info("User registered", user_id=str(user.id))

    payload = _auth_payload(user, settings)
    _set_auth_cookie(response, payload["token"], settings)
    return ok(payload, "Registration successful")


@router.post(
    "/login", response_model=Envelope[AuthPayload], dependencies=[Depends(auth_rate_limit)]
)
async def login(
    body: LoginRequest,
    response: Response,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Exchange email and password for tokens."""
    user = await db.scalar(select(User).where(func.lower(User.email) == body.email.lower()))

    if user is None or not verify_password(body.password, user.password_hash):
        logger.info("Login failed", email=body.email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise AuthorizationError("User account is disabled")

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info("User logged in", user_id=str(user.id))

    payload = _auth_payload(user, settings)
    _set_auth_cookie(response, payload["token"], settings)
    return ok(payload, "Login successful")


@router.post("/refresh-token", response_model=Envelope[AuthPayload])
async def refresh_token(
    response: Response,
    settings: AppSettings,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    body: RefreshRequest | None = None,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Issue fresh tokens from a refresh token in the body or bearer header."""
    token = body.refresh_token if body and body.refresh_token else None
    if token is None and credentials:
        token = credentials.credentials
    if not token:
        raise AuthenticationError("Refresh token required")

    user_id = decode_token(token, "refresh", settings)

    # Verify user still exists and is active
    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("User not found or disabled")

    payload = _auth_payload(user, settings)
    _set_auth_cookie(response, payload["token"], settings)
    return ok(payload)


@router.post("/logout", response_model=Envelope[None])
async def logout(response: Response, settings: AppSettings) -> dict:
    """Clear the auth cookie; bearer clients simply discard their tokens."""
    response.delete_cookie(settings.auth_cookie_name, path="/")
    return ok(None, "Successfully logged out")


@router.get("/me", response_model=Envelope[UserResponse])
async def get_current_user_info(current_user: CurrentUser) -> dict:
    """Get current user information."""
    return ok(current_user)
