"""User management endpoints."""

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, UserResponse, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, ok
from projecthub.db.session import get_db_session
from projecthub.exceptions import ConflictError, ValidationError
from projecthub.models.enums import UserRole, UserStatus
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability
from projecthub.utils.passwords import hash_password

router = APIRouter()
logger = structlog.get_logger()

UserAdmin = Annotated[User, Depends(require(Capability.MANAGE_USERS))]


class UserBrief(CamelModel):
    """Compact user reference embedded in other resources."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole


class UserCreate(CamelModel):
    """Admin-created account."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.DEVELOPER
    status: UserStatus = UserStatus.ACTIVE


class UserUpdate(CamelModel):
    """Admin update; any subset of fields."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    role: UserRole | None = None
    status: UserStatus | None = None


class ProfileUpdate(CamelModel):
    """Self-service profile update."""

    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    password: str | None = Field(None, min_length=8, max_length=128)


@router.get("", response_model=Envelope[list[UserResponse]])
async def list_users(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    search: str | None = Query(None, min_length=1, max_length=100),
    role: UserRole | None = None,
    user_status: UserStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
) -> dict:
    """List users, optionally filtered by name/email search, role or status."""
    query = select(User)

    if search:
        search_pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(User.email).like(search_pattern),
                func.lower(User.first_name).like(search_pattern),
                func.lower(User.last_name).like(search_pattern),
            )
        )
    if role:
        query = query.where(User.role == role)
    if user_status:
        query = query.where(User.status == user_status)

    result = await db.execute(query.order_by(User.last_name, User.first_name).limit(limit))
    return ok(result.scalars().all())


@router.get("/me", response_model=Envelope[UserResponse])
async def get_my_profile(current_user: CurrentUser) -> dict:
    return ok(current_user)


@router.put("/me", response_model=Envelope[UserResponse])
async def update_my_profile(
    body: ProfileUpdate,
    current_user: CurrentUser,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Update the caller's own names or password. Role and status are admin-only."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    password = changes.pop("password", None)
    for field, value in changes.items():
        setattr(current_user, field, value)
    if password:
        current_user.password_hash = hash_password(password, settings.bcrypt_rounds)

    await db.commit()
    logger.info("Profile updated", user_id=str(current_user.id))
    return ok(current_user, "Profile updated")


@router.post("", response_model=Envelope[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    admin: UserAdmin,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    email = body.email.lower()
    if await db.scalar(select(User.id).where(func.lower(User.email) == email)) is not None:
        raise ConflictError("A user with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(body.password, settings.bcrypt_rounds),
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        status=body.status,
    )
    db.add(user)
    await db.commit()

    logger.info("User created", user_id=str(user.id), created_by=str(admin.id))
    return ok(user, "User created")


@router.get("/{user_id}", response_model=Envelope[UserResponse])
async def get_user(
    user_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, User, user_id, label="User"))


@router.put("/{user_id}", response_model=Envelope[UserResponse])
async def update_user(
    user_id: UUID,
    body: UserUpdate,
    admin: UserAdmin,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    user = await get_or_404(db, User, user_id, label="User")
    changes = body.model_dump(exclude_unset=True, exclude_none=True)

    if user.id == admin.id and (
        changes.get("role", UserRole.ADMIN) != UserRole.ADMIN
        or changes.get("status", UserStatus.ACTIVE) != UserStatus.ACTIVE
    ):
        raise ValidationError("Administrators cannot demote or deactivate themselves")

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()

    logger.info("User updated", user_id=str(user.id), fields=sorted(changes))
    return ok(user, "User updated")


@router.delete("/{user_id}", response_model=Envelope[UserResponse])
async def deactivate_user(
    user_id: UUID,
    admin: UserAdmin,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Deactivate an account. Users are never hard-deleted."""
    user = await get_or_404(db, User, user_id, label="User")
    if user.id == admin.id:
        raise ValidationError("Administrators cannot deactivate themselves")

    user.status = UserStatus.INACTIVE
    await db.commit()

    logger.info("User deactivated", user_id=str(user.id), deactivated_by=str(admin.id))
    return ok(user, "User deactivated")
