"""Client endpoints."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import CamelModel, Envelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.exceptions import ConflictError
from projecthub.models.enums import ClientStatus
from projecthub.models.project import Client
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
logger = structlog.get_logger()

ClientManager = Annotated[User, Depends(require(Capability.MANAGE_CLIENTS))]


class ClientCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    address: str | None = None
    notes: str | None = None
    status: ClientStatus = ClientStatus.ACTIVE


class ClientUpdate(CamelModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)
    address: str | None = None
    notes: str | None = None
    status: ClientStatus | None = None


class ClientResponse(CamelModel):
    id: UUID
    name: str
    email: str | None
    phone: str | None
    company: str | None
    address: str | None
    notes: str | None
    status: ClientStatus
    created_at: datetime
    updated_at: datetime


async def _ensure_unique_email(db: AsyncSession, email: str | None, exclude: UUID | None = None) -> None:
    if not email:
        return
    query = select(Client.id).where(func.lower(Client.email) == email.lower())
    if exclude is not None:
        query = query.where(Client.id != exclude)
    if await db.scalar(query) is not None:
        raise ConflictError("A client with this email already exists")


@router.get("", response_model=Envelope[list[ClientResponse]])
async def list_clients(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    search: str | None = Query(None, min_length=1, max_length=100),
    client_status: ClientStatus | None = Query(None, alias="status"),
) -> dict:
    query = select(Client)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(func.lower(Client.name).like(pattern), func.lower(Client.company).like(pattern))
        )
    if client_status:
        query = query.where(Client.status == client_status)

    result = await db.execute(query.order_by(Client.name))
    return ok(result.scalars().all())


@router.post("", response_model=Envelope[ClientResponse], status_code=status.HTTP_201_CREATED)
async def create_client(
    body: ClientCreate,
    current_user: ClientManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await _ensure_unique_email(db, body.email)

    client = Client(**body.model_dump())
    db.add(client)
    await db.commit()

    logger.info("Client created", client_id=str(client.id), user_id=str(current_user.id))
    return ok(client, "Client created")


@router.get("/{client_id}", response_model=Envelope[ClientResponse])
async def get_client(
    client_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, Client, client_id))


@router.put("/{client_id}", response_model=Envelope[ClientResponse])
async def update_client(
    client_id: UUID,
    body: ClientUpdate,
    current_user: ClientManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    client = await get_or_404(db, Client, client_id)
    changes = changes_from(body, nullable=("email", "phone", "company", "address", "notes"))
    if "email" in changes:
        await _ensure_unique_email(db, changes["email"], exclude=client.id)

    for field, value in changes.items():
        setattr(client, field, value)
    await db.commit()

    logger.info("Client updated", client_id=str(client.id))
    return ok(client, "Client updated")


@router.delete("/{client_id}", response_model=Envelope[None])
async def delete_client(
    client_id: UUID,
    current_user: ClientManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete a client; its projects keep running without a client."""
    client = await get_or_404(db, Client, client_id)
    await db.delete(client)
    await db.commit()

    logger.info("Client deleted", client_id=str(client_id))
    return ok(None, "Client deleted")
