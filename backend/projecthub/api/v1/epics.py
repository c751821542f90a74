"""Epic endpoints."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.exceptions import ValidationError
from projecthub.models.agile import Epic, Story
from projecthub.models.attachment import EpicParent, StoryParent
from projecthub.models.enums import EpicStatus, Priority
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.attachment import AttachmentService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

EpicManager = Annotated[User, Depends(require(Capability.MANAGE_EPICS))]

DATE_ORDER_MESSAGE = "End date must be on or after start date"


class EpicCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: str | None = None
    status: EpicStatus = EpicStatus.TODO
    priority: Priority = Priority.MEDIUM
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "EpicCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError(DATE_ORDER_MESSAGE)
        return self


class EpicUpdate(CamelModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    description: str | None = None
    status: EpicStatus | None = None
    priority: Priority | None = None
    start_date: date | None = None
    end_date: date | None = None


class EpicResponse(CamelModel):
    id: UUID
    project_id: UUID
    name: str
    description: str | None
    status: EpicStatus
    priority: Priority
    start_date: date | None
    end_date: date | None
    story_count: int = 0
    created_at: datetime
    updated_at: datetime


async def _story_counts(db: AsyncSession, epic_ids: list[UUID]) -> dict[UUID, int]:
    if not epic_ids:
        return {}
    result = await db.execute(
        select(Story.epic_id, func.count(Story.id))
        .where(Story.epic_id.in_(epic_ids))
        .group_by(Story.epic_id)
    )
    return dict(result.all())


async def _epic_payload(db: AsyncSession, epic: Epic) -> EpicResponse:
    counts = await _story_counts(db, [epic.id])
    response = EpicResponse.model_validate(epic)
    response.story_count = counts.get(epic.id, 0)
    return response


@project_router.get("/{project_id}/epics", response_model=Envelope[list[EpicResponse]])
async def list_project_epics(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    epic_status: EpicStatus | None = Query(None, alias="status"),
) -> dict:
    await get_or_404(db, Project, project_id)

    query = select(Epic).where(Epic.project_id == project_id)
    if epic_status:
        query = query.where(Epic.status == epic_status)
    epics = (await db.execute(query.order_by(Epic.created_at))).scalars().all()

    counts = await _story_counts(db, [e.id for e in epics])
    payload = []
    for epic in epics:
        item = EpicResponse.model_validate(epic)
        item.story_count = counts.get(epic.id, 0)
        payload.append(item)
    return ok(payload)


@project_router.post(
    "/{project_id}/epics",
    response_model=Envelope[EpicResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_epic(
    project_id: UUID,
    body: EpicCreate,
    current_user: EpicManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_or_404(db, Project, project_id)
    epic = Epic(project_id=project.id, **body.model_dump())
    db.add(epic)
    await db.commit()

    logger.info("Epic created", epic_id=str(epic.id), project_id=str(project.id))
    return ok(await _epic_payload(db, epic), "Epic created")


@router.get("/{epic_id}", response_model=Envelope[EpicResponse])
async def get_epic(
    epic_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    epic = await get_or_404(db, Epic, epic_id)
    return ok(await _epic_payload(db, epic))


@router.put("/{epic_id}", response_model=Envelope[EpicResponse])
async def update_epic(
    epic_id: UUID,
    body: EpicUpdate,
    current_user: EpicManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    epic = await get_or_404(db, Epic, epic_id)
    changes = changes_from(body, nullable=("description", "start_date", "end_date"))

    start = changes.get("start_date", epic.start_date)
    end = changes.get("end_date", epic.end_date)
    if start and end and end < start:
        raise ValidationError(DATE_ORDER_MESSAGE, field="endDate")

    for field, value in changes.items():
        setattr(epic, field, value)
    await db.commit()

    logger.info("Epic updated", epic_id=str(epic.id), fields=sorted(changes))
    return ok(await _epic_payload(db, epic), "Epic updated")


@router.delete("/{epic_id}", response_model=Envelope[None])
async def delete_epic(
    epic_id: UUID,
    current_user: EpicManager,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete an epic together with its stories and their attachments."""
    epic = await get_or_404(db, Epic, epic_id)
    story_ids = (await db.scalars(select(Story.id).where(Story.epic_id == epic.id))).all()
    attachments = AttachmentService(db, settings.upload_dir, settings.max_upload_size_mb)
    paths = await attachments.stored_paths(
        [EpicParent(epic.id), *(StoryParent(story_id) for story_id in story_ids)]
    )

    await db.delete(epic)
    await db.commit()
    await attachments.remove_files(paths)

    logger.info("Epic deleted", epic_id=str(epic_id), user_id=str(current_user.id))
    return ok(None, "Epic deleted")
