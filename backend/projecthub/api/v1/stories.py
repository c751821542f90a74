"""Story endpoints, backlog views and sprint scheduling."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.exceptions import ValidationError
from projecthub.models.agile import Epic, Story
from projecthub.models.attachment import StoryParent
from projecthub.models.enums import Priority, StoryStatus
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.attachment import AttachmentService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability
from projecthub.services.sprint import SprintService

router = APIRouter()
epic_router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

StoryEditor = Annotated[User, Depends(require(Capability.EDIT_STORY))]
StoryRemover = Annotated[User, Depends(require(Capability.DELETE_STORY))]
SprintPlanner = Annotated[User, Depends(require(Capability.MANAGE_SPRINTS))]


class StoryFields(CamelModel):
    title: str = Field(..., min_length=2, max_length=255)
    description: str | None = None
    status: StoryStatus = StoryStatus.TODO
    priority: Priority = Priority.MEDIUM
    points: int | None = Field(None, ge=0, le=100)
    is_ready: bool = False
    assignee_id: UUID | None = None
    reporter_id: UUID | None = None


class StoryCreate(StoryFields):
    """Story creation with the epic given in the body."""

    epic_id: UUID


class StoryUpdate(CamelModel):
    title: str | None = Field(None, min_length=2, max_length=255)
    description: str | None = None
    status: StoryStatus | None = None
    priority: Priority | None = None
    points: int | None = Field(None, ge=0, le=100)
    is_ready: bool | None = None
    assignee_id: UUID | None = None


class StorySprintUpdate(CamelModel):
    """Target sprint; null returns the story to the backlog."""

    sprint_id: UUID | None


class StoryReadyUpdate(CamelModel):
    is_ready: bool


class StoryResponse(CamelModel):
    id: UUID
    epic_id: UUID
    project_id: UUID
    sprint_id: UUID | None
    title: str
    description: str | None
    status: StoryStatus
    priority: Priority
    points: int | None
    is_ready: bool
    assignee_id: UUID | None
    reporter_id: UUID | None
    created_at: datetime
    updated_at: datetime


async def _check_user(db: AsyncSession, user_id: UUID | None, field: str) -> None:
    if user_id is not None and await db.get(User, user_id) is None:
        raise ValidationError("User does not exist", field=field)


async def _create_story(
    db: AsyncSession, epic_id: UUID, fields: StoryFields, current_user: User
) -> Story:
    epic = await get_or_404(db, Epic, epic_id)
    await _check_user(db, fields.assignee_id, "assigneeId")
    await _check_user(db, fields.reporter_id, "reporterId")

    data = fields.model_dump(include=set(StoryFields.model_fields))
    data["reporter_id"] = fields.reporter_id or current_user.id
    story = Story(epic_id=epic.id, project_id=epic.project_id, **data)
    db.add(story)
    await db.commit()

    logger.info("Story created", story_id=str(story.id), epic_id=str(epic.id))
    return story


# =============================================================================
# Project-scoped views
# =============================================================================


@project_router.get("/{project_id}/stories", response_model=Envelope[list[StoryResponse]])
async def list_project_stories(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    sprint_id: UUID | None = Query(None, alias="sprintId"),
    epic_id: UUID | None = Query(None, alias="epicId"),
    story_status: StoryStatus | None = Query(None, alias="status"),
    backlog: bool = False,
) -> dict:
    """Stories of a project; ``backlog=true`` keeps only unscheduled ones."""
    await get_or_404(db, Project, project_id)

    query = select(Story).where(Story.project_id == project_id)
    if backlog:
        query = query.where(Story.sprint_id.is_(None))
    elif sprint_id:
        query = query.where(Story.sprint_id == sprint_id)
    if epic_id:
        query = query.where(Story.epic_id == epic_id)
    if story_status:
        query = query.where(Story.status == story_status)

    result = await db.execute(query.order_by(Story.created_at))
    return ok(result.scalars().all())


@project_router.get("/{project_id}/backlog", response_model=Envelope[list[StoryResponse]])
async def get_project_backlog(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Stories of a project not scheduled into any sprint."""
    await get_or_404(db, Project, project_id)
    result = await db.execute(
        select(Story)
        .where(Story.project_id == project_id, Story.sprint_id.is_(None))
        .order_by(Story.created_at)
    )
    return ok(result.scalars().all())


# =============================================================================
# Epic-scoped
# =============================================================================


@epic_router.get("/{epic_id}/stories", response_model=Envelope[list[StoryResponse]])
async def list_epic_stories(
    epic_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await get_or_404(db, Epic, epic_id)
    result = await db.execute(
        select(Story).where(Story.epic_id == epic_id).order_by(Story.created_at)
    )
    return ok(result.scalars().all())


@epic_router.post(
    "/{epic_id}/stories",
    response_model=Envelope[StoryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_epic_story(
    epic_id: UUID,
    body: StoryFields,
    current_user: StoryEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await _create_story(db, epic_id, body, current_user), "Story created")


# =============================================================================
# Stories
# =============================================================================


@router.post("", response_model=Envelope[StoryResponse], status_code=status.HTTP_201_CREATED)
async def create_story(
    body: StoryCreate,
    current_user: StoryEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await _create_story(db, body.epic_id, body, current_user), "Story created")


@router.get("/{story_id}", response_model=Envelope[StoryResponse])
async def get_story(
    story_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, Story, story_id))


@router.put("/{story_id}", response_model=Envelope[StoryResponse])
async def update_story(
    story_id: UUID,
    body: StoryUpdate,
    current_user: StoryEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    story = await get_or_404(db, Story, story_id)
    changes = changes_from(body, nullable=("description", "points", "assignee_id"))
    if "assignee_id" in changes:
        await _check_user(db, changes["assignee_id"], "assigneeId")

    for field, value in changes.items():
        setattr(story, field, value)
    await db.commit()

    logger.info("Story updated", story_id=str(story.id), fields=sorted(changes))
    return ok(story, "Story updated")


@router.delete("/{story_id}", response_model=Envelope[None])
async def delete_story(
    story_id: UUID,
    current_user: StoryRemover,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete a story. Its tasks stay, detached from the story."""
    story = await get_or_404(db, Story, story_id)
    attachments = AttachmentService(db, settings.upload_dir, settings.max_upload_size_mb)
    paths = await attachments.stored_paths([StoryParent(story.id)])

    await db.delete(story)
    await db.commit()
    await attachments.remove_files(paths)

    logger.info("Story deleted", story_id=str(story_id), user_id=str(current_user.id))
    return ok(None, "Story deleted")


@router.put("/{story_id}/sprint", response_model=Envelope[StoryResponse])
async def assign_story_to_sprint(
    story_id: UUID,
    body: StorySprintUpdate,
    current_user: SprintPlanner,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Schedule a story into a sprint, or send it back to the backlog with null."""
    story = await SprintService(db).assign_story(story_id, body.sprint_id)
    await db.commit()
    message = "Story moved to backlog" if story.sprint_id is None else "Story added to sprint"
    return ok(story, message)


@router.put("/{story_id}/ready", response_model=Envelope[StoryResponse])
async def set_story_ready(
    story_id: UUID,
    body: StoryReadyUpdate,
    current_user: StoryEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Mark a story ready (or not) for sprint planning."""
    story = await get_or_404(db, Story, story_id)
    story.is_ready = body.is_ready
    await db.commit()

    logger.info("Story readiness changed", story_id=str(story.id), is_ready=body.is_ready)
    return ok(story)
