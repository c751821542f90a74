"""Sprint endpoints.

Transitions are separate endpoints: ``/start`` moves Planning to Active and
``/complete`` moves Active to Completed.
"""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import CamelModel, Envelope, changes_from, ok
from projecthub.api.v1.stories import StoryResponse
from projecthub.db.session import get_db_session
from projecthub.models.agile import Sprint, Story
from projecthub.models.enums import SprintStatus
from projecthub.models.project import Board, Project
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability
from projecthub.services.sprint import DATE_ORDER_MESSAGE, SprintService

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

SprintManager = Annotated[User, Depends(require(Capability.MANAGE_SPRINTS))]


class SprintCreate(CamelModel):
    """Sprint creation request. New sprints always start in Planning."""

    name: str = Field(..., min_length=1, max_length=255)
    goal: str | None = None
    start_date: date
    end_date: date
    board_id: UUID

    @model_validator(mode="after")
    def check_dates(self) -> "SprintCreate":
        if self.end_date <= self.start_date:
            raise ValueError(DATE_ORDER_MESSAGE)
        return self


class SprintUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    goal: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class SprintComplete(CamelModel):
    move_incomplete_to_backlog: bool = True


class SprintResponse(CamelModel):
    id: UUID
    board_id: UUID
    name: str
    goal: str | None
    start_date: date
    end_date: date
    status: SprintStatus
    is_locked: bool
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SprintProgressResponse(CamelModel):
    total_stories: int
    completed_stories: int
    total_points: int
    completed_points: int
    percent: int


class SprintDetailResponse(SprintResponse):
    stories: list[StoryResponse]
    progress: SprintProgressResponse


async def _detail(db: AsyncSession, sprint: Sprint) -> SprintDetailResponse:
    service = SprintService(db)
    stories = (
        await db.execute(
            select(Story).where(Story.sprint_id == sprint.id).order_by(Story.created_at)
        )
    ).scalars().all()
    progress = await service.progress(sprint.id)
    return SprintDetailResponse(
        **SprintResponse.model_validate(sprint).model_dump(),
        stories=[StoryResponse.model_validate(s) for s in stories],
        progress=SprintProgressResponse(
            total_stories=progress.total_stories,
            completed_stories=progress.completed_stories,
            total_points=progress.total_points,
            completed_points=progress.completed_points,
            percent=progress.percent,
        ),
    )


@router.get("", response_model=Envelope[list[SprintResponse]])
async def list_sprints(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    sprint_status: SprintStatus | None = Query(None, alias="status"),
    board_id: UUID | None = Query(None, alias="boardId"),
    limit: int = Query(50, ge=1, le=100),
) -> dict:
    query = select(Sprint)
    if sprint_status:
        query = query.where(Sprint.status == sprint_status)
    if board_id:
        query = query.where(Sprint.board_id == board_id)

    result = await db.execute(query.order_by(Sprint.start_date.desc()).limit(limit))
    return ok(result.scalars().all())


@router.post("", response_model=Envelope[SprintResponse], status_code=status.HTTP_201_CREATED)
async def create_sprint(
    body: SprintCreate,
    current_user: SprintManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    sprint = await SprintService(db).create(
        board_id=body.board_id,
        name=body.name,
        start_date=body.start_date,
        end_date=body.end_date,
        goal=body.goal,
    )
    await db.commit()
    return ok(sprint, "Sprint created")


@router.get("/{sprint_id}", response_model=Envelope[SprintDetailResponse])
async def get_sprint(
    sprint_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Sprint with its stories and completion progress."""
    sprint = await SprintService(db).get(sprint_id)
    return ok(await _detail(db, sprint))


@router.put("/{sprint_id}", response_model=Envelope[SprintResponse])
async def update_sprint(
    sprint_id: UUID,
    body: SprintUpdate,
    current_user: SprintManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = SprintService(db)
    sprint = await service.get(sprint_id)
    changes = changes_from(body, nullable=("goal",))
    await service.update(sprint, changes)
    await db.commit()

    logger.info("Sprint updated", sprint_id=str(sprint.id), fields=sorted(changes))
    return ok(sprint, "Sprint updated")


@router.delete("/{sprint_id}", response_model=Envelope[None])
async def delete_sprint(
    sprint_id: UUID,
    current_user: SprintManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete a sprint still in Planning; its stories return to the backlog."""
    service = SprintService(db)
    sprint = await service.get(sprint_id)
    await service.delete(sprint)
    await db.commit()
    return ok(None, "Sprint deleted")


@router.post("/{sprint_id}/start", response_model=Envelope[SprintResponse])
async def start_sprint(
    sprint_id: UUID,
    current_user: SprintManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    sprint = await SprintService(db).start(sprint_id)
    await db.commit()
    return ok(sprint, "Sprint started")


@router.post("/{sprint_id}/complete", response_model=Envelope[SprintResponse])
async def complete_sprint(
    sprint_id: UUID,
    current_user: SprintManager,
    body: Annotated[SprintComplete | None, Body()] = None,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Complete and lock a sprint, returning unfinished stories to the backlog."""
    move = body.move_incomplete_to_backlog if body else True
    sprint = await SprintService(db).complete(sprint_id, move_incomplete_to_backlog=move)
    await db.commit()
    return ok(sprint, "Sprint completed")


@project_router.get("/{project_id}/sprints", response_model=Envelope[list[SprintResponse]])
async def list_project_sprints(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    sprint_status: SprintStatus | None = Query(None, alias="status"),
) -> dict:
    """Sprints across all boards of a project."""
    await get_or_404(db, Project, project_id)

    query = (
        select(Sprint)
        .join(Board, Sprint.board_id == Board.id)
        .where(Board.project_id == project_id)
    )
    if sprint_status:
        query = query.where(Sprint.status == sprint_status)

    result = await db.execute(query.order_by(Sprint.start_date.desc()))
    return ok(result.scalars().all())
