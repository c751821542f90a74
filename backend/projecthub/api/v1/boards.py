"""Board endpoints."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import CamelModel, Envelope, changes_from, ok
from projecthub.api.v1.sprints import SprintResponse
from projecthub.api.v1.stories import StoryResponse
from projecthub.db.session import get_db_session
from projecthub.models.agile import Sprint, Story
from projecthub.models.enums import SprintStatus
from projecthub.models.project import Board, Project
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

BoardManager = Annotated[User, Depends(require(Capability.MANAGE_BOARDS))]


class BoardCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    filter_criteria: dict[str, Any] = Field(default_factory=dict)


class BoardUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    filter_criteria: dict[str, Any] | None = None


class BoardResponse(CamelModel):
    id: UUID
    project_id: UUID
    name: str
    filter_criteria: dict[str, Any]
    is_archived: bool
    created_at: datetime
    updated_at: datetime


@project_router.get("/{project_id}/boards", response_model=Envelope[list[BoardResponse]])
async def list_project_boards(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    include_archived: bool = Query(False, alias="includeArchived"),
) -> dict:
    await get_or_404(db, Project, project_id)

    query = select(Board).where(Board.project_id == project_id)
    if not include_archived:
        query = query.where(Board.is_archived.is_(False))

    result = await db.execute(query.order_by(Board.created_at))
    return ok(result.scalars().all())


@project_router.post(
    "/{project_id}/boards",
    response_model=Envelope[BoardResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_board(
    project_id: UUID,
    body: BoardCreate,
    current_user: BoardManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_or_404(db, Project, project_id)
    board = Board(project_id=project.id, name=body.name, filter_criteria=body.filter_criteria)
    db.add(board)
    await db.commit()

    logger.info("Board created", board_id=str(board.id), project_id=str(project.id))
    return ok(board, "Board created")


@router.get("/{board_id}", response_model=Envelope[BoardResponse])
async def get_board(
    board_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, Board, board_id))


@router.put("/{board_id}", response_model=Envelope[BoardResponse])
async def update_board(
    board_id: UUID,
    body: BoardUpdate,
    current_user: BoardManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    board = await get_or_404(db, Board, board_id)
    changes = changes_from(body)
    for field, value in changes.items():
        setattr(board, field, value)
    await db.commit()

    logger.info("Board updated", board_id=str(board.id), fields=sorted(changes))
    return ok(board, "Board updated")


@router.post("/{board_id}/archive", response_model=Envelope[BoardResponse])
async def archive_board(
    board_id: UUID,
    current_user: BoardManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Archive a board. Archived boards take no new sprints."""
    board = await get_or_404(db, Board, board_id)
    board.is_archived = True
    await db.commit()

    logger.info("Board archived", board_id=str(board.id))
    return ok(board, "Board archived")


@router.get("/{board_id}/sprints", response_model=Envelope[list[SprintResponse]])
async def list_board_sprints(
    board_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    sprint_status: SprintStatus | None = Query(None, alias="status"),
) -> dict:
    await get_or_404(db, Board, board_id)

    query = select(Sprint).where(Sprint.board_id == board_id)
    if sprint_status:
        query = query.where(Sprint.status == sprint_status)

    result = await db.execute(query.order_by(Sprint.start_date))
    return ok(result.scalars().all())


@router.get("/{board_id}/backlog", response_model=Envelope[list[StoryResponse]])
async def get_board_backlog(
    board_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Unscheduled stories of the board's project."""
    board = await get_or_404(db, Board, board_id)
    result = await db.execute(
        select(Story)
        .where(Story.project_id == board.project_id, Story.sprint_id.is_(None))
        .order_by(Story.created_at)
    )
    return ok(result.scalars().all())
