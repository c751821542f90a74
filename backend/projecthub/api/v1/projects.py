"""Project and team membership endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, model_validator
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import CamelModel, Envelope, changes_from, ok
from projecthub.api.v1.users import UserBrief
from projecthub.db.session import get_db_session
from projecthub.exceptions import ConflictError, ValidationError
from projecthub.models.enums import ProjectPriority, ProjectStatus, ProjectType
from projecthub.models.project import Client, Project
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
logger = structlog.get_logger()

ProjectManager = Annotated[User, Depends(require(Capability.MANAGE_PROJECTS))]


class ProjectCreate(CamelModel):
    """Project creation request."""

    name: str = Field(..., min_length=2, max_length=255)
    project_id_str: str | None = Field(None, max_length=50)
    description: str | None = None
    type: ProjectType = ProjectType.SCRUM
    status: ProjectStatus = ProjectStatus.NOT_STARTED
    priority: ProjectPriority = ProjectPriority.MEDIUM
    progress: int = Field(0, ge=0, le=100)
    start_date: date | None = None
    completion_date: date | None = None
    total_budget: Decimal = Field(Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    client_id: UUID | None = None
    owner_id: UUID | None = None
    member_ids: list[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self) -> "ProjectCreate":
        if self.start_date and self.completion_date and self.completion_date < self.start_date:
            raise ValueError("Completion date must be on or after start date")
        return self


class ProjectUpdate(CamelModel):
    """Project update request; usedBudget is never accepted."""

    name: str | None = Field(None, min_length=2, max_length=255)
    project_id_str: str | None = Field(None, max_length=50)
    description: str | None = None
    type: ProjectType | None = None
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    progress: int | None = Field(None, ge=0, le=100)
    start_date: date | None = None
    completion_date: date | None = None
    total_budget: Decimal | None = Field(None, ge=0, max_digits=14, decimal_places=2)
    client_id: UUID | None = None
    owner_id: UUID | None = None


class ProjectResponse(CamelModel):
    """Project response."""

    id: UUID
    name: str
    project_id_str: str | None
    description: str | None
    type: ProjectType
    status: ProjectStatus
    priority: ProjectPriority
    progress: int
    start_date: date | None
    completion_date: date | None
    total_budget: float
    used_budget: float
    client_id: UUID | None
    owner_id: UUID | None
    members: list[UserBrief]
    created_at: datetime
    updated_at: datetime


class MemberAdd(CamelModel):
    user_id: UUID


async def get_project_or_404(db: AsyncSession, project_id: UUID) -> Project:
    return await get_or_404(db, Project, project_id)


async def _check_refs(db: AsyncSession, client_id: UUID | None, owner_id: UUID | None) -> None:
    if client_id is not None and await db.get(Client, client_id) is None:
        raise ValidationError("Client does not exist", field="clientId")
    if owner_id is not None and await db.get(User, owner_id) is None:
        raise ValidationError("Owner does not exist", field="ownerId")


@router.get("", response_model=Envelope[list[ProjectResponse]])
async def list_projects(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    project_status: ProjectStatus | None = Query(None, alias="status"),
    project_type: ProjectType | None = Query(None, alias="type"),
    client_id: UUID | None = Query(None, alias="clientId"),
    search: str | None = Query(None, min_length=1, max_length=100),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    """List live projects with optional filters."""
    query = select(Project).where(Project.deleted_at.is_(None))

    if project_status:
        query = query.where(Project.status == project_status)
    if project_type:
        query = query.where(Project.type == project_type)
    if client_id:
        query = query.where(Project.client_id == client_id)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.where(
            or_(
                func.lower(Project.name).like(pattern),
                func.lower(Project.project_id_str).like(pattern),
            )
        )

    result = await db.execute(
        query.order_by(Project.created_at.desc()).limit(limit).offset(offset)
    )
    return ok(result.scalars().all())


@router.post("", response_model=Envelope[ProjectResponse], status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    current_user: ProjectManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create a project. The caller becomes owner unless ownerId is given."""
    await _check_refs(db, body.client_id, body.owner_id)

    data = body.model_dump(exclude={"member_ids"})
    data["owner_id"] = body.owner_id or current_user.id
    project = Project(**data, used_budget=Decimal("0"))

    member_ids = set(body.member_ids) | {data["owner_id"]}
    members = (await db.execute(select(User).where(User.id.in_(member_ids)))).scalars().all()
    if len(members) != len(member_ids):
        raise ValidationError("One or more team members do not exist", field="memberIds")
    project.members = list(members)

    db.add(project)
    await db.commit()

    logger.info("Project created", project_id=str(project.id), user_id=str(current_user.id))
    return ok(await get_project_or_404(db, project.id), "Project created")


@router.get("/{project_id}", response_model=Envelope[ProjectResponse])
async def get_project(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_project_or_404(db, project_id))


@router.put("/{project_id}", response_model=Envelope[ProjectResponse])
async def update_project(
    project_id: UUID,
    body: ProjectUpdate,
    current_user: ProjectManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_project_or_404(db, project_id)
    changes = changes_from(
        body,
        nullable=(
            "project_id_str",
            "description",
            "start_date",
            "completion_date",
            "client_id",
            "owner_id",
        ),
    )
    await _check_refs(db, changes.get("client_id"), changes.get("owner_id"))

    start = changes.get("start_date", project.start_date)
    end = changes.get("completion_date", project.completion_date)
    if start and end and end < start:
        raise ValidationError(
            "Completion date must be on or after start date", field="completionDate"
        )

    for field, value in changes.items():
        setattr(project, field, value)
    await db.commit()

    logger.info("Project updated", project_id=str(project.id), fields=sorted(changes))
    return ok(await get_project_or_404(db, project.id), "Project updated")


@router.delete("/{project_id}", response_model=Envelope[None])
async def delete_project(
    project_id: UUID,
    current_user: ProjectManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Soft-delete a project."""
    project = await get_project_or_404(db, project_id)
    project.soft_delete()
    await db.commit()

    logger.info("Project deleted", project_id=str(project_id), user_id=str(current_user.id))
    return ok(None, "Project deleted")


# =============================================================================
# Team members
# =============================================================================


@router.get("/{project_id}/members", response_model=Envelope[list[UserBrief]])
async def list_members(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_project_or_404(db, project_id)
    return ok(project.members)


@router.post(
    "/{project_id}/members",
    response_model=Envelope[list[UserBrief]],
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: UUID,
    body: MemberAdd,
    current_user: ProjectManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_project_or_404(db, project_id)
    user = await get_or_404(db, User, body.user_id, label="User")

    if any(member.id == user.id for member in project.members):
        raise ConflictError("User is already a member of this project")

    project.members.append(user)
    await db.commit()

    logger.info("Project member added", project_id=str(project.id), user_id=str(user.id))
    return ok(project.members, "Member added")


@router.delete("/{project_id}/members/{user_id}", response_model=Envelope[list[UserBrief]])
async def remove_member(
    project_id: UUID,
    user_id: UUID,
    current_user: ProjectManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_project_or_404(db, project_id)
    remaining = [member for member in project.members if member.id != user_id]
    if len(remaining) == len(project.members):
        raise ValidationError("User is not a member of this project", field="userId")

    project.members = remaining
    await db.commit()

    logger.info("Project member removed", project_id=str(project.id), user_id=str(user_id))
    return ok(project.members, "Member removed")
