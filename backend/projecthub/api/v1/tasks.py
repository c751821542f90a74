"""Tasks API endpoints."""

from datetime import date, datetime
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, StringConstraints, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, ListMeta, PagedEnvelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.models.agile import Story
from projecthub.models.attachment import TaskParent
from projecthub.models.enums import DependencyType, Priority, TaskStatus, TaskType
from projecthub.models.project import Project
from projecthub.models.task import Label, Task
from projecthub.models.user import User
from projecthub.services.attachment import AttachmentService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability
from projecthub.services.task import DependencySpec, TaskFilters, TaskService

router = APIRouter()
project_router = APIRouter()
story_router = APIRouter()
labels_router = APIRouter()
logger = structlog.get_logger()

TaskCreator = Annotated[User, Depends(require(Capability.CREATE_TASK))]
TaskEditor = Annotated[User, Depends(require(Capability.UPDATE_TASK))]
TaskRemover = Annotated[User, Depends(require(Capability.DELETE_TASK))]
TaskPurger = Annotated[User, Depends(require(Capability.PURGE_TASK))]

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]


class DependencyIn(CamelModel):
    target_task_id: UUID
    type: DependencyType = DependencyType.RELATES_TO


class TaskFields(CamelModel):
    """Fields shared by every task creation route."""

    title: Title
    description: str | None = None
    status: TaskStatus = TaskStatus.CREATED
    priority: Priority = Priority.MEDIUM
    type: TaskType = TaskType.TASK
    assignee_id: UUID | None = None
    reporter_id: UUID | None = None
    start_date: date | None = None
    due_date: date | None = None
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)
    label_ids: list[UUID] = Field(default_factory=list)
    dependencies: list[DependencyIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.due_date and self.due_date < self.start_date:
            raise ValueError("Due date must be on or after start date")
        return self


class StoryTaskCreate(TaskFields):
    """Task created under a story; the story fixes the project."""


class ProjectTaskCreate(TaskFields):
    story_id: UUID | None = None


class TaskCreate(ProjectTaskCreate):
    project_id: UUID | None = None


class TaskUpdate(CamelModel):
    title: Title | None = None
    description: str | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    type: TaskType | None = None
    story_id: UUID | None = None
    assignee_id: UUID | None = None
    start_date: date | None = None
    due_date: date | None = None
    estimated_hours: float | None = Field(None, ge=0)
    actual_hours: float | None = Field(None, ge=0)


class TaskStatusUpdate(CamelModel):
    status: TaskStatus


class TaskAssign(CamelModel):
    """Assignee; null unassigns."""

    assignee_id: UUID | None


class TaskLabelsUpdate(CamelModel):
    label_ids: list[UUID] = Field(..., min_length=1)


class DependencyCreate(CamelModel):
    source_task_id: UUID
    target_task_id: UUID
    type: DependencyType = DependencyType.RELATES_TO


class LabelCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    project_id: UUID | None = None


class LabelResponse(CamelModel):
    id: UUID
    name: str
    color: str | None
    project_id: UUID | None


class DependencyResponse(CamelModel):
    id: UUID
    source_task_id: UUID
    target_task_id: UUID
    type: DependencyType
    created_at: datetime


class TaskResponse(CamelModel):
    """Task response schema."""

    id: UUID
    title: str
    description: str | None
    status: TaskStatus
    priority: Priority
    type: TaskType
    project_id: UUID | None
    story_id: UUID | None
    assignee_id: UUID | None
    reporter_id: UUID | None
    start_date: date | None
    due_date: date | None
    completed_date: datetime | None
    estimated_hours: float | None
    actual_hours: float | None
    labels: list[LabelResponse]
    dependencies: list[DependencyResponse]
    created_at: datetime
    updated_at: datetime


async def _create(
    db: AsyncSession, body: TaskFields, current_user: User, **scope: UUID | None
) -> Task:
    data = body.model_dump(exclude={"label_ids", "dependencies"})
    data.update({k: v for k, v in scope.items() if v is not None})

    service = TaskService(db)
    task = await service.create(
        data,
        reporter=current_user,
        dependencies=[DependencySpec(d.target_task_id, d.type) for d in body.dependencies],
        label_ids=body.label_ids,
    )
    await db.commit()
    return await service.get(task.id)


# =============================================================================
# Listing
# =============================================================================


@router.get("", response_model=PagedEnvelope[list[TaskResponse]])
async def list_tasks(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    project_id: UUID | None = Query(None, alias="projectId"),
    story_id: UUID | None = Query(None, alias="storyId"),
    sprint_id: UUID | None = Query(None, alias="sprintId"),
    assignee_id: UUID | None = Query(None, alias="assigneeId"),
    task_status: TaskStatus | None = Query(None, alias="status"),
    priority: Priority | None = None,
    task_type: TaskType | None = Query(None, alias="type"),
    label_id: UUID | None = Query(None, alias="labelId"),
    search_term: str | None = Query(None, alias="searchTerm", max_length=200),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    """List live tasks with filters and pagination."""
    filters = TaskFilters(
        project_id=project_id,
        story_id=story_id,
        sprint_id=sprint_id,
        assignee_id=assignee_id,
        status=task_status,
        priority=priority,
        type=task_type,
        label_id=label_id,
        search_term=search_term,
    )
    tasks, total = await TaskService(db).list_tasks(filters, limit=limit, offset=offset)
    return {**ok(tasks), "meta": ListMeta(total=total, limit=limit, offset=offset)}


@project_router.get("/{project_id}/tasks", response_model=PagedEnvelope[list[TaskResponse]])
async def list_project_tasks(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> dict:
    await get_or_404(db, Project, project_id)
    tasks, total = await TaskService(db).list_tasks(
        TaskFilters(project_id=project_id), limit=limit, offset=offset
    )
    return {**ok(tasks), "meta": ListMeta(total=total, limit=limit, offset=offset)}


# =============================================================================
# Creation
# =============================================================================


@router.post("", response_model=Envelope[TaskResponse], status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreate,
    current_user: TaskCreator,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Create a new task. Status defaults to Created."""
    task = await _create(
        db, body, current_user, project_id=body.project_id, story_id=body.story_id
    )
    return ok(task, "Task created")


@project_router.post(
    "/{project_id}/tasks",
    response_model=Envelope[TaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_project_task(
    project_id: UUID,
    body: ProjectTaskCreate,
    current_user: TaskCreator,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await get_or_404(db, Project, project_id)
    task = await _create(db, body, current_user, project_id=project_id, story_id=body.story_id)
    return ok(task, "Task created")


@story_router.post(
    "/{story_id}/tasks",
    response_model=Envelope[TaskResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_story_task(
    story_id: UUID,
    body: StoryTaskCreate,
    current_user: TaskCreator,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await get_or_404(db, Story, story_id)
    task = await _create(db, body, current_user, story_id=story_id)
    return ok(task, "Task created")


# =============================================================================
# Dependencies
# =============================================================================


@router.post(
    "/dependencies",
    response_model=Envelope[DependencyResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_dependency(
    body: DependencyCreate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    dependency = await TaskService(db).add_dependency(
        body.source_task_id, body.target_task_id, body.type, created_by=current_user
    )
    await db.commit()
    return ok(dependency, "Dependency added")


@router.delete("/dependencies/{dependency_id}", response_model=Envelope[None])
async def remove_dependency(
    dependency_id: UUID,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await TaskService(db).remove_dependency(dependency_id)
    await db.commit()
    return ok(None, "Dependency removed")


# =============================================================================
# Single task
# =============================================================================


@router.get("/{task_id}", response_model=Envelope[TaskResponse])
async def get_task(
    task_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await TaskService(db).get(task_id))


@router.put("/{task_id}", response_model=Envelope[TaskResponse])
async def update_task(
    task_id: UUID,
    body: TaskUpdate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TaskService(db)
    task = await service.get(task_id)
    changes = changes_from(
        body,
        nullable=(
            "description",
            "story_id",
            "assignee_id",
            "start_date",
            "due_date",
            "estimated_hours",
            "actual_hours",
        ),
    )
    await service.update(task, changes)
    await db.commit()

    logger.info("Task updated", task_id=str(task.id), fields=sorted(changes))
    return ok(await service.get(task.id), "Task updated")


@router.patch("/{task_id}/status", response_model=Envelope[TaskResponse])
async def update_task_status(
    task_id: UUID,
    body: TaskStatusUpdate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TaskService(db)
    task = await service.get(task_id)
    await service.change_status(task, body.status)
    await db.commit()
    return ok(await service.get(task.id), "Task status updated")


@router.put("/{task_id}/assign", response_model=Envelope[TaskResponse])
async def assign_task(
    task_id: UUID,
    body: TaskAssign,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TaskService(db)
    task = await service.get(task_id)
    await service.assign(task, body.assignee_id)
    await db.commit()
    return ok(await service.get(task.id), "Task assigned")


@router.delete("/{task_id}", response_model=Envelope[None])
async def delete_task(
    task_id: UUID,
    current_user: TaskRemover,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Soft-delete a task."""
    service = TaskService(db)
    task = await service.get(task_id)
    await service.soft_delete(task)
    await db.commit()
    return ok(None, "Task deleted")


@router.delete("/{task_id}/purge", response_model=Envelope[None])
async def purge_task(
    task_id: UUID,
    current_user: TaskPurger,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Permanently delete a task, its dependency edges and its attachments."""
    attachments = AttachmentService(db, settings.upload_dir, settings.max_upload_size_mb)
    paths = await attachments.stored_paths([TaskParent(task_id)])

    await TaskService(db).purge(task_id)
    await db.commit()
    await attachments.remove_files(paths)

    logger.info("Task purged", task_id=str(task_id), user_id=str(current_user.id))
    return ok(None, "Task permanently deleted")


@router.post("/{task_id}/labels", response_model=Envelope[TaskResponse])
async def add_task_labels(
    task_id: UUID,
    body: TaskLabelsUpdate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TaskService(db)
    task = await service.get(task_id)
    await service.add_labels(task, body.label_ids)
    await db.commit()
    return ok(await service.get(task.id))


@router.delete("/{task_id}/labels", response_model=Envelope[TaskResponse])
async def remove_task_labels(
    task_id: UUID,
    body: TaskLabelsUpdate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    service = TaskService(db)
    task = await service.get(task_id)
    await service.remove_labels(task, body.label_ids)
    await db.commit()
    return ok(await service.get(task.id))


# =============================================================================
# Labels
# =============================================================================


@labels_router.get("", response_model=Envelope[list[LabelResponse]])
async def list_labels(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    project_id: UUID | None = Query(None, alias="projectId"),
) -> dict:
    """Global labels plus, when projectId is given, that project's labels."""
    query = select(Label)
    if project_id:
        query = query.where((Label.project_id == project_id) | Label.project_id.is_(None))
    result = await db.execute(query.order_by(Label.name))
    return ok(result.scalars().all())


@labels_router.post("", response_model=Envelope[LabelResponse], status_code=status.HTTP_201_CREATED)
async def create_label(
    body: LabelCreate,
    current_user: TaskEditor,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    if body.project_id is not None:
        await get_or_404(db, Project, body.project_id)
    label = Label(**body.model_dump())
    db.add(label)
    await db.commit()

    logger.info("Label created", label_id=str(label.id), name=label.name)
    return ok(label, "Label created")
