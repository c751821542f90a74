"""Task service: creation, status changes, dependencies and labels."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

import structlog
from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.exceptions import ConflictError, NotFoundError, ValidationError
from projecthub.models.agile import Story
from projecthub.models.enums import DependencyType, Priority, TaskStatus, TaskType
from projecthub.models.project import Project
from projecthub.models.task import Label, Task, TaskDependency, task_labels
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404

logger = structlog.get_logger()


@dataclass
class DependencySpec:
    task_id: UUID
    type: DependencyType = DependencyType.RELATES_TO


@dataclass
class TaskFilters:
    project_id: UUID | None = None
    story_id: UUID | None = None
    sprint_id: UUID | None = None
    assignee_id: UUID | None = None
    status: TaskStatus | None = None
    priority: Priority | None = None
    type: TaskType | None = None
    label_id: UUID | None = None
    search_term: str | None = None


def apply_status(task: Task, status: TaskStatus) -> None:
    """Set ``status``, stamping or clearing the completion date."""
    if status.is_finished and not task.status.is_finished:
        task.completed_date = datetime.now(timezone.utc)
    elif not status.is_finished:
        task.completed_date = None
    task.status = status


class TaskService:
    """Service for task lifecycle operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, task_id: UUID) -> Task:
        return await get_or_404(self.db, Task, task_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def _filtered(self, filters: TaskFilters) -> Select:
        # Tasks without a project stay visible; tasks of deleted projects do not
        stmt = (
            select(Task)
            .outerjoin(Project, Task.project_id == Project.id)
            .where(Task.deleted_at.is_(None), Project.deleted_at.is_(None))
        )

        if filters.project_id:
            stmt = stmt.where(Task.project_id == filters.project_id)
        if filters.story_id:
            stmt = stmt.where(Task.story_id == filters.story_id)
        if filters.sprint_id:
            stmt = stmt.where(
                Task.story_id.in_(select(Story.id).where(Story.sprint_id == filters.sprint_id))
            )
        if filters.assignee_id:
            stmt = stmt.where(Task.assignee_id == filters.assignee_id)
        if filters.status:
            stmt = stmt.where(Task.status == filters.status)
        if filters.priority:
            stmt = stmt.where(Task.priority == filters.priority)
        if filters.type:
            stmt = stmt.where(Task.type == filters.type)
        if filters.label_id:
            stmt = stmt.where(
                Task.id.in_(
                    select(task_labels.c.task_id).where(task_labels.c.label_id == filters.label_id)
                )
            )
        if filters.search_term:
            pattern = f"%{filters.search_term.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Task.title).like(pattern),
                    func.lower(Task.description).like(pattern),
                )
            )
        return stmt

    async def list_tasks(
        self, filters: TaskFilters, limit: int = 50, offset: int = 0
    ) -> tuple[Sequence[Task], int]:
        """Return one page of matching tasks and the total match count."""
        stmt = self._filtered(filters)
        total = await self.db.scalar(select(func.count()).select_from(stmt.subquery()))
        result = await self.db.execute(
            stmt.order_by(Task.created_at.desc()).limit(limit).offset(offset)
        )
        return result.scalars().all(), total or 0

    # =========================================================================
    # Create / update
    # =========================================================================

    async def create(
        self,
        data: dict[str, Any],
        reporter: User,
        dependencies: Sequence[DependencySpec] = (),
        label_ids: Sequence[UUID] = (),
    ) -> Task:
        """Create a task.

        The project is taken from the story when only a story is given.
        Dependency targets are checked before anything is inserted.
        """
        story_id = data.get("story_id")
        if story_id is not None:
            story = await self.db.get(Story, story_id)
            if story is None:
                raise ValidationError("Story does not exist", field="storyId")
            if data.get("project_id") is None:
                data["project_id"] = story.project_id
            elif data["project_id"] != story.project_id:
                raise ValidationError("Story belongs to a different project", field="storyId")

        project_id = data.get("project_id")
        if project_id is not None:
            exists = await self.db.scalar(
                select(Project.id).where(Project.id == project_id, Project.deleted_at.is_(None))
            )
            if exists is None:
                raise ValidationError("Project does not exist", field="projectId")

        await self._check_user(data.get("assignee_id"), "assigneeId")
        if data.get("reporter_id") is None:
            data["reporter_id"] = reporter.id
        else:
            await self._check_user(data["reporter_id"], "reporterId")

        targets = await self._lock_tasks([d.task_id for d in dependencies])
        missing = {d.task_id for d in dependencies} - set(targets)
        if missing:
            raise ValidationError(
                "Dependency task(s) not found: " + ", ".join(sorted(str(m) for m in missing)),
                field="dependencies",
            )

        status = data.pop("status", None) or TaskStatus.CREATED
        task = Task(**data, status=TaskStatus.CREATED)
        apply_status(task, status)
        task.labels = await self._load_labels(label_ids)
        self.db.add(task)
        await self.db.flush()

        seen: set[tuple[UUID, DependencyType]] = set()
        for dep in dependencies:
            if (dep.task_id, dep.type) in seen:
                continue
            seen.add((dep.task_id, dep.type))
            self.db.add(
                TaskDependency(
                    source_task_id=task.id,
                    target_task_id=dep.task_id,
                    type=dep.type,
                    created_by_id=reporter.id,
                )
            )
        await self.db.flush()

        logger.info(
            "task_created",
            task_id=str(task.id),
            project_id=str(task.project_id) if task.project_id else None,
            dependency_count=len(seen),
        )
        return task

    async def update(self, task: Task, changes: dict[str, Any]) -> Task:
        if "story_id" in changes and changes["story_id"] is not None:
            story = await self.db.get(Story, changes["story_id"])
            if story is None:
                raise ValidationError("Story does not exist", field="storyId")
            if task.project_id is None:
                changes["project_id"] = story.project_id
            elif task.project_id != story.project_id:
                raise ValidationError("Story belongs to a different project", field="storyId")
        if "assignee_id" in changes:
            await self._check_user(changes["assignee_id"], "assigneeId")

        status = changes.pop("status", None)
        for field, value in changes.items():
            setattr(task, field, value)
        if status is not None:
            apply_status(task, status)
        await self.db.flush()
        return task

    async def change_status(self, task: Task, status: TaskStatus) -> Task:
        previous = task.status
        apply_status(task, status)
        await self.db.flush()
        logger.info(
            "task_status_changed",
            task_id=str(task.id),
            from_status=previous.value,
            to_status=status.value,
        )
        return task

    async def assign(self, task: Task, assignee_id: UUID | None) -> Task:
        await self._check_user(assignee_id, "assigneeId")
        task.assignee_id = assignee_id
        await self.db.flush()
        logger.info(
            "task_assigned",
            task_id=str(task.id),
            assignee_id=str(assignee_id) if assignee_id else None,
        )
        return task

    async def soft_delete(self, task: Task) -> None:
        task.soft_delete()
        await self.db.flush()
        logger.info("task_deleted", task_id=str(task.id))

    async def purge(self, task_id: UUID) -> None:
        """Hard-delete a task, including soft-deleted ones."""
        task = await get_or_404(self.db, Task, task_id, include_deleted=True)
        await self.db.delete(task)
        await self.db.flush()
        logger.info("task_purged", task_id=str(task_id))

    # =========================================================================
    # Dependencies
    # =========================================================================

    async def add_dependency(
        self,
        source_id: UUID,
        target_id: UUID,
        dep_type: DependencyType,
        created_by: User,
    ) -> TaskDependency:
        """Add a typed edge ``source -> target``.

        Both tasks are locked for the rest of the transaction so neither can
        disappear between the existence check and the insert.
        """
        if source_id == target_id:
            raise ValidationError("A task cannot depend on itself", field="targetTaskId")

        locked = await self._lock_tasks([source_id, target_id])
        if source_id not in locked:
            raise NotFoundError("Task", source_id)
        if target_id not in locked:
            raise NotFoundError("Dependency target task", target_id)

        existing = await self.db.scalar(
            select(TaskDependency.id).where(
                TaskDependency.source_task_id == source_id,
                TaskDependency.target_task_id == target_id,
                TaskDependency.type == dep_type,
            )
        )
        if existing is not None:
            raise ConflictError("This dependency already exists")

        dependency = TaskDependency(
            source_task_id=source_id,
            target_task_id=target_id,
            type=dep_type,
            created_by_id=created_by.id,
        )
        self.db.add(dependency)
        try:
            await self.db.flush()
        except IntegrityError:
            raise ConflictError("This dependency already exists") from None

        logger.info(
            "task_dependency_added",
            dependency_id=str(dependency.id),
            source_task_id=str(source_id),
            target_task_id=str(target_id),
            type=dep_type.value,
        )
        return dependency

    async def remove_dependency(self, dependency_id: UUID) -> None:
        dependency = await get_or_404(
            self.db, TaskDependency, dependency_id, label="Task dependency"
        )
        await self.db.delete(dependency)
        await self.db.flush()
        logger.info("task_dependency_removed", dependency_id=str(dependency_id))

    # =========================================================================
    # Labels
    # =========================================================================

    async def add_labels(self, task: Task, label_ids: Sequence[UUID]) -> Task:
        labels = await self._load_labels(label_ids)
        current = {label.id for label in task.labels}
        task.labels.extend(label for label in labels if label.id not in current)
        await self.db.flush()
        return task

    async def remove_labels(self, task: Task, label_ids: Sequence[UUID]) -> Task:
        drop = set(label_ids)
        task.labels = [label for label in task.labels if label.id not in drop]
        await self.db.flush()
        return task

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _lock_tasks(self, task_ids: Sequence[UUID]) -> set[UUID]:
        """Lock live tasks among ``task_ids`` and return the ids found."""
        if not task_ids:
            return set()
        result = await self.db.execute(
            select(Task.id)
            .where(Task.id.in_(set(task_ids)), Task.deleted_at.is_(None))
            .with_for_update()
        )
        return set(result.scalars().all())

    async def _load_labels(self, label_ids: Sequence[UUID]) -> list[Label]:
        if not label_ids:
            return []
        wanted = set(label_ids)
        result = await self.db.execute(select(Label).where(Label.id.in_(wanted)))
        labels = list(result.scalars().all())
        missing = wanted - {label.id for label in labels}
        if missing:
            raise ValidationError(
                "Label(s) not found: " + ", ".join(sorted(str(m) for m in missing)),
                field="labelIds",
            )
        return labels

    async def _check_user(self, user_id: UUID | None, field: str) -> None:
        if user_id is None:
            return
        if await self.db.get(User, user_id) is None:
            raise ValidationError("User does not exist", field=field)
