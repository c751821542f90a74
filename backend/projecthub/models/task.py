"""Task, task dependency and label models."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import Base, BaseModel, SoftDeleteMixin, enum_type
from projecthub.models.enums import DependencyType, Priority, TaskStatus, TaskType

if TYPE_CHECKING:
    from projecthub.models.agile import Story
    from projecthub.models.project import Project
    from projecthub.models.user import User


task_labels = Table(
    "task_labels",
    Base.metadata,
    Column(
        "task_id",
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "label_id",
        Uuid(as_uuid=True),
        ForeignKey("labels.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Label(BaseModel):
    """Free-form tag attachable to tasks, optionally scoped to a project."""

    __tablename__ = "labels"
    __table_args__ = (UniqueConstraint("project_id", "name", name="uq_label_project_name"),)

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)  # hex color
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Label {self.name}>"


class Task(BaseModel, SoftDeleteMixin):
    """Task within a project, optionally under a story."""

    __tablename__ = "tasks"

    # Basic info
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Status, priority and type
    status: Mapped[TaskStatus] = mapped_column(
        enum_type(TaskStatus), nullable=False, default=TaskStatus.CREATED
    )
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority), nullable=False, default=Priority.MEDIUM
    )
    type: Mapped[TaskType] = mapped_column(
        enum_type(TaskType), nullable=False, default=TaskType.TASK
    )

    # Ownership; project may be absent for free-standing tasks
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    story_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assignee_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    reporter_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Timeline
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Time tracking
    estimated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    actual_hours: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Relationships
    project: Mapped["Project | None"] = relationship("Project")
    story: Mapped["Story | None"] = relationship("Story", back_populates="tasks")
    assignee: Mapped["User | None"] = relationship("User", foreign_keys=[assignee_id])
    reporter: Mapped["User | None"] = relationship("User", foreign_keys=[reporter_id])
    labels: Mapped[list["Label"]] = relationship(
        "Label", secondary=task_labels, lazy="selectin"
    )
    dependencies: Mapped[list["TaskDependency"]] = relationship(
        "TaskDependency",
        foreign_keys="TaskDependency.source_task_id",
        back_populates="source_task",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    dependents: Mapped[list["TaskDependency"]] = relationship(
        "TaskDependency",
        foreign_keys="TaskDependency.target_task_id",
        back_populates="target_task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        try:
            return f"<Task {self.title}>"
        except Exception:
            return f"<Task id={self.id}>"


class TaskDependency(BaseModel):
    """Directed, typed edge between two tasks."""

    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint(
            "source_task_id", "target_task_id", "type", name="uq_task_dependency_edge"
        ),
    )

    source_task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    target_task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[DependencyType] = mapped_column(
        enum_type(DependencyType), nullable=False, default=DependencyType.RELATES_TO
    )
    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    source_task: Mapped["Task"] = relationship(
        "Task", foreign_keys=[source_task_id], back_populates="dependencies"
    )
    target_task: Mapped["Task"] = relationship(
        "Task", foreign_keys=[target_task_id], back_populates="dependents"
    )

    def __repr__(self) -> str:
        return f"<TaskDependency {self.source_task_id} {self.type.value} {self.target_task_id}>"
