"""Epic, story and sprint models."""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import BaseModel, enum_type
from projecthub.models.enums import EpicStatus, Priority, SprintStatus, StoryStatus

if TYPE_CHECKING:
    from projecthub.models.project import Board, Project
    from projecthub.models.task import Task


class Epic(BaseModel):
    """Large body of work grouping stories."""

    __tablename__ = "epics"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[EpicStatus] = mapped_column(
        enum_type(EpicStatus), nullable=False, default=EpicStatus.TODO
    )
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority), nullable=False, default=Priority.MEDIUM
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="epics")
    stories: Mapped[list["Story"]] = relationship(
        "Story", back_populates="epic", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Epic {self.name}>"


class Sprint(BaseModel):
    """Time-boxed iteration on a board."""

    __tablename__ = "sprints"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_sprints_date_order"),
        # At most one Active sprint per board
        Index(
            "uq_sprints_active_board",
            "board_id",
            unique=True,
            postgresql_where=text("status = 'Active'"),
            sqlite_where=text("status = 'Active'"),
        ),
    )

    board_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[SprintStatus] = mapped_column(
        enum_type(SprintStatus), nullable=False, default=SprintStatus.PLANNING
    )
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    board: Mapped["Board"] = relationship("Board", back_populates="sprints")
    stories: Mapped[list["Story"]] = relationship(
        "Story", back_populates="sprint", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Sprint {self.name} ({self.status.value})>"


class Story(BaseModel):
    """User-facing unit of work; ``sprint_id`` is null while in the backlog."""

    __tablename__ = "stories"

    epic_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("epics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sprint_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("sprints.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[StoryStatus] = mapped_column(
        enum_type(StoryStatus), nullable=False, default=StoryStatus.TODO
    )
    priority: Mapped[Priority] = mapped_column(
        enum_type(Priority), nullable=False, default=Priority.MEDIUM
    )
    points: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_ready: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

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

    # Relationships
    epic: Mapped["Epic"] = relationship("Epic", back_populates="stories")
    sprint: Mapped["Sprint | None"] = relationship("Sprint", back_populates="stories")
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="story", passive_deletes=True)

    @property
    def in_backlog(self) -> bool:
        return self.sprint_id is None

    def __repr__(self) -> str:
        return f"<Story {self.title}>"
