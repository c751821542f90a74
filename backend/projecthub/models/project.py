"""Project, client and board models."""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import Base, BaseModel, JSONType, SoftDeleteMixin, enum_type
from projecthub.models.enums import (
    ClientStatus,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
)

if TYPE_CHECKING:
    from projecthub.models.agile import Epic, Sprint
    from projecthub.models.budget import BudgetItem, Expense
    from projecthub.models.user import User


# Team membership (many-to-many between projects and users)
project_members = Table(
    "project_members",
    Base.metadata,
    Column(
        "project_id",
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("added_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
)


class Client(BaseModel):
    """Client a project is delivered for."""

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ClientStatus] = mapped_column(
        enum_type(ClientStatus), nullable=False, default=ClientStatus.ACTIVE
    )

    def __repr__(self) -> str:
        return f"<Client {self.name}>"


class Project(BaseModel, SoftDeleteMixin):
    """Project owning boards, epics and budget items."""

    __tablename__ = "projects"

    # Basic info
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id_str: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Classification
    type: Mapped[ProjectType] = mapped_column(
        enum_type(ProjectType), nullable=False, default=ProjectType.SCRUM
    )
    status: Mapped[ProjectStatus] = mapped_column(
        enum_type(ProjectStatus), nullable=False, default=ProjectStatus.NOT_STARTED
    )
    priority: Mapped[ProjectPriority] = mapped_column(
        enum_type(ProjectPriority), nullable=False, default=ProjectPriority.MEDIUM
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ownership
    owner_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    client_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("clients.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Timeline
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Budget; used_budget is a cache refreshed from approved expenses
    total_budget: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    used_budget: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    # Relationships
    owner: Mapped["User | None"] = relationship("User", foreign_keys=[owner_id])
    client: Mapped["Client | None"] = relationship("Client")
    members: Mapped[list["User"]] = relationship(
        "User", secondary=project_members, lazy="selectin"
    )
    boards: Mapped[list["Board"]] = relationship(
        "Board", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    epics: Mapped[list["Epic"]] = relationship(
        "Epic", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    budget_items: Mapped[list["BudgetItem"]] = relationship(
        "BudgetItem", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="project", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        try:
            return f"<Project {self.name}>"
        except Exception:
            return f"<Project id={self.id}>"


class Board(BaseModel):
    """Scrum/Kanban board of a project; sprints hang off a board."""

    __tablename__ = "boards"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    filter_criteria: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="boards")
    sprints: Mapped[list["Sprint"]] = relationship(
        "Sprint", back_populates="board", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Board {self.name}>"
