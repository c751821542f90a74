"""File attachment model.

An attachment hangs off exactly one parent: a project, epic, story or task.
The parent is exposed as a ``ParentRef`` value; the four nullable foreign key
columns are a storage detail guarded by a check constraint and a flush-time
listener.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    String,
    Text,
    Uuid,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import BaseModel, JSONType
from projecthub.exceptions import ValidationError

if TYPE_CHECKING:
    from projecthub.models.user import User


@dataclass(frozen=True)
class ProjectParent:
    id: UUID
    kind = "project"


@dataclass(frozen=True)
class EpicParent:
    id: UUID
    kind = "epic"


@dataclass(frozen=True)
class StoryParent:
    id: UUID
    kind = "story"


@dataclass(frozen=True)
class TaskParent:
    id: UUID
    kind = "task"


ParentRef = Union[ProjectParent, EpicParent, StoryParent, TaskParent]

PARENT_TYPES: dict[str, type] = {
    cls.kind: cls for cls in (ProjectParent, EpicParent, StoryParent, TaskParent)
}

# Parent kind -> foreign key column on attachments
PARENT_COLUMNS: dict[str, str] = {
    "project": "project_id",
    "epic": "epic_id",
    "story": "story_id",
    "task": "task_id",
}


def make_parent(kind: str, parent_id: UUID) -> ParentRef:
    """Build a ParentRef from a kind name such as ``"story"``."""
    try:
        return PARENT_TYPES[kind.lower()](parent_id)
    except KeyError:
        raise ValidationError(
            f"Parent type must be one of: {', '.join(PARENT_TYPES)}", field="parentType"
        ) from None


class Attachment(BaseModel):
    """Uploaded file attached to a project, epic, story or task."""

    __tablename__ = "attachments"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN project_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN epic_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN story_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN task_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_attachments_single_parent",
        ),
    )

    # Parent (exactly one is set)
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    epic_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("epics.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    story_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("stories.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    task_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    uploaded_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # File metadata
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    file_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    extra_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    # Relationships
    uploaded_by: Mapped["User | None"] = relationship("User")

    def __init__(self, *, parent: ParentRef | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        if parent is not None:
            self.parent = parent

    @property
    def parent(self) -> ParentRef | None:
        """The single parent, or None when the columns are inconsistent."""
        refs = [
            PARENT_TYPES[kind](value)
            for kind, column in PARENT_COLUMNS.items()
            if (value := getattr(self, column)) is not None
        ]
        return refs[0] if len(refs) == 1 else None

    @parent.setter
    def parent(self, ref: ParentRef) -> None:
        for kind, column in PARENT_COLUMNS.items():
            setattr(self, column, ref.id if kind == ref.kind else None)

    @property
    def parent_type(self) -> str | None:
        ref = self.parent
        return ref.kind if ref else None

    @property
    def parent_id(self) -> UUID | None:
        ref = self.parent
        return ref.id if ref else None

    def __repr__(self) -> str:
        return f"<Attachment {self.original_name}>"


@event.listens_for(Attachment, "before_insert")
@event.listens_for(Attachment, "before_update")
def _check_single_parent(mapper, connection, target: Attachment) -> None:  # noqa: ARG001
    set_columns = [c for c in PARENT_COLUMNS.values() if getattr(target, c) is not None]
    if len(set_columns) != 1:
        raise ValidationError(
            "Attachment must belong to exactly one of project, epic, story or task",
            field="parentId",
        )
