"""Initial schema: users, clients, projects, agile hierarchy, tasks, budget, attachments.

Revision ID: 001
Revises:
Create Date: 2025-01-06

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def _fk(name: str, target: str, ondelete: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(50), nullable=False, server_default="Developer"),
        sa.Column("status", sa.String(50), nullable=False, server_default="Active"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Create clients table
    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="Active"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # Create projects table
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("project_id_str", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False, server_default="Scrum"),
        sa.Column("status", sa.String(50), nullable=False, server_default="Not Started"),
        sa.Column("priority", sa.String(50), nullable=False, server_default="Medium"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        _fk("owner_id", "users.id", "SET NULL"),
        _fk("client_id", "clients.id", "SET NULL"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("completion_date", sa.Date(), nullable=True),
        sa.Column("total_budget", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("used_budget", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_project_id_str", "projects", ["project_id_str"])
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
    op.create_index("ix_projects_client_id", "projects", ["client_id"])

    op.create_table(
        "project_members",
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        _fk("user_id", "users.id", "CASCADE", nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("project_id", "user_id"),
    )

    # Create boards table
    op.create_table(
        "boards",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("filter_criteria", JSON, nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_boards_project_id", "boards", ["project_id"])

    # Create epics table
    op.create_table(
        "epics",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="To Do"),
        sa.Column("priority", sa.String(50), nullable=False, server_default="Medium"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_epics_project_id", "epics", ["project_id"])

    # Create sprints table
    op.create_table(
        "sprints",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("board_id", "boards.id", "CASCADE", nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="Planning"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("start_date < end_date", name="ck_sprints_date_order"),
    )
    op.create_index("ix_sprints_board_id", "sprints", ["board_id"])
    op.create_index(
        "uq_sprints_active_board",
        "sprints",
        ["board_id"],
        unique=True,
        postgresql_where=sa.text("status = 'Active'"),
        sqlite_where=sa.text("status = 'Active'"),
    )

    # Create stories table
    op.create_table(
        "stories",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("epic_id", "epics.id", "CASCADE", nullable=False),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        _fk("sprint_id", "sprints.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="To Do"),
        sa.Column("priority", sa.String(50), nullable=False, server_default="Medium"),
        sa.Column("points", sa.Integer(), nullable=True),
        sa.Column("is_ready", sa.Boolean(), nullable=False, server_default=sa.false()),
        _fk("assignee_id", "users.id", "SET NULL"),
        _fk("reporter_id", "users.id", "SET NULL"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_stories_epic_id", "stories", ["epic_id"])
    op.create_index("ix_stories_project_id", "stories", ["project_id"])
    op.create_index("ix_stories_sprint_id", "stories", ["sprint_id"])
    op.create_index("ix_stories_assignee_id", "stories", ["assignee_id"])

    # Create labels table
    op.create_table(
        "labels",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("color", sa.String(7), nullable=True),
        _fk("project_id", "projects.id", "CASCADE"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "name", name="uq_label_project_name"),
    )
    op.create_index("ix_labels_project_id", "labels", ["project_id"])

    # Create tasks table
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="Created"),
        sa.Column("priority", sa.String(50), nullable=False, server_default="Medium"),
        sa.Column("type", sa.String(50), nullable=False, server_default="Task"),
        _fk("project_id", "projects.id", "CASCADE"),
        _fk("story_id", "stories.id", "SET NULL"),
        _fk("assignee_id", "users.id", "SET NULL"),
        _fk("reporter_id", "users.id", "SET NULL"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_hours", sa.Float(), nullable=True),
        sa.Column("actual_hours", sa.Float(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
    op.create_index("ix_tasks_story_id", "tasks", ["story_id"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])

    op.create_table(
        "task_labels",
        _fk("task_id", "tasks.id", "CASCADE", nullable=False),
        _fk("label_id", "labels.id", "CASCADE", nullable=False),
        sa.PrimaryKeyConstraint("task_id", "label_id"),
    )

    op.create_table(
        "task_dependencies",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("source_task_id", "tasks.id", "CASCADE", nullable=False),
        _fk("target_task_id", "tasks.id", "CASCADE", nullable=False),
        sa.Column("type", sa.String(50), nullable=False, server_default="relates-to"),
        _fk("created_by_id", "users.id", "SET NULL"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "source_task_id", "target_task_id", "type", name="uq_task_dependency_edge"
        ),
    )
    op.create_index(
        "ix_task_dependencies_source_task_id", "task_dependencies", ["source_task_id"]
    )
    op.create_index(
        "ix_task_dependencies_target_task_id", "task_dependencies", ["target_task_id"]
    )

    # Create budget tables
    op.create_table(
        "budget_items",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_budget_items_project_id", "budget_items", ["project_id"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        _fk("budget_item_id", "budget_items.id", "SET NULL"),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_status", sa.String(50), nullable=False, server_default="Pending"),
        sa.Column("date", sa.Date(), nullable=False),
        _fk("created_by_id", "users.id", "SET NULL"),
        _fk("approved_by_id", "users.id", "SET NULL"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _fk("rejected_by_id", "users.id", "SET NULL"),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_expenses_project_id", "expenses", ["project_id"])
    op.create_index("ix_expenses_budget_item_id", "expenses", ["budget_item_id"])
    op.create_index("ix_expenses_payment_status", "expenses", ["payment_status"])

    # Create attachments table
    op.create_table(
        "attachments",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        _fk("project_id", "projects.id", "CASCADE"),
        _fk("epic_id", "epics.id", "CASCADE"),
        _fk("story_id", "stories.id", "CASCADE"),
        _fk("task_id", "tasks.id", "CASCADE"),
        _fk("uploaded_by_id", "users.id", "SET NULL"),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("file_type", sa.String(255), nullable=True),
        sa.Column("file_path", sa.String(1000), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("extra_data", JSON, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(CASE WHEN project_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN epic_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN story_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN task_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_attachments_single_parent",
        ),
    )
    op.create_index("ix_attachments_project_id", "attachments", ["project_id"])
    op.create_index("ix_attachments_epic_id", "attachments", ["epic_id"])
    op.create_index("ix_attachments_story_id", "attachments", ["story_id"])
    op.create_index("ix_attachments_task_id", "attachments", ["task_id"])


def downgrade() -> None:
    op.drop_table("attachments")
    op.drop_table("expenses")
    op.drop_table("budget_items")
    op.drop_table("task_dependencies")
    op.drop_table("task_labels")
    op.drop_table("tasks")
    op.drop_table("labels")
    op.drop_table("stories")
    op.drop_table("sprints")
    op.drop_table("epics")
    op.drop_table("boards")
    op.drop_table("project_members")
    op.drop_table("projects")
    op.drop_table("clients")
    op.drop_table("users")
