"""Reporting endpoints: project, budget and team rollups."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser
from projecthub.api.v1.common import CamelModel, Envelope, ok
from projecthub.db.session import get_db_session
from projecthub.models.budget import Expense
from projecthub.models.enums import PaymentStatus, ProjectStatus, TaskStatus, UserStatus
from projecthub.models.project import Project
from projecthub.models.task import Task
from projecthub.models.user import User

router = APIRouter()

CLOSED_TASK_STATUSES = (TaskStatus.DONE, TaskStatus.CLOSED)


# --- Report Schemas ---

class StatusCount(CamelModel):
    status: ProjectStatus
    count: int


class ProjectTimelineRow(CamelModel):
    id: UUID
    name: str
    status: ProjectStatus
    progress: int
    start_date: date | None
    completion_date: date | None
    updated_at: datetime


class ProjectReport(CamelModel):
    status_distribution: list[StatusCount]
    recent_projects: list[ProjectTimelineRow]


class ProjectUtilization(CamelModel):
    id: UUID
    name: str
    total_budget: float
    spent: float
    utilization: float


class CategoryTotal(CamelModel):
    category: str
    total_amount: float


class BudgetReport(CamelModel):
    projects: list[ProjectUtilization]
    expenses_by_category: list[CategoryTotal]


class TeamMemberLoad(CamelModel):
    id: UUID
    name: str
    open_tasks: int
    projects_count: int


class TeamReport(CamelModel):
    members: list[TeamMemberLoad]


# --- Report Endpoints ---

@router.get("/projects", response_model=Envelope[ProjectReport])
async def get_project_report(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    """Project status distribution and the most recently updated projects."""
    status_rows = await db.execute(
        select(Project.status, func.count(Project.id))
        .where(Project.deleted_at.is_(None))
        .group_by(Project.status)
    )
    recent = await db.execute(
        select(Project)
        .where(Project.deleted_at.is_(None))
        .order_by(Project.updated_at.desc())
        .limit(limit)
    )

    return ok(
        ProjectReport(
            status_distribution=[
                StatusCount(status=row_status, count=count) for row_status, count in status_rows.all()
            ],
            recent_projects=[ProjectTimelineRow.model_validate(p) for p in recent.scalars().all()],
        )
    )


@router.get("/budget", response_model=Envelope[BudgetReport])
async def get_budget_report(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    """Per-project utilization from approved expenses, and spend by category."""
    approved = (
        select(Expense.project_id, func.sum(Expense.amount).label("spent"))
        .where(Expense.payment_status == PaymentStatus.APPROVED)
        .group_by(Expense.project_id)
        .subquery()
    )
    project_rows = await db.execute(
        select(Project.id, Project.name, Project.total_budget, func.coalesce(approved.c.spent, 0))
        .outerjoin(approved, approved.c.project_id == Project.id)
        .where(Project.deleted_at.is_(None))
        .order_by(Project.updated_at.desc())
        .limit(limit)
    )

    projects = []
    for project_id, name, total, spent in project_rows.all():
        total, spent = float(total or 0), float(spent or 0)
        projects.append(
            ProjectUtilization(
                id=project_id,
                name=name,
                total_budget=total,
                spent=spent,
                utilization=round(spent / total * 100, 2) if total > 0 else 0.0,
            )
        )

    category_rows = await db.execute(
        select(Expense.category, func.sum(Expense.amount))
        .where(Expense.payment_status == PaymentStatus.APPROVED)
        .group_by(Expense.category)
        .order_by(func.sum(Expense.amount).desc())
    )

    return ok(
        BudgetReport(
            projects=projects,
            expenses_by_category=[
                CategoryTotal(category=category, total_amount=float(amount or 0))
                for category, amount in category_rows.all()
            ],
        )
    )


@router.get("/team", response_model=Envelope[TeamReport])
async def get_team_report(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Open task load per active user."""
    open_tasks = (
        select(
            Task.assignee_id,
            func.count(Task.id).label("open_tasks"),
            func.count(distinct(Task.project_id)).label("projects_count"),
        )
        .where(
            Task.deleted_at.is_(None),
            Task.status.notin_(CLOSED_TASK_STATUSES),
            Task.assignee_id.is_not(None),
        )
        .group_by(Task.assignee_id)
        .subquery()
    )
    rows = await db.execute(
        select(
            User,
            func.coalesce(open_tasks.c.open_tasks, 0),
            func.coalesce(open_tasks.c.projects_count, 0),
        )
        .outerjoin(open_tasks, open_tasks.c.assignee_id == User.id)
        .where(User.status == UserStatus.ACTIVE)
        .order_by(User.last_name, User.first_name)
    )

    return ok(
        TeamReport(
            members=[
                TeamMemberLoad(
                    id=user.id,
                    name=user.full_name,
                    open_tasks=count,
                    projects_count=projects,
                )
                for user, count, projects in rows.all()
            ]
        )
    )
