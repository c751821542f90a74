"""Budget item endpoints and the project budget summary."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.models.budget import BudgetItem
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.budget import BudgetService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

BudgetManager = Annotated[User, Depends(require(Capability.MANAGE_BUDGET))]

Money = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class BudgetItemCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    amount: Money
    description: str | None = None


class BudgetItemUpdate(CamelModel):
    name: str | None = Field(None, min_length=2, max_length=255)
    category: str | None = Field(None, min_length=1, max_length=100)
    amount: Money | None = None
    description: str | None = None


class BudgetItemResponse(CamelModel):
    id: UUID
    project_id: UUID
    name: str
    category: str
    amount: float
    description: str | None
    created_at: datetime
    updated_at: datetime


class CategorySummary(CamelModel):
    category: str
    budgeted: float
    spent: float
    remaining: float


class BudgetSummaryResponse(CamelModel):
    project_id: UUID
    total_budget: float
    allocated: float
    spent: float
    pending: float
    remaining: float
    utilization: float
    at_risk: bool
    categories: list[CategorySummary]


@project_router.get("/{project_id}/budgets", response_model=Envelope[list[BudgetItemResponse]])
async def list_budget_items(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    await get_or_404(db, Project, project_id)
    result = await db.execute(
        select(BudgetItem)
        .where(BudgetItem.project_id == project_id)
        .order_by(BudgetItem.category, BudgetItem.name)
    )
    return ok(result.scalars().all())


@project_router.post(
    "/{project_id}/budgets",
    response_model=Envelope[BudgetItemResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_budget_item(
    project_id: UUID,
    body: BudgetItemCreate,
    current_user: BudgetManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_or_404(db, Project, project_id)
    item = BudgetItem(project_id=project.id, **body.model_dump())
    db.add(item)
    await db.commit()

    logger.info(
        "Budget item created",
        budget_item_id=str(item.id),
        project_id=str(project.id),
        amount=str(item.amount),
    )
    return ok(item, "Budget item created")


@project_router.get("/{project_id}/budgets/summary", response_model=Envelope[BudgetSummaryResponse])
async def get_budget_summary(
    project_id: UUID,
    current_user: CurrentUser,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Budget rollup recomputed from budget items and approved expenses."""
    project = await get_or_404(db, Project, project_id)
    summary = await BudgetService(db, settings.budget_risk_threshold).summary(project)

    return ok(
        BudgetSummaryResponse(
            project_id=project.id,
            total_budget=float(summary.status.total),
            allocated=float(summary.allocated),
            spent=float(summary.status.spent),
            pending=float(summary.pending),
            remaining=float(summary.status.remaining),
            utilization=summary.status.utilization,
            at_risk=summary.status.at_risk,
            categories=[
                CategorySummary(
                    category=row.category,
                    budgeted=float(row.budgeted),
                    spent=float(row.spent),
                    remaining=float(row.remaining),
                )
                for row in summary.categories
            ],
        )
    )


@router.get("/{item_id}", response_model=Envelope[BudgetItemResponse])
async def get_budget_item(
    item_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, BudgetItem, item_id, label="Budget item"))


@router.put("/{item_id}", response_model=Envelope[BudgetItemResponse])
async def update_budget_item(
    item_id: UUID,
    body: BudgetItemUpdate,
    current_user: BudgetManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    item = await get_or_404(db, BudgetItem, item_id, label="Budget item")
    changes = changes_from(body, nullable=("description",))
    for field, value in changes.items():
        setattr(item, field, value)
    await db.commit()

    logger.info("Budget item updated", budget_item_id=str(item.id), fields=sorted(changes))
    return ok(item, "Budget item updated")


@router.delete("/{item_id}", response_model=Envelope[None])
async def delete_budget_item(
    item_id: UUID,
    current_user: BudgetManager,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete a budget item; expenses filed under it keep their amounts."""
    item = await get_or_404(db, BudgetItem, item_id, label="Budget item")
    await db.delete(item)
    await db.commit()

    logger.info("Budget item deleted", budget_item_id=str(item_id))
    return ok(None, "Budget item deleted")
