"""Expense endpoints and the approval workflow."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, changes_from, ok
from projecthub.db.session import get_db_session
from projecthub.models.budget import Expense
from projecthub.models.enums import PaymentMethod, PaymentStatus
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.budget import BudgetService
from projecthub.services.expense import ExpenseService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

ExpenseSubmitter = Annotated[User, Depends(require(Capability.SUBMIT_EXPENSE))]
ExpenseApprover = Annotated[User, Depends(require(Capability.APPROVE_EXPENSE))]

Money = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class ExpenseCreate(CamelModel):
    """Expense submission. New expenses are always Pending."""

    amount: Money
    description: str | None = None
    category: str | None = Field(None, min_length=1, max_length=100)
    payment_method: PaymentMethod | None = None
    expense_date: date = Field(default_factory=date.today, alias="date")
    budget_item_id: UUID | None = None


class ExpenseUpdate(CamelModel):
    amount: Money | None = None
    description: str | None = None
    category: str | None = Field(None, min_length=1, max_length=100)
    payment_method: PaymentMethod | None = None
    expense_date: date | None = Field(None, alias="date")
    budget_item_id: UUID | None = None


class ExpenseReject(CamelModel):
    reason: str | None = Field(None, max_length=2000)


class ExpenseResponse(CamelModel):
    id: UUID
    project_id: UUID
    budget_item_id: UUID | None
    amount: float
    description: str | None
    category: str
    payment_method: PaymentMethod | None
    payment_status: PaymentStatus
    expense_date: date = Field(alias="date")
    created_by_id: UUID | None
    approved_by: UUID | None = Field(None, validation_alias="approved_by_id")
    approved_at: datetime | None
    rejected_by: UUID | None = Field(None, validation_alias="rejected_by_id")
    rejected_at: datetime | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime


def _service(db: AsyncSession, settings) -> ExpenseService:
    return ExpenseService(db, BudgetService(db, settings.budget_risk_threshold))


@project_router.get("/{project_id}/expenses", response_model=Envelope[list[ExpenseResponse]])
async def list_project_expenses(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
    payment_status: PaymentStatus | None = Query(None, alias="paymentStatus"),
    category: str | None = Query(None, max_length=100),
    budget_item_id: UUID | None = Query(None, alias="budgetItemId"),
) -> dict:
    await get_or_404(db, Project, project_id)

    query = select(Expense).where(Expense.project_id == project_id)
    if payment_status:
        query = query.where(Expense.payment_status == payment_status)
    if category:
        query = query.where(Expense.category == category)
    if budget_item_id:
        query = query.where(Expense.budget_item_id == budget_item_id)

    result = await db.execute(query.order_by(Expense.expense_date.desc(), Expense.created_at.desc()))
    return ok(result.scalars().all())


@project_router.post(
    "/{project_id}/expenses",
    response_model=Envelope[ExpenseResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_expense(
    project_id: UUID,
    body: ExpenseCreate,
    current_user: ExpenseSubmitter,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    project = await get_or_404(db, Project, project_id)
    expense = await _service(db, settings).create(project, body.model_dump(), current_user)
    await db.commit()
    return ok(expense, "Expense submitted")


@router.get("/{expense_id}", response_model=Envelope[ExpenseResponse])
async def get_expense(
    expense_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, Expense, expense_id))


@router.put("/{expense_id}", response_model=Envelope[ExpenseResponse])
async def update_expense(
    expense_id: UUID,
    body: ExpenseUpdate,
    current_user: ExpenseSubmitter,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Edit an expense while it is still Pending."""
    expense = await get_or_404(db, Expense, expense_id)
    changes = changes_from(body, nullable=("description", "payment_method", "budget_item_id"))
    await _service(db, settings).update(expense, changes)
    await db.commit()

    logger.info("Expense updated", expense_id=str(expense.id), fields=sorted(changes))
    return ok(expense, "Expense updated")


@router.delete("/{expense_id}", response_model=Envelope[None])
async def delete_expense(
    expense_id: UUID,
    current_user: ExpenseApprover,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    expense = await get_or_404(db, Expense, expense_id)
    await _service(db, settings).delete(expense)
    await db.commit()
    return ok(None, "Expense deleted")


@router.post("/{expense_id}/approve", response_model=Envelope[ExpenseResponse])
async def approve_expense(
    expense_id: UUID,
    current_user: ExpenseApprover,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Approve a Pending expense. Approving twice is a conflict."""
    expense = await get_or_404(db, Expense, expense_id, for_update=True)
    await _service(db, settings).approve(expense, current_user)
    await db.commit()
    return ok(expense, "Expense approved")


@router.post("/{expense_id}/reject", response_model=Envelope[ExpenseResponse])
async def reject_expense(
    expense_id: UUID,
    current_user: ExpenseApprover,
    settings: AppSettings,
    body: Annotated[ExpenseReject | None, Body()] = None,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    expense = await get_or_404(db, Expense, expense_id, for_update=True)
    await _service(db, settings).reject(expense, current_user, body.reason if body else None)
    await db.commit()
    return ok(expense, "Expense rejected")
