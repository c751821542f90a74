"""Expense submission and approval workflow."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.exceptions import ConflictError, ValidationError
from projecthub.models.budget import BudgetItem, Expense
from projecthub.models.enums import PaymentStatus
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.budget import BudgetService

logger = structlog.get_logger()


class ExpenseService:
    """Service for the Pending -> Approved | Rejected expense lifecycle."""

    def __init__(self, db: AsyncSession, budget_service: BudgetService | None = None):
        self.db = db
        self.budget_service = budget_service or BudgetService(db)

    async def _resolve_budget_item(self, project_id: UUID, budget_item_id: UUID) -> BudgetItem:
        item = await self.db.get(BudgetItem, budget_item_id)
        if item is None or item.project_id != project_id:
            raise ValidationError(
                "Budget item does not belong to this project", field="budgetItemId"
            )
        return item

    async def create(self, project: Project, data: dict[str, Any], created_by: User) -> Expense:
        """Record a Pending expense against ``project``.

        The category falls back to the budget item's category when omitted.
        """
        budget_item_id = data.get("budget_item_id")
        if budget_item_id is not None:
            item = await self._resolve_budget_item(project.id, budget_item_id)
            if not data.get("category"):
                data["category"] = item.category
        if not data.get("category"):
            raise ValidationError("Category is required", field="category")

        expense = Expense(
            project_id=project.id,
            created_by_id=created_by.id,
            payment_status=PaymentStatus.PENDING,
            **data,
        )
        self.db.add(expense)
        await self.db.flush()

        logger.info(
            "Expense submitted",
            expense_id=str(expense.id),
            project_id=str(project.id),
            amount=str(expense.amount),
        )
        return expense

    async def update(self, expense: Expense, changes: dict[str, Any]) -> Expense:
        """Edit a Pending expense."""
        if not expense.is_pending:
            raise ConflictError("Only pending expenses can be edited")

        if changes.get("budget_item_id") is not None:
            await self._resolve_budget_item(expense.project_id, changes["budget_item_id"])

        for field, value in changes.items():
            setattr(expense, field, value)
        await self.db.flush()
        return expense

    async def approve(self, expense: Expense, approver: User) -> Expense:
        """Pending -> Approved. Approval is terminal."""
        if not expense.is_pending:
            raise ConflictError(
                f"Only pending expenses can be approved (current status: {expense.payment_status.value})"
            )

        expense.payment_status = PaymentStatus.APPROVED
        expense.approved_by_id = approver.id
        expense.approved_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.budget_service.refresh_used_budget(expense.project_id)

        logger.info("Expense approved", expense_id=str(expense.id), approved_by=str(approver.id))
        return expense

    async def reject(self, expense: Expense, reviewer: User, reason: str | None = None) -> Expense:
        """Pending -> Rejected. Rejection is terminal."""
        if not expense.is_pending:
            raise ConflictError(
                f"Only pending expenses can be rejected (current status: {expense.payment_status.value})"
            )

        expense.payment_status = PaymentStatus.REJECTED
        expense.rejected_by_id = reviewer.id
        expense.rejected_at = datetime.now(timezone.utc)
        expense.rejection_reason = reason
        await self.db.flush()

        logger.info("Expense rejected", expense_id=str(expense.id), rejected_by=str(reviewer.id))
        return expense

    async def delete(self, expense: Expense) -> None:
        was_approved = expense.payment_status == PaymentStatus.APPROVED
        project_id = expense.project_id

        await self.db.delete(expense)
        await self.db.flush()

        if was_approved:
            await self.budget_service.refresh_used_budget(project_id)
        logger.info("Expense deleted", expense_id=str(expense.id))
