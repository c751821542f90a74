"""Budget aggregation.

Spent is always recomputed from approved expenses. ``Project.used_budget`` is
a best-effort cache of that figure, refreshed whenever an approval changes it.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.models.budget import BudgetItem, Expense
from projecthub.models.enums import PaymentStatus
from projecthub.models.project import Project

logger = structlog.get_logger()

ZERO = Decimal("0")


@dataclass
class BudgetStatus:
    total: Decimal
    spent: Decimal
    remaining: Decimal
    at_risk: bool

    @property
    def utilization(self) -> float:
        """Spent as a percentage of total, 0 when there is no budget."""
        if self.total <= 0:
            return 0.0
        return round(float(self.spent / self.total * 100), 2)


@dataclass
class CategoryRow:
    category: str
    budgeted: Decimal = ZERO
    spent: Decimal = ZERO

    @property
    def remaining(self) -> Decimal:
        return self.budgeted - self.spent


@dataclass
class BudgetSummary:
    project_id: UUID
    status: BudgetStatus
    allocated: Decimal
    pending: Decimal
    categories: list[CategoryRow] = field(default_factory=list)


def compute_budget_status(total: Decimal, spent: Decimal, threshold: float) -> BudgetStatus:
    """Derive remaining budget and the at-risk flag.

    A project is at risk when it is over budget, or when what remains is a
    smaller share of the total than ``threshold``.
    """
    remaining = total - spent
    at_risk = remaining < 0 or (total > 0 and remaining / total < Decimal(str(threshold)))
    return BudgetStatus(total=total, spent=spent, remaining=remaining, at_risk=at_risk)


class BudgetService:
    """Service for budget rollups over budget items and expenses."""

    def __init__(self, db: AsyncSession, risk_threshold: float = 0.10):
        self.db = db
        self.risk_threshold = risk_threshold

    async def _sum_expenses(self, project_id: UUID, status: PaymentStatus) -> Decimal:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(
                Expense.project_id == project_id,
                Expense.payment_status == status,
            )
        )
        return Decimal(str(total or 0))

    async def spent(self, project_id: UUID) -> Decimal:
        return await self._sum_expenses(project_id, PaymentStatus.APPROVED)

    async def status(self, project: Project) -> BudgetStatus:
        spent = await self.spent(project.id)
        return compute_budget_status(project.total_budget or ZERO, spent, self.risk_threshold)

    async def summary(self, project: Project) -> BudgetSummary:
        """Totals plus a per-category budgeted/spent breakdown."""
        status = await self.status(project)
        pending = await self._sum_expenses(project.id, PaymentStatus.PENDING)

        rows: dict[str, CategoryRow] = {}

        budgeted = await self.db.execute(
            select(BudgetItem.category, func.sum(BudgetItem.amount))
            .where(BudgetItem.project_id == project.id)
            .group_by(BudgetItem.category)
        )
        for category, amount in budgeted.all():
            rows.setdefault(category, CategoryRow(category)).budgeted = Decimal(str(amount or 0))

        spent = await self.db.execute(
            select(Expense.category, func.sum(Expense.amount))
            .where(
                Expense.project_id == project.id,
                Expense.payment_status == PaymentStatus.APPROVED,
            )
            .group_by(Expense.category)
        )
        for category, amount in spent.all():
            rows.setdefault(category, CategoryRow(category)).spent = Decimal(str(amount or 0))

        allocated = sum((row.budgeted for row in rows.values()), ZERO)
        return BudgetSummary(
            project_id=project.id,
            status=status,
            allocated=allocated,
            pending=pending,
            categories=sorted(rows.values(), key=lambda r: r.category),
        )

    async def refresh_used_budget(self, project_id: UUID) -> Decimal:
        """Recompute the cached ``used_budget`` of a project."""
        spent = await self.spent(project_id)
        await self.db.execute(
            update(Project)
            .where(Project.id == project_id)
            .values(used_budget=spent)
            .execution_options(synchronize_session=False)
        )
        logger.info("Project used budget refreshed", project_id=str(project_id), spent=str(spent))
        return spent
