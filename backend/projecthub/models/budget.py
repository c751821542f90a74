"""Budget item and expense models."""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from projecthub.db.base import BaseModel, enum_type
from projecthub.models.enums import PaymentMethod, PaymentStatus

if TYPE_CHECKING:
    from projecthub.models.project import Project


class BudgetItem(BaseModel):
    """Named allocation bucket within a project's total budget."""

    __tablename__ = "budget_items"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="budget_items")
    expenses: Mapped[list["Expense"]] = relationship(
        "Expense", back_populates="budget_item", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<BudgetItem {self.name} {self.amount}>"


class Expense(BaseModel):
    """Actual cost recorded against a project.

    Lifecycle: Pending -> Approved | Rejected. Both outcomes are terminal.
    """

    __tablename__ = "expenses"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    budget_item_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("budget_items.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        enum_type(PaymentMethod), nullable=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        enum_type(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True
    )
    expense_date: Mapped[date] = mapped_column("date", Date, nullable=False, default=date.today)

    created_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Review outcome
    approved_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="expenses")
    budget_item: Mapped["BudgetItem | None"] = relationship(
        "BudgetItem", back_populates="expenses"
    )

    @property
    def is_pending(self) -> bool:
        return self.payment_status == PaymentStatus.PENDING

    def __repr__(self) -> str:
        return f"<Expense {self.amount} ({self.payment_status.value})>"
