"""Services package."""

from projecthub.services.attachment import AttachmentService
from projecthub.services.budget import BudgetService, compute_budget_status
from projecthub.services.expense import ExpenseService
from projecthub.services.permissions import Capability, has_capability
from projecthub.services.sprint import SprintService
from projecthub.services.task import TaskService

__all__ = [
    "AttachmentService",
    "BudgetService",
    "Capability",
    "ExpenseService",
    "SprintService",
    "TaskService",
    "compute_budget_status",
    "has_capability",
]
