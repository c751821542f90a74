"""Closed value sets shared by models, request schemas and services.

Values are the exact strings stored in the database and exchanged over the
wire.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "Admin"
    PRODUCT_OWNER = "Product Owner"
    SCRUM_MASTER = "Scrum Master"
    DEVELOPER = "Developer"
    VIEWER = "Viewer"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ClientStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class ProjectType(str, Enum):
    SCRUM = "Scrum"
    KANBAN = "Kanban"


class ProjectStatus(str, Enum):
    NOT_STARTED = "Not Started"
    ACTIVE = "Active"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"
    ON_HOLD = "On Hold"


class ProjectPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Priority(str, Enum):
    """Priority for epics, stories and tasks."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class EpicStatus(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class StoryStatus(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    DONE = "Done"


class SprintStatus(str, Enum):
    PLANNING = "Planning"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class TaskStatus(str, Enum):
    CREATED = "Created"
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    DONE = "Done"
    CLOSED = "Closed"

    @property
    def is_finished(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.CLOSED)


class TaskType(str, Enum):
    TASK = "Task"
    BUG = "Bug"
    IMPROVEMENT = "Improvement"
    SUBTASK = "Subtask"


class DependencyType(str, Enum):
    BLOCKS = "blocks"
    IS_BLOCKED_BY = "is-blocked-by"
    RELATES_TO = "relates-to"
    DUPLICATES = "duplicates"
    IS_DUPLICATED_BY = "is-duplicated-by"


class PaymentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"
    INVOICE = "Invoice"
    OTHER = "Other"
