"""SQLAlchemy models package."""

from projecthub.models.user import User
from projecthub.models.project import Board, Client, Project, project_members
from projecthub.models.agile import Epic, Sprint, Story
from projecthub.models.task import Label, Task, TaskDependency, task_labels
from projecthub.models.budget import BudgetItem, Expense
from projecthub.models.attachment import (
    Attachment,
    EpicParent,
    ParentRef,
    ProjectParent,
    StoryParent,
    TaskParent,
    make_parent,
)

__all__ = [
    # User
    "User",
    # Project
    "Board",
    "Client",
    "Project",
    "project_members",
    # Agile
    "Epic",
    "Sprint",
    "Story",
    # Task
    "Label",
    "Task",
    "TaskDependency",
    "task_labels",
    # Budget
    "BudgetItem",
    "Expense",
    # Attachment
    "Attachment",
    "EpicParent",
    "ParentRef",
    "ProjectParent",
    "StoryParent",
    "TaskParent",
    "make_parent",
]
