"""API router package."""

from fastapi import APIRouter

from projecthub.api.v1 import (
    attachments,
    auth,
    boards,
    budgets,
    clients,
    epics,
    expenses,
    health,
    projects,
    reports,
    sprints,
    stories,
    tasks,
    users,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(clients.router, prefix="/clients", tags=["Clients"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(boards.router, prefix="/boards", tags=["Boards"])
router.include_router(epics.router, prefix="/epics", tags=["Epics"])
router.include_router(stories.router, prefix="/stories", tags=["Stories"])
router.include_router(sprints.router, prefix="/sprints", tags=["Sprints"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(tasks.labels_router, prefix="/labels", tags=["Labels"])
router.include_router(budgets.router, prefix="/budgets", tags=["Budget"])
router.include_router(expenses.router, prefix="/expenses", tags=["Expenses"])
router.include_router(attachments.router, prefix="/attachments", tags=["Attachments"])
router.include_router(reports.router, prefix="/reports", tags=["Reports"])

# Nested collections: /projects/{id}/..., /epics/{id}/stories, /stories/{id}/tasks
router.include_router(boards.project_router, prefix="/projects", tags=["Boards"])
router.include_router(epics.project_router, prefix="/projects", tags=["Epics"])
router.include_router(stories.project_router, prefix="/projects", tags=["Stories"])
router.include_router(sprints.project_router, prefix="/projects", tags=["Sprints"])
router.include_router(tasks.project_router, prefix="/projects", tags=["Tasks"])
router.include_router(budgets.project_router, prefix="/projects", tags=["Budget"])
router.include_router(expenses.project_router, prefix="/projects", tags=["Expenses"])
router.include_router(attachments.project_router, prefix="/projects", tags=["Attachments"])
router.include_router(stories.epic_router, prefix="/epics", tags=["Stories"])
router.include_router(tasks.story_router, prefix="/stories", tags=["Tasks"])
