"""Role capabilities.

Every role maps to a fixed set of capabilities; routes declare the capability
they need instead of listing roles.
"""

from enum import Enum

from projecthub.models.enums import UserRole


class Capability(str, Enum):
    MANAGE_USERS = "manage_users"
    MANAGE_CLIENTS = "manage_clients"
    MANAGE_PROJECTS = "manage_projects"
    MANAGE_BUDGET = "manage_budget"
    APPROVE_EXPENSE = "approve_expense"
    MANAGE_BOARDS = "manage_boards"
    MANAGE_EPICS = "manage_epics"
    MANAGE_SPRINTS = "manage_sprints"
    DELETE_STORY = "delete_story"
    DELETE_TASK = "delete_task"
    PURGE_TASK = "purge_task"
    EDIT_STORY = "edit_story"
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    SUBMIT_EXPENSE = "submit_expense"
    UPLOAD_ATTACHMENT = "upload_attachment"


# Contributors: anyone who can change work items
_CONTRIBUTOR = frozenset(
    {
        Capability.EDIT_STORY,
        Capability.CREATE_TASK,
        Capability.UPDATE_TASK,
        Capability.SUBMIT_EXPENSE,
        Capability.UPLOAD_ATTACHMENT,
    }
)

_SCRUM_MASTER = _CONTRIBUTOR | {
    Capability.MANAGE_BOARDS,
    Capability.MANAGE_EPICS,
    Capability.MANAGE_SPRINTS,
    Capability.DELETE_STORY,
    Capability.DELETE_TASK,
}

_PRODUCT_OWNER = _SCRUM_MASTER | {
    Capability.MANAGE_CLIENTS,
    Capability.MANAGE_PROJECTS,
    Capability.MANAGE_BUDGET,
    Capability.APPROVE_EXPENSE,
}

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.PRODUCT_OWNER: frozenset(_PRODUCT_OWNER),
    UserRole.SCRUM_MASTER: frozenset(_SCRUM_MASTER),
    UserRole.DEVELOPER: _CONTRIBUTOR,
    UserRole.VIEWER: frozenset(),
}


def capabilities_for(role: UserRole) -> frozenset[Capability]:
    return ROLE_CAPABILITIES[role]


def has_capability(role: UserRole, capability: Capability) -> bool:
    """Check whether ``role`` grants ``capability``."""
    return capability in ROLE_CAPABILITIES[role]
