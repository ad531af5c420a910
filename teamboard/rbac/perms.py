from collections.abc import Iterable, Mapping

from teamboard.errors import InvalidInput
from teamboard.models.enums import Role

CREATE_PROJECT = "create_project"
UPDATE_PROJECT = "update_project"
DELETE_PROJECT = "delete_project"
ASSIGN_PROJECT = "assign_project"
CHANGE_PROJECT_STATUS = "change_project_status"
VIEW_ALL_PROJECTS = "view_all_projects"
CREATE_TASK = "create_task"
ASSIGN_TASK = "assign_task"
UPDATE_TASK_STATUS = "update_task_status"
DELETE_TASK = "delete_task"
VIEW_REPORTS = "view_reports"
MANAGE_USERS = "manage_users"
VIEW_TEAM_WORKLOAD = "view_team_workload"
ACCESS_SETTINGS = "access_settings"
MANAGE_PERMISSIONS = "manage_permissions"

CAPABILITIES: tuple[str, ...] = (
    CREATE_PROJECT,
    UPDATE_PROJECT,
    DELETE_PROJECT,
    ASSIGN_PROJECT,
    CHANGE_PROJECT_STATUS,
    VIEW_ALL_PROJECTS,
    CREATE_TASK,
    ASSIGN_TASK,
    UPDATE_TASK_STATUS,
    DELETE_TASK,
    VIEW_REPORTS,
    MANAGE_USERS,
    VIEW_TEAM_WORKLOAD,
    ACCESS_SETTINGS,
    MANAGE_PERMISSIONS,
)

# seed written to the store when no configuration exists yet
DEFAULT_ROLE_PERMISSIONS: dict[str, list[str]] = {
    Role.admin.value: list(CAPABILITIES),
    Role.manager.value: [
        CREATE_PROJECT,
        UPDATE_PROJECT,
        ASSIGN_PROJECT,
        CHANGE_PROJECT_STATUS,
        VIEW_ALL_PROJECTS,
        CREATE_TASK,
        ASSIGN_TASK,
        UPDATE_TASK_STATUS,
        DELETE_TASK,
        VIEW_REPORTS,
        VIEW_TEAM_WORKLOAD,
    ],
    Role.member.value: [
        UPDATE_TASK_STATUS,
    ],
}

def role_key(role: Role | str) -> str:
    return role.value if isinstance(role, Role) else str(role)

def normalize_role_permissions(raw: Mapping[str, Iterable[str]]) -> dict[str, list[str]]:
    """Validate a role -> capabilities mapping and return it in stored form.

    Unknown roles or capabilities raise ``InvalidInput``. Capability lists are
    de-duplicated and sorted so equal maps always serialize identically.
    """
    known_roles = {r.value for r in Role}
    known_caps = set(CAPABILITIES)

    out: dict[str, list[str]] = {}
    for role, caps in raw.items():
        key = role_key(role)
        if key not in known_roles:
            raise InvalidInput(f"unknown role: {key}")
        if isinstance(caps, str):
            raise InvalidInput(f"capabilities for {key} must be a list")
        cleaned = set()
        for cap in caps:
            if cap not in known_caps:
                raise InvalidInput(f"unknown capability: {cap}")
            cleaned.add(cap)
        out[key] = sorted(cleaned)
    return out
