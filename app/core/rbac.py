"""Permission catalog: the roles, modules and actions the system understands."""

from collections.abc import Iterator

ADMINISTRATOR = "Administrator"
DIRECTOR = "Director"
HR_SPECIALIST = "HR Specialist"

# Canonical role set; descriptions are reset to this text on every seed.
ROLE_DESCRIPTIONS: dict[str, str] = {
    ADMINISTRATOR: "Full access",
    DIRECTOR: "Leadership visibility",
    HR_SPECIALIST: "HR operations without delete",
}

CREATE = "create"
READ = "read"
UPDATE = "update"
DELETE = "delete"
# Grant-level wildcard covering every action of a module. Never a route requirement.
MANAGE = "manage"

CRUD_ACTIONS = (CREATE, READ, UPDATE, DELETE)

MODULE_ACTIONS: dict[str, tuple[str, ...]] = {
    "dashboard": (READ,),
    "users": CRUD_ACTIONS,
    "employees": CRUD_ACTIONS,
    "attendance": CRUD_ACTIONS,
    "documents": CRUD_ACTIONS,
    "workspaces": CRUD_ACTIONS,
    "boards": CRUD_ACTIONS,
    "tasks": CRUD_ACTIONS,
}

HR_ALLOWED_ACTIONS = frozenset({CREATE, READ, UPDATE})
HR_ALLOWED_MODULES = frozenset({"dashboard", "employees", "attendance", "documents"})
DIRECTOR_READABLE_MODULES = frozenset(
    {"dashboard", "employees", "attendance", "documents", "workspaces", "boards", "tasks"}
)


def iter_catalog() -> Iterator[tuple[str, str]]:
    """Yield every (module, action) pair in catalog order."""
    for module, actions in MODULE_ACTIONS.items():
        for action in actions:
            yield module, action


def is_known_permission(module: str, action: str) -> bool:
    return action in MODULE_ACTIONS.get(module, ())


def default_roles_for(module: str, action: str) -> list[str]:
    """Roles the seeder grants (module, action) to by default."""
    roles = [ADMINISTRATOR]
    if module in HR_ALLOWED_MODULES and action in HR_ALLOWED_ACTIONS:
        roles.append(HR_SPECIALIST)
    if action == READ and module in DIRECTOR_READABLE_MODULES:
        roles.append(DIRECTOR)
    return roles


def validate_route_requirement(module: str, action: str) -> None:
    """Raise ValueError if a route declares a requirement outside the catalog."""
    if action == MANAGE:
        raise ValueError("'manage' is a grant wildcard and cannot be required by a route")
    if not is_known_permission(module, action):
        raise ValueError(f"Unknown permission {module}:{action}")
