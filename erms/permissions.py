"""
Authorization policy table.

Each protected action maps to the roles allowed to perform it.
``AUTHENTICATED`` means any signed-in principal regardless of role.
"""

ADMIN = "Admin"
MANAGER = "Manager"
EMPLOYEE = "Employee"
ROLES = (ADMIN, MANAGER, EMPLOYEE)

AUTHENTICATED = frozenset({"*"})
ADMIN_ONLY = frozenset({ADMIN})
ADMIN_OR_MANAGER = frozenset({ADMIN, MANAGER})

POLICIES: dict[str, frozenset[str]] = {
    "dashboard.view": AUTHENTICATED,
    "report.view": AUTHENTICATED,

    "department.view": AUTHENTICATED,
    "department.create": ADMIN_ONLY,
    "department.edit": ADMIN_ONLY,
    "department.delete": ADMIN_ONLY,

    "project.view": AUTHENTICATED,
    "project.create": ADMIN_OR_MANAGER,
    "project.edit": ADMIN_OR_MANAGER,
    "project.delete": ADMIN_ONLY,

    "task.view": AUTHENTICATED,
    "task.status": AUTHENTICATED,
    "task.create": ADMIN_OR_MANAGER,
    "task.edit": ADMIN_OR_MANAGER,
    "task.delete": ADMIN_OR_MANAGER,

    "employee.view": AUTHENTICATED,
    "employee.create": ADMIN_ONLY,
    "employee.edit": ADMIN_ONLY,
    "employee.delete": ADMIN_ONLY,

    "admin.manage": ADMIN_ONLY,
}


def is_allowed(action: str, roles) -> bool:
    """Return True when a principal holding ``roles`` may perform ``action``.

    Unknown actions are denied.
    """
    allowed = POLICIES.get(action)
    if allowed is None:
        return False
    if allowed is AUTHENTICATED:
        return True
    return any(role in allowed for role in roles)


def allowed_actions(roles) -> set[str]:
    return {action for action in POLICIES if is_allowed(action, roles)}
