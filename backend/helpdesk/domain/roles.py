"""Role names and the permissions each role carries

Role names are stored as plain strings on users, so every lookup in the
code goes through these constants.
"""
from typing import Dict, FrozenSet, Iterable


# Executive level
SUPER_ADMIN = "Super Admin"
CEO = "CEO"
DIRECTOR = "Director"
HEAD_OF_DEPARTMENT = "Head of Department"
HOD = "HOD"

# Management level
IT_MANAGER = "IT Manager"
OPERATIONS_MANAGER = "Operations Manager"
FINANCE_MANAGER = "Finance Manager"
HR_MANAGER = "HR Manager"
PROCUREMENT_MANAGER = "Procurement Manager"
SAFETY_MANAGER = "Safety Manager"
LINE_MANAGER = "Line Manager"
MANAGER = "Manager"
PROJECT_MANAGER = "Project Manager"

# Operations level
IT_ADMINISTRATOR = "IT Administrator"
SENIOR_AGENT = "Senior Agent"
AGENT = "Agent"

# User level
REQUESTER = "Requester"
CONTRACTOR = "Contractor"


# Roles that can sign off at line manager level
APPROVAL_ROLES: FrozenSet[str] = frozenset({MANAGER, LINE_MANAGER, SUPER_ADMIN})

HOD_ROLES: FrozenSet[str] = frozenset({HEAD_OF_DEPARTMENT, HOD})


# Permissions
TICKETS_VIEW = "tickets.view"
TICKETS_CREATE = "tickets.create"
TICKETS_EDIT = "tickets.edit"
TICKETS_ASSIGN = "tickets.assign"
TICKETS_RESOLVE = "tickets.resolve"
TICKETS_CLOSE = "tickets.close"
ESCALATION_RULES_VIEW = "escalation-rules.view"
ESCALATION_RULES_MANAGE = "escalation-rules.manage"
AUTOMATION_RULES_VIEW = "automation-rules.view"
AUTOMATION_RULES_MANAGE = "automation-rules.manage"
NOTIFICATIONS_VIEW = "notifications.view"

ALL_PERMISSIONS = "*"

ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    SUPER_ADMIN: frozenset({ALL_PERMISSIONS}),
    MANAGER: frozenset({
        TICKETS_VIEW, TICKETS_CREATE, TICKETS_EDIT, TICKETS_ASSIGN,
        TICKETS_RESOLVE, TICKETS_CLOSE, NOTIFICATIONS_VIEW,
    }),
    LINE_MANAGER: frozenset({
        TICKETS_VIEW, TICKETS_CREATE, TICKETS_EDIT, TICKETS_ASSIGN, NOTIFICATIONS_VIEW,
    }),
    HEAD_OF_DEPARTMENT: frozenset({
        TICKETS_VIEW, TICKETS_CREATE, TICKETS_EDIT, TICKETS_ASSIGN, NOTIFICATIONS_VIEW,
    }),
    AGENT: frozenset({
        TICKETS_VIEW, TICKETS_CREATE, TICKETS_EDIT, TICKETS_RESOLVE,
        TICKETS_CLOSE, NOTIFICATIONS_VIEW,
    }),
    SENIOR_AGENT: frozenset({
        TICKETS_VIEW, TICKETS_CREATE, TICKETS_EDIT, TICKETS_RESOLVE,
        TICKETS_CLOSE, NOTIFICATIONS_VIEW,
    }),
    REQUESTER: frozenset({TICKETS_VIEW, TICKETS_CREATE, NOTIFICATIONS_VIEW}),
}
ROLE_PERMISSIONS[HOD] = ROLE_PERMISSIONS[HEAD_OF_DEPARTMENT]


def has_any_role(roles: Iterable[str], wanted: Iterable[str]) -> bool:
    """True if any of ``roles`` is in ``wanted``"""
    wanted_set = set(wanted)
    return any(role in wanted_set for role in roles)


def has_permission(roles: Iterable[str], permission: str) -> bool:
    """Check if a set of roles grants the permission"""
    for role in roles:
        granted = ROLE_PERMISSIONS.get(role, frozenset())
        if ALL_PERMISSIONS in granted or permission in granted:
            return True
    return False
