"""Project role checks used to gate writes."""

from __future__ import annotations

_ROLE_HIERARCHY = {
    "owner": 3,
    "contractor": 2,
    "viewer": 1,
}


def check_permission(role: str | None, required_role: str) -> bool:
    """Check if a role meets or exceeds the required role."""
    if role not in _ROLE_HIERARCHY or required_role not in _ROLE_HIERARCHY:
        return False
    return _ROLE_HIERARCHY[role] >= _ROLE_HIERARCHY[required_role]


def can_read(role: str | None) -> bool:
    return check_permission(role, "viewer")


def can_edit_tasks(role: str | None) -> bool:
    """Contractors and owners may add and complete tasks."""
    return check_permission(role, "contractor")


def can_manage(role: str | None) -> bool:
    """Only owners generate plans, override stages and manage the team."""
    return check_permission(role, "owner")
