"""Role-based authorization helpers.

Scopes decide which operations a role may call at all. Row rules in
``can_access_lead`` decide which leads those operations may touch, mirroring
the row-level policies enforced by the database.
"""

from __future__ import annotations

import enum
from typing import Any

from sqlalchemy import false
from sqlalchemy.orm import Query

from solarcrm.core.exceptions import AuthorizationError, NotFoundError
from solarcrm.models.enums import UserRole
from solarcrm.models.lead import Lead

# Scope strings are kept explicit for endpoint-level declarations.
ROLE_SCOPES: dict[str, set[str]] = {
    "admin": {
        "*",
    },
    "office": {
        "leads.read",
        "leads.create",
        "leads.update",
        "leads.status",
        "leads.assign_installer",
        "timeline.read",
        "timeline.complete",
        "documents.read",
        "documents.submit",
        "documents.delete",
        "documents.review",
        "steps.read",
        "activity.read",
        "activity.lead_read",
        "users.read",
        "notifications.read",
        "dashboard.read",
    },
    "agent": {
        "leads.read",
        "leads.create",
        "leads.update",
        "leads.status",
        "timeline.read",
        "timeline.complete",
        "documents.read",
        "documents.submit",
        "steps.read",
        "activity.lead_read",
        "notifications.read",
        "dashboard.read",
    },
    "installer": {
        "leads.read",
        "timeline.read",
        "timeline.complete",
        "documents.read",
        "documents.submit",
        "steps.read",
        "notifications.read",
        "dashboard.read",
    },
    "customer": {
        "leads.read",
        "leads.create",
        "timeline.read",
        "timeline.complete",
        "documents.read",
        "documents.submit",
        "notifications.read",
        "dashboard.read",
    },
}

# Roles that see every lead.
STAFF_ROLES = frozenset({UserRole.ADMIN.value, UserRole.OFFICE.value})


def role_name(role: str | enum.Enum) -> str:
    return (role.value if isinstance(role, enum.Enum) else str(role)).lower()


def is_admin(user: Any) -> bool:
    return role_name(user.role) == UserRole.ADMIN.value


def get_scopes_for_role(role: str | enum.Enum) -> set[str]:
    """Return scopes granted to a role."""
    return ROLE_SCOPES.get(role_name(role), set())


def has_scopes(role: str | enum.Enum, required_scopes: list[str] | set[str] | tuple[str, ...]) -> bool:
    """Check if role includes every required scope."""
    granted = get_scopes_for_role(role)
    if "*" in granted:
        return True
    return set(required_scopes).issubset(granted)


def require_scopes(role: str | enum.Enum, required_scopes: list[str] | set[str] | tuple[str, ...]) -> None:
    """Raise when a role lacks required scopes."""
    if has_scopes(role=role, required_scopes=required_scopes):
        return
    missing = sorted(set(required_scopes) - get_scopes_for_role(role))
    raise AuthorizationError(f"Missing required scopes: {', '.join(missing)}")


def require_roles(user: Any, roles: set[str] | frozenset[str], message: str | None = None) -> None:
    if role_name(user.role) not in roles:
        raise AuthorizationError(message or "You do not have permission to perform this action.")


def require_admin(user: Any, message: str | None = None) -> None:
    require_roles(user, {UserRole.ADMIN.value}, message or "Only admins can perform this action.")


def can_access_lead(user: Any, lead: Lead) -> bool:
    """Row rule: which leads a user may see and act on."""
    role = role_name(user.role)
    if role in STAFF_ROLES:
        return True
    if role == UserRole.AGENT.value:
        return lead.created_by == user.id
    if role == UserRole.INSTALLER.value:
        return lead.installer_id == user.id
    if role == UserRole.CUSTOMER.value:
        return lead.customer_account_id == user.id
    return False


def require_lead_access(user: Any, lead: Lead | None, scopes: list[str] | tuple[str, ...] = ("leads.read",)) -> Lead:
    """Enforce scopes and the row rule; leads outside the rule are reported as missing."""
    require_scopes(user.role, scopes)
    if lead is None or not can_access_lead(user, lead):
        raise NotFoundError("Lead not found")
    return lead


def scope_lead_query(query: Query, user: Any) -> Query:
    """Apply the row rule to a Lead query."""
    role = role_name(user.role)
    if role in STAFF_ROLES:
        return query
    if role == UserRole.AGENT.value:
        return query.filter(Lead.created_by == user.id)
    if role == UserRole.INSTALLER.value:
        return query.filter(Lead.installer_id == user.id)
    if role == UserRole.CUSTOMER.value:
        return query.filter(Lead.customer_account_id == user.id)
    return query.filter(false())
