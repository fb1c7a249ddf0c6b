"""
Account kinds, staff roles and the role → permission catalog.

The catalog is built once at import and exposed as tuples so nothing can
mutate it at runtime. ``check_permission`` is the single place that decides
whether a role may perform an operation.
"""

from __future__ import annotations

from typing import Protocol

from app.core.exceptions import InvalidInput

ACCOUNT_KINDS = ("buyer", "seller", "agent", "admin", "staff")
SELF_SERVICE_KINDS = ("seller", "buyer", "agent")
STAFF_STATUSES = ("active", "inactive", "suspended")

WILDCARD = "*"
DEFAULT_ROLE = "admin"


def _ordered_unique(*perms: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(perms))


ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "super_admin": _ordered_unique(
        "dashboard.view", "content.manage", "content.create", "content.view",
        "ads.manage", "ads.view", "ads.approve", "categories.manage",
        "packages.manage", "payments.manage", "payments.view", "payments.approve",
        "users.manage", "users.view", "sellers.manage", "sellers.verify", "sellers.view",
        "locations.manage", "reports.manage", "reports.view", "promotions.manage",
        "notifications.send", "staff.manage", "roles.manage", "blog.manage", "blog.view",
        "support.view", "system.manage", "system.view", "system.test", "system.update",
        "system.debug", "analytics.view",
    ),
    "content_manager": _ordered_unique(
        "dashboard.view", "content.manage", "content.create", "content.view",
        "blog.manage", "blog.view", "ads.view", "support.view",
    ),
    "sales_manager": _ordered_unique(
        "dashboard.view", "users.view", "sellers.manage", "sellers.verify", "sellers.view",
        "payments.view", "packages.manage", "ads.view", "analytics.view",
    ),
    "support_executive": _ordered_unique(
        "dashboard.view", "users.view", "support.view", "reports.view", "content.view",
    ),
    "admin": _ordered_unique(
        "dashboard.view", "content.view", "users.view", "ads.view", "analytics.view",
    ),
}

STAFF_ROLES = tuple(ROLE_PERMISSIONS)

ROLE_INFO: dict[str, dict[str, str]] = {
    "super_admin": {
        "display_name": "Super Admin",
        "color": "purple",
        "description": "Full access to all features and settings",
    },
    "content_manager": {
        "display_name": "Content Manager",
        "color": "blue",
        "description": "Manage pages, blogs, and content",
    },
    "sales_manager": {
        "display_name": "Sales Manager",
        "color": "green",
        "description": "Manage leads, properties, and sales",
    },
    "support_executive": {
        "display_name": "Support Executive",
        "color": "orange",
        "description": "Handle user queries and support",
    },
    "admin": {
        "display_name": "Admin",
        "color": "gray",
        "description": "General admin access",
    },
}


class _HasRole(Protocol):
    role: str | None


def is_known_role(role: str | None) -> bool:
    return role in ROLE_PERMISSIONS


def validate_role(role: str | None) -> str:
    if not is_known_role(role):
        raise InvalidInput(f"Invalid role. Must be one of: {', '.join(STAFF_ROLES)}")
    return role  # type: ignore[return-value]


def permissions_for(role: str | None) -> tuple[str, ...]:
    """Canonical permission set for *role*; unknown roles get the minimal set."""
    return ROLE_PERMISSIONS.get(role or "", ROLE_PERMISSIONS[DEFAULT_ROLE])


def role_info(role: str | None) -> dict[str, str]:
    if role in ROLE_INFO:
        return dict(ROLE_INFO[role])
    return {"display_name": role or "", "color": "gray", "description": ""}


def check_permission(subject: _HasRole | str | None, permission: str) -> bool:
    """True if *subject* (a role name or anything with a ``role``) holds *permission*."""
    role = subject if isinstance(subject, str) or subject is None else subject.role
    if role is None:
        return False
    if role == "super_admin":
        return True
    granted = permissions_for(role)
    return WILDCARD in granted or permission in granted
