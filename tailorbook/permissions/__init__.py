"""Permissions package: the permission model and the visibility filter."""

from tailorbook.permissions.model import (
    ROLE_PERMISSIONS,
    WORKER_LOGIN_PERMISSIONS,
    PermissionDeniedError,
    PermissionTag,
    Role,
    ViewCategory,
    can_view,
    effective_permissions,
    has_full_view,
    has_permission,
    require_permission,
)
from tailorbook.permissions.visibility import (
    resolve_worker_name,
    visible_customers,
    visible_expenses,
    visible_orders,
)

__all__ = [
    # Model
    "ROLE_PERMISSIONS",
    "WORKER_LOGIN_PERMISSIONS",
    "PermissionDeniedError",
    "PermissionTag",
    "Role",
    "ViewCategory",
    "can_view",
    "effective_permissions",
    "has_full_view",
    "has_permission",
    "require_permission",
    # Visibility
    "resolve_worker_name",
    "visible_customers",
    "visible_expenses",
    "visible_orders",
]
