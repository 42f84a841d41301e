"""
Permission Model

Resolves what a user may do. Permissions are a closed set of tags.

DESIGN DECISION: A non-empty custom permission list on the user is taken
as-is and the role table is ignored, even for Admins. An empty list means
"no custom permissions" and the role table applies. Unknown roles resolve
to no permissions at all.
"""

from enum import Enum
from typing import Optional

import structlog

from tailorbook.models.entities import User


logger = structlog.get_logger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class PermissionTag(str, Enum):
    """Every capability a user can hold."""
    # Dashboard
    VIEW_DASHBOARD = "view_dashboard"

    # Orders - own vs all
    VIEW_OWN_ORDERS = "view_own_orders"
    VIEW_ALL_ORDERS = "view_all_orders"
    CREATE_ORDERS = "create_orders"
    EDIT_ORDERS = "edit_orders"
    DELETE_ORDERS = "delete_orders"
    EDIT_ORDER_MEASUREMENTS = "edit_order_measurements"

    # Customers - own vs all
    VIEW_OWN_CUSTOMERS = "view_own_customers"
    VIEW_ALL_CUSTOMERS = "view_all_customers"
    CREATE_CUSTOMERS = "create_customers"
    EDIT_CUSTOMERS = "edit_customers"
    DELETE_CUSTOMERS = "delete_customers"
    EDIT_CUSTOMER_MEASUREMENTS = "edit_customer_measurements"

    # Workers
    VIEW_WORKERS = "view_workers"
    CREATE_WORKERS = "create_workers"
    EDIT_WORKERS = "edit_workers"
    DELETE_WORKERS = "delete_workers"
    PAY_WORKERS = "pay_workers"

    # Accounts
    VIEW_ACCOUNTS = "view_accounts"

    # Expenses - own vs all
    VIEW_OWN_EXPENSES = "view_own_expenses"
    VIEW_ALL_EXPENSES = "view_all_expenses"
    CREATE_EXPENSES = "create_expenses"
    EDIT_EXPENSES = "edit_expenses"
    DELETE_EXPENSES = "delete_expenses"

    # Reports - own vs all
    VIEW_OWN_REPORTS = "view_own_reports"
    VIEW_ALL_REPORTS = "view_all_reports"

    # User management
    MANAGE_USERS = "manage_users"


class Role(str, Enum):
    """
    Built-in roles with a permission table.

    User.role stays a free-form string; any other value is a custom role
    that only works through explicit permissions.
    """
    ADMIN = "Admin"
    MANAGER = "Manager"
    STAFF = "Staff"


class ViewCategory(str, Enum):
    """Record categories that have an own/all visibility scope pair."""
    ORDERS = "orders"
    CUSTOMERS = "customers"
    EXPENSES = "expenses"
    REPORTS = "reports"

    @property
    def own_tag(self) -> PermissionTag:
        return PermissionTag(f"view_own_{self.value}")

    @property
    def all_tag(self) -> PermissionTag:
        return PermissionTag(f"view_all_{self.value}")


# =============================================================================
# ROLE TABLE
# =============================================================================

ROLE_PERMISSIONS: dict[Role, frozenset[PermissionTag]] = {
    Role.ADMIN: frozenset(PermissionTag),
    Role.MANAGER: frozenset({
        PermissionTag.VIEW_DASHBOARD,
        PermissionTag.VIEW_ALL_ORDERS,
        PermissionTag.CREATE_ORDERS,
        PermissionTag.EDIT_ORDERS,
        PermissionTag.EDIT_ORDER_MEASUREMENTS,
        PermissionTag.VIEW_ALL_CUSTOMERS,
        PermissionTag.CREATE_CUSTOMERS,
        PermissionTag.EDIT_CUSTOMERS,
        PermissionTag.EDIT_CUSTOMER_MEASUREMENTS,
        PermissionTag.VIEW_WORKERS,
        PermissionTag.CREATE_WORKERS,
        PermissionTag.EDIT_WORKERS,
        PermissionTag.PAY_WORKERS,
        PermissionTag.VIEW_ACCOUNTS,
        PermissionTag.VIEW_ALL_EXPENSES,
        PermissionTag.CREATE_EXPENSES,
        PermissionTag.VIEW_ALL_REPORTS,
    }),
    Role.STAFF: frozenset({
        PermissionTag.VIEW_DASHBOARD,
        PermissionTag.VIEW_OWN_ORDERS,
        PermissionTag.CREATE_ORDERS,
        PermissionTag.VIEW_OWN_CUSTOMERS,
        PermissionTag.CREATE_CUSTOMERS,
        PermissionTag.VIEW_WORKERS,
        PermissionTag.VIEW_OWN_EXPENSES,
        PermissionTag.CREATE_EXPENSES,
        PermissionTag.VIEW_OWN_REPORTS,
    }),
}

# Granted to the login created alongside a new worker
WORKER_LOGIN_PERMISSIONS: tuple[PermissionTag, ...] = (
    PermissionTag.VIEW_DASHBOARD,
    PermissionTag.VIEW_OWN_ORDERS,
    PermissionTag.VIEW_WORKERS,
)


# =============================================================================
# RESOLUTION
# =============================================================================

def parse_permissions(values: list[str]) -> frozenset[PermissionTag]:
    """Map stored permission strings to tags, dropping unknown ones."""
    tags = set()
    for value in values:
        try:
            tags.add(PermissionTag(value))
        except ValueError:
            logger.debug("unknown_permission_ignored", permission=value)
    return frozenset(tags)


def role_permissions(role: str) -> frozenset[PermissionTag]:
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return frozenset()


def effective_permissions(user: Optional[User]) -> frozenset[PermissionTag]:
    """
    The permission set a user actually holds.

    Custom permissions win outright when present; otherwise the role table
    is used. No user means no permissions.
    """
    if user is None:
        return frozenset()
    if user.permissions:
        return parse_permissions(user.permissions)
    return role_permissions(user.role)


def has_permission(user: Optional[User], tag: PermissionTag) -> bool:
    return tag in effective_permissions(user)


def can_view(user: Optional[User], category: ViewCategory) -> bool:
    """True if the user holds either the own or the all scope for a category."""
    granted = effective_permissions(user)
    return category.own_tag in granted or category.all_tag in granted


def has_full_view(user: Optional[User], category: ViewCategory) -> bool:
    return has_permission(user, category.all_tag)


# =============================================================================
# WRITE-PATH GUARD
# =============================================================================

def require_permission(
    user: Optional[User],
    tag: PermissionTag,
    operation: str = "",
) -> None:
    """
    Raise PermissionDeniedError unless the user holds `tag`.

    Read paths degrade to empty results instead; this is for commands.
    """
    if not has_permission(user, tag):
        raise PermissionDeniedError(
            tag=tag,
            user_id=user.id if user else None,
            operation=operation,
        )


class PermissionDeniedError(Exception):
    """The acting user lacks the permission a command needs."""

    def __init__(
        self,
        tag: PermissionTag,
        user_id: Optional[str] = None,
        operation: str = "",
    ):
        self.tag = tag
        self.user_id = user_id
        self.operation = operation
        action = operation or tag.value
        super().__init__(f"Insufficient permission for {action} (requires {tag.value})")
