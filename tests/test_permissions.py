"""
Tests for the permission model and the visibility filter.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from tailorbook.models import Customer, Expense, Worker
from tailorbook.permissions import (
    ROLE_PERMISSIONS,
    PermissionDeniedError,
    PermissionTag,
    Role,
    ViewCategory,
    can_view,
    effective_permissions,
    has_full_view,
    has_permission,
    require_permission,
    resolve_worker_name,
    visible_customers,
    visible_expenses,
    visible_orders,
)


class TestEffectivePermissions:
    """Tests for resolving a user's permission set."""

    def test_admin_role_has_everything(self, make_user):
        """Test that the Admin role grants every tag."""
        user = make_user(role="Admin")
        assert effective_permissions(user) == frozenset(PermissionTag)

    def test_custom_permissions_ignore_role(self, make_user):
        """Test that a non-empty custom list wins even over Admin."""
        user = make_user(role="Admin", permissions=["view_own_orders"])
        assert effective_permissions(user) == {PermissionTag.VIEW_OWN_ORDERS}
        assert not has_permission(user, PermissionTag.MANAGE_USERS)

    def test_empty_custom_permissions_fall_back_to_role(self, make_user):
        """Test that an empty list means no custom permissions."""
        user = make_user(role="Manager", permissions=[])
        assert effective_permissions(user) == ROLE_PERMISSIONS[Role.MANAGER]

    def test_unknown_role_fails_closed(self, make_user):
        """Test that an unknown role with no custom permissions grants nothing."""
        user = make_user(role="cutter")
        assert effective_permissions(user) == frozenset()

    def test_unknown_permission_strings_are_ignored(self, make_user):
        """Test that unrecognised tags are dropped."""
        user = make_user(role="Staff", permissions=["view_dashboard", "fly_to_moon"])
        assert effective_permissions(user) == {PermissionTag.VIEW_DASHBOARD}

    def test_no_user_has_nothing(self):
        """Test that a missing user has no permissions."""
        assert effective_permissions(None) == frozenset()

    def test_manager_cannot_delete_or_manage_users(self):
        """Test the Manager subset excludes delete rights and user management."""
        manager = ROLE_PERMISSIONS[Role.MANAGER]
        assert PermissionTag.MANAGE_USERS not in manager
        assert not any(tag.value.startswith("delete_") for tag in manager)

    def test_staff_is_own_scope(self):
        """Test the Staff subset only carries own-scope views."""
        staff = ROLE_PERMISSIONS[Role.STAFF]
        assert PermissionTag.VIEW_OWN_ORDERS in staff
        assert PermissionTag.VIEW_ALL_ORDERS not in staff


class TestCanView:
    """Tests for the generic own-or-all view check."""

    @pytest.mark.parametrize("category", list(ViewCategory))
    def test_either_scope_grants_view(self, make_user, category):
        """Test that own or all scope each grant the view."""
        own_user = make_user(role="Staff", permissions=[category.own_tag.value])
        all_user = make_user(role="Staff", permissions=[category.all_tag.value])
        assert can_view(own_user, category)
        assert can_view(all_user, category)
        assert not has_full_view(own_user, category)
        assert has_full_view(all_user, category)

    def test_no_scope_no_view(self, make_user):
        """Test that a user without either tag cannot view."""
        user = make_user(role="Staff", permissions=["view_dashboard"])
        assert not can_view(user, ViewCategory.REPORTS)


class TestRequirePermission:
    """Tests for the write-path guard."""

    def test_raises_with_context(self, make_user):
        """Test that a missing permission raises with the tag and user."""
        user = make_user(role="Staff", id="U-7")
        with pytest.raises(PermissionDeniedError) as exc:
            require_permission(user, PermissionTag.DELETE_ORDERS, "delete order")
        assert exc.value.tag == PermissionTag.DELETE_ORDERS
        assert exc.value.user_id == "U-7"
        assert "delete order" in str(exc.value)

    def test_passes_when_granted(self, admin):
        """Test that a granted permission passes silently."""
        require_permission(admin, PermissionTag.DELETE_ORDERS)


class TestVisibleOrders:
    """Tests for order visibility."""

    def test_all_scope_sees_everything(self, admin, make_order):
        """Test that view_all_orders returns every order unfiltered."""
        orders = [make_order(cutter="Ali"), make_order()]
        assert visible_orders(admin, orders, []) == orders

    def test_no_scope_sees_nothing(self, make_user, make_order):
        """Test that a user without order views gets an empty list."""
        user = make_user(role="Staff", permissions=["view_dashboard"])
        assert visible_orders(user, [make_order()], []) == []

    def test_own_scope_without_worker_is_empty(self, make_user, make_order):
        """Test that own scope with no matching worker returns nothing, not everything."""
        user = make_user(name="Nobody", role="Staff", permissions=["view_own_orders"])
        orders = [make_order(cutter="Ali")]
        workers = [Worker(name="Ali")]
        assert visible_orders(user, orders, workers) == []

    def test_other_workers_orders_are_excluded(self, make_user, make_order):
        """Test that a worker only sees orders assigned to them."""
        sara = make_user(name="Sara", role="Staff", permissions=["view_own_orders"])
        workers = [Worker(name="Ali"), Worker(name="Sara")]
        ali_order = make_order(cutter="Ali")
        sara_cut = make_order(cutter="Sara")
        sara_stitch = make_order(stitcher="Sara", cutter="Ali")

        visible = visible_orders(sara, [ali_order, sara_cut, sara_stitch], workers)
        assert visible == [sara_cut, sara_stitch]

    def test_worker_match_ignores_case(self, make_user):
        """Test that the user-to-worker link is case-insensitive, first match wins."""
        user = make_user(name="sara")
        workers = [Worker(name="SARA"), Worker(name="Sara")]
        assert resolve_worker_name(user, workers) == "SARA"


class TestVisibleCustomersAndExpenses:
    """Tests for customer and expense visibility."""

    def test_own_scope_customers_follow_visible_orders(self, make_user, make_order):
        """Test that own-scope customers are those on the user's orders."""
        user = make_user(
            name="Sara", role="Staff",
            permissions=["view_own_orders", "view_own_customers"],
        )
        workers = [Worker(name="Sara")]
        customers = [Customer(id="C-1", name="A"), Customer(id="C-2", name="B")]
        orders = [make_order(customer_id="C-2", stitcher="Sara"), make_order(customer_id="C-1")]

        visible = visible_customers(user, customers, orders, workers)
        assert [c.id for c in visible] == ["C-2"]

    def test_customers_without_view_are_empty(self, make_user):
        """Test that no customer view returns an empty list."""
        user = make_user(role="Staff", permissions=["view_own_orders"])
        assert visible_customers(user, [Customer(name="A")], [], []) == []

    def test_own_scope_expenses_are_those_logged_by_user(self, make_user):
        """Test that own-scope expenses are filtered by creator."""
        user = make_user(id="U-1", role="Staff")
        mine = Expense(amount=Decimal("10"), created_by="U-1", date=datetime(2024, 1, 1))
        theirs = Expense(amount=Decimal("20"), created_by="U-2", date=datetime(2024, 1, 1))
        assert visible_expenses(user, [mine, theirs]) == [mine]

    def test_all_scope_expenses(self, admin):
        """Test that view_all_expenses returns every expense."""
        expenses = [Expense(amount=Decimal("5")), Expense(amount=Decimal("6"))]
        assert visible_expenses(admin, expenses) == expenses


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
