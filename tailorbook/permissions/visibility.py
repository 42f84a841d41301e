"""
Visibility Filter

Decides which orders and customers a user may see.

DESIGN DECISION: Every figure shown to a user (dashboards, reports,
ledgers, dues) is computed from `visible_orders`, never from the raw
collection, so an own-scope worker cannot read shop totals through a
side channel.

An own-scope user is linked to a Worker by a case-insensitive name match.
No matching worker means nothing is visible; that is not an error.
"""

from typing import Optional, Sequence

from tailorbook.models.entities import Customer, Expense, Order, User, Worker
from tailorbook.permissions.model import ViewCategory, effective_permissions


def resolve_worker_name(user: Optional[User], workers: Sequence[Worker]) -> Optional[str]:
    """Name of the first worker whose name matches the user's, ignoring case."""
    if user is None:
        return None
    wanted = user.name.casefold()
    for worker in workers:
        if worker.name.casefold() == wanted:
            return worker.name
    return None


def is_assigned_to(order: Order, worker_name: str) -> bool:
    assignments = order.assignments
    return assignments.cutter == worker_name or assignments.stitcher == worker_name


def visible_orders(
    user: Optional[User],
    all_orders: Sequence[Order],
    all_workers: Sequence[Worker],
) -> list[Order]:
    granted = effective_permissions(user)
    category = ViewCategory.ORDERS

    if category.all_tag in granted:
        return list(all_orders)

    if category.own_tag in granted:
        worker_name = resolve_worker_name(user, all_workers)
        if worker_name:
            return [o for o in all_orders if is_assigned_to(o, worker_name)]

    return []


def visible_customers(
    user: Optional[User],
    all_customers: Sequence[Customer],
    all_orders: Sequence[Order],
    all_workers: Sequence[Worker],
) -> list[Customer]:
    """
    Customers visible to a user.

    Own scope means customers referenced by the user's visible orders.
    """
    granted = effective_permissions(user)
    category = ViewCategory.CUSTOMERS

    if category.all_tag in granted:
        return list(all_customers)

    if category.own_tag in granted:
        customer_ids = {o.customer_id for o in visible_orders(user, all_orders, all_workers)}
        return [c for c in all_customers if c.id in customer_ids]

    return []


def visible_expenses(user: Optional[User], all_expenses: Sequence[Expense]) -> list[Expense]:
    """Own scope means expenses the user logged themselves."""
    granted = effective_permissions(user)
    category = ViewCategory.EXPENSES

    if category.all_tag in granted:
        return list(all_expenses)

    if category.own_tag in granted and user is not None:
        return [e for e in all_expenses if e.created_by == user.id]

    return []
