"""
Reports & Dashboard

DESIGN DECISION: Reports are computed, never stored. Every figure is
derived from the visible slice of the collections for the acting user:
orders go through `visible_orders` and expenses through
`visible_expenses` before anything is summed. A user without the report
(or dashboard) permission gets an empty result, not an error.
"""

import calendar
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from tailorbook.ledger.calculator import (
    ZERO,
    PeriodSummary,
    in_range,
    order_balance,
    period_summary,
    total_worker_payables,
)
from tailorbook.models.entities import Order, OrderStatus, StateSnapshot, User
from tailorbook.permissions.model import (
    PermissionTag,
    ViewCategory,
    can_view,
    has_permission,
)
from tailorbook.permissions.visibility import visible_expenses, visible_orders


# =============================================================================
# DATE RANGES
# =============================================================================

class DateRangePreset(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "7d"
    MONTH = "month"
    CUSTOM = "custom"
    ALL = "all"


class DateRange(BaseModel):
    """Inclusive range; None bounds are open."""
    preset: DateRangePreset
    start: Optional[datetime] = None
    end: Optional[datetime] = None


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _end_of(day: date) -> datetime:
    return datetime.combine(day, time.max)


def _one_month_back(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolve_date_range(
    preset: Union[DateRangePreset, str],
    now: Optional[datetime] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> DateRange:
    """
    Turn a preset into concrete bounds.

    "7d" starts seven days back and "month" one calendar month back, both
    at midnight and both running to the end of today. A custom range
    without both dates falls back to today.
    """
    preset = DateRangePreset(preset)
    today = (now or datetime.now()).date()

    if preset == DateRangePreset.ALL:
        return DateRange(preset=preset)
    if preset == DateRangePreset.CUSTOM and start and end:
        return DateRange(preset=preset, start=_start_of(start), end=_end_of(end))
    if preset == DateRangePreset.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(preset=preset, start=_start_of(yesterday), end=_end_of(yesterday))
    if preset == DateRangePreset.LAST_7_DAYS:
        return DateRange(preset=preset, start=_start_of(today - timedelta(days=7)), end=_end_of(today))
    if preset == DateRangePreset.MONTH:
        return DateRange(preset=preset, start=_start_of(_one_month_back(today)), end=_end_of(today))
    return DateRange(preset=preset, start=_start_of(today), end=_end_of(today))


def date_range_label(date_from: Optional[date], date_to: Optional[date]) -> str:
    """Format date range for display."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%d %b')} to {date_to.strftime('%d %b %Y')}"
        else:
            return f"from {date_from.strftime('%d %b %Y')} to {date_to.strftime('%d %b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return "all time"


# =============================================================================
# RESULT MODELS
# =============================================================================

class ShopReport(BaseModel):
    """Figures for one date range, as seen by one user."""
    date_range: DateRange
    summary: PeriodSummary = Field(default_factory=PeriodSummary)
    worker_payables: Decimal = ZERO
    delivered_orders: int = 0
    pending_orders: int = 0

    @property
    def period_label(self) -> str:
        start = self.date_range.start.date() if self.date_range.start else None
        end = self.date_range.end.date() if self.date_range.end else None
        return date_range_label(start, end)

    @property
    def estimated_net_profit(self) -> Decimal:
        """Collections minus expenses minus what is still owed to workers."""
        return self.summary.net_flow - self.worker_payables


class OverdueOrder(BaseModel):
    order_id: str
    order_number: str
    customer_name: str
    days_overdue: int


class Dashboard(BaseModel):
    """Operational snapshot of the visible orders."""
    status_counts: dict[str, int] = Field(default_factory=dict)
    orders_with_dues: int = 0
    total_receivable: Decimal = ZERO
    overdue: list[OverdueOrder] = Field(default_factory=list)


# =============================================================================
# BUILDER
# =============================================================================

def days_overdue(order: Order, today: date) -> int:
    """Whole days past the delivery date for undelivered orders, else 0."""
    if not order.delivery_date or order.status == OrderStatus.DELIVERED:
        return 0
    return max(0, (today - order.delivery_date).days)


class ReportBuilder:
    """
    Builds reports and the dashboard for a user over a state snapshot.
    """

    def build_report(
        self,
        user: Optional[User],
        state: StateSnapshot,
        date_range: DateRange,
    ) -> ShopReport:
        if not can_view(user, ViewCategory.REPORTS):
            return ShopReport(date_range=date_range)

        orders = visible_orders(user, state.orders, state.workers)
        expenses = visible_expenses(user, state.expenses)
        summary = period_summary(orders, expenses, date_range.start, date_range.end)

        in_period = [o for o in orders if in_range(o.date, date_range.start, date_range.end)]
        delivered = sum(1 for o in in_period if o.status == OrderStatus.DELIVERED)

        return ShopReport(
            date_range=date_range,
            summary=summary,
            worker_payables=total_worker_payables(state.workers, orders, state.worker_payments),
            delivered_orders=delivered,
            pending_orders=len(in_period) - delivered,
        )

    def build_dashboard(
        self,
        user: Optional[User],
        state: StateSnapshot,
        today: Optional[date] = None,
    ) -> Dashboard:
        if not has_permission(user, PermissionTag.VIEW_DASHBOARD):
            return Dashboard()

        today = today or date.today()
        orders = visible_orders(user, state.orders, state.workers)

        counts = {status.value: 0 for status in OrderStatus}
        for order in orders:
            key = order.status.value if isinstance(order.status, OrderStatus) else str(order.status)
            counts[key] = counts.get(key, 0) + 1

        dues = [order_balance(o) for o in orders]
        overdue = [
            OverdueOrder(
                order_id=o.id,
                order_number=o.display_number,
                customer_name=o.customer_name,
                days_overdue=days_overdue(o, today),
            )
            for o in orders
            if days_overdue(o, today) > 0
        ]
        overdue.sort(key=lambda entry: entry.days_overdue, reverse=True)

        return Dashboard(
            status_counts=counts,
            orders_with_dues=sum(1 for d in dues if d > 0),
            total_receivable=sum((d for d in dues if d > 0), ZERO),
            overdue=overdue,
        )
