"""
Order Lifecycle

Booking, payments, status changes, worker assignment and the cascades that
touch orders when a worker or customer goes away.

DESIGN DECISION: Status is a convention, not a gate. Booked -> Cutting ->
Stitching -> Ready -> Delivered is the usual path but any status may be
set from any other; confirming a jump is the caller's job.

Order ids are collision resistant. The ORD-<Mon>-<YY>-<NNNN> label is kept
as a display number only, because two sessions booking in the same month
can compute the same sequence.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from pydantic import BaseModel, Field

from tailorbook.ledger.calculator import ZERO, order_balance
from tailorbook.models.common import Money, OptionalDate
from tailorbook.models.entities import (
    AssignmentRole,
    Assignments,
    Order,
    OrderItem,
    OrderMeasurement,
    OrderStatus,
    Payment,
    PaymentSource,
)


MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)


# =============================================================================
# BOOKING
# =============================================================================

def generate_order_number(orders: Sequence[Order], now: Optional[datetime] = None) -> str:
    """
    Display label ORD-<Mon>-<YY>-<NNNN>.

    NNNN is one more than the number of orders dated in the same month of
    the same two-digit year. Not unique across concurrent sessions.
    """
    now = now or datetime.now()
    year = now.year % 100
    same_month = sum(
        1 for o in orders
        if o.date.month == now.month and o.date.year % 100 == year
    )
    month = MONTH_ABBREVIATIONS[now.month - 1]
    return f"ORD-{month}-{year:02d}-{str(same_month + 1).zfill(4)}"


class OrderDraft(BaseModel):
    """What the booking form submits."""
    customer_id: str = Field(..., min_length=1)
    customer_name: str = ""
    customer_phone: str = ""
    items: list[OrderItem] = Field(default_factory=list)
    total_price: Money = Field(default=ZERO)
    advance: Money = Field(default=ZERO)
    advance_account_id: Optional[str] = None
    order_date: Optional[Union[datetime, date]] = None
    delivery_date: OptionalDate = None
    measurements: list[OrderMeasurement] = Field(default_factory=list)


def _as_datetime(value: Union[datetime, date]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def create_order(
    draft: OrderDraft,
    existing_orders: Sequence[Order],
    now: Optional[datetime] = None,
) -> Order:
    """
    Build a new order from a draft.

    The status is always Booked, assignments start empty and the advance
    becomes the first payment, dated with the order.
    """
    now = now or datetime.now()
    booked_at = _as_datetime(draft.order_date) if draft.order_date else now

    return Order(
        order_number=generate_order_number(existing_orders, now),
        customer_id=draft.customer_id,
        customer_name=draft.customer_name,
        customer_phone=draft.customer_phone,
        status=OrderStatus.BOOKED,
        items_list=[item.model_copy() for item in draft.items],
        total_price=draft.total_price,
        date=booked_at,
        delivery_date=draft.delivery_date,
        payments=[
            Payment(
                date=booked_at,
                amount=draft.advance,
                source=PaymentSource.ADVANCE,
                account_id=draft.advance_account_id,
            )
        ],
        assignments=Assignments(),
        measurements=[m.model_copy() for m in draft.measurements],
    )


# =============================================================================
# PAYMENTS & STATUS
# =============================================================================

def add_partial_payment(
    order: Order,
    amount: Decimal,
    account_id: Optional[str],
    now: Optional[datetime] = None,
) -> Payment:
    """Append a Partial payment. Overpaying is allowed."""
    payment = Payment(
        date=now or datetime.now(),
        amount=amount,
        source=PaymentSource.PARTIAL,
        account_id=account_id,
    )
    order.payments.append(payment)
    return payment


def update_order_status(order: Order, status: Union[OrderStatus, str]) -> str:
    """Set any status. Returns the previous one."""
    previous = order.status
    order.status = OrderStatus(status)
    return previous.value if isinstance(previous, OrderStatus) else str(previous)


def update_order_assignment(
    order: Order,
    role: Union[AssignmentRole, str],
    worker_name: Optional[str],
    rate: Decimal,
) -> None:
    """Set the worker and the piece rate for one role together."""
    role = AssignmentRole(role)
    updated = order.assignments.model_copy(update={
        role.value: worker_name or None,
        f"{role.value}_rate": Decimal(rate) if worker_name else ZERO,
    })
    order.assignments = updated


# =============================================================================
# CASCADES
# =============================================================================

def clear_worker_assignments(orders: Sequence[Order], worker_name: str) -> int:
    """
    Unassign a worker everywhere: name to None, rate to 0.

    The orders themselves are kept. Returns how many role slots were cleared.
    """
    cleared = 0
    for order in orders:
        for role in AssignmentRole:
            if order.assignments.worker_for(role) == worker_name:
                update_order_assignment(order, role, None, ZERO)
                cleared += 1
    return cleared


def remove_customer_orders(
    orders: Sequence[Order],
    customer_id: str,
) -> tuple[list[Order], list[Order]]:
    """Split orders into (kept, removed) for a customer being deleted."""
    kept, removed = [], []
    for order in orders:
        (removed if order.customer_id == customer_id else kept).append(order)
    return kept, removed


# =============================================================================
# CUSTOMER RECEIPTS
# =============================================================================

class ReceiptAllocation(BaseModel):
    """How a customer-level receipt was spread over their orders."""
    allocations: list[tuple[str, Decimal]] = Field(default_factory=list)
    unapplied: Decimal = ZERO

    @property
    def applied(self) -> Decimal:
        return sum((amount for _, amount in self.allocations), ZERO)


def apply_customer_receipt(
    customer_id: str,
    amount: Decimal,
    orders: Sequence[Order],
    account_id: Optional[str],
    now: Optional[datetime] = None,
) -> ReceiptAllocation:
    """
    Spread a receipt over the customer's orders in their current order,
    filling each outstanding balance before moving on.

    Pass only orders visible to the acting user. Whatever exceeds the
    total outstanding is not credited anywhere; it is returned as
    `unapplied` so the caller can surface it.
    """
    now = now or datetime.now()
    remaining = Decimal(amount)
    result = ReceiptAllocation()

    for order in orders:
        if remaining <= 0:
            break
        if order.customer_id != customer_id:
            continue
        due = order_balance(order)
        if due <= 0:
            continue
        portion = min(due, remaining)
        add_partial_payment(order, portion, account_id, now)
        result.allocations.append((order.id, portion))
        remaining -= portion

    result.unapplied = max(remaining, ZERO)
    return result
