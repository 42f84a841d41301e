"""
Ledger Calculator

Pure derivations over the in-memory collections: order dues, account
balances, worker earnings and payables, period totals.

DESIGN DECISION: Nothing here is stored or cached. Every balance is
recomputed from the full transaction history on each call, so the result
depends only on the multiset of matching transactions and never on their
order.

Callers pass already-visible orders wherever a figure is shown to a user.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, Field

from tailorbook.models.entities import (
    Account,
    AssignmentRole,
    Expense,
    Order,
    Worker,
    WorkerPayment,
)


ZERO = Decimal("0")


# =============================================================================
# ORDERS
# =============================================================================

def order_paid(order: Order) -> Decimal:
    return sum((p.amount for p in order.payments), ZERO)


def order_balance(order: Order) -> Decimal:
    """Total price minus everything paid. Negative after an overpayment."""
    return order.total_price - order_paid(order)


def customer_due(customer_id: str, orders: Iterable[Order]) -> Decimal:
    """Signed sum of balances across a customer's orders."""
    return sum(
        (order_balance(o) for o in orders if o.customer_id == customer_id),
        ZERO,
    )


# =============================================================================
# ACCOUNTS
# =============================================================================

def _legacy_match(account: Account, labels: Iterable[Optional[str]]) -> bool:
    # Records from before accounts existed only carry a free-text label
    return any(label == account.name for label in labels if label)


def account_balance(
    account_id: str,
    accounts: Sequence[Account],
    orders: Iterable[Order],
    expenses: Iterable[Expense],
    worker_payments: Iterable[WorkerPayment],
) -> Decimal:
    """
    Derived balance of one account: order payments in, expenses and
    worker payouts out.

    Payments and expenses without an account id count towards the account
    whose name equals their legacy label. Worker payouts have no such
    fallback. Unknown account ids have a zero balance.
    """
    account = next((a for a in accounts if a.id == account_id), None)
    if account is None:
        return ZERO

    inflow = ZERO
    for order in orders:
        for payment in order.payments:
            if payment.account_id:
                if payment.account_id == account_id:
                    inflow += payment.amount
            elif _legacy_match(account, (payment.mode, payment.source)):
                inflow += payment.amount

    expense_out = ZERO
    for expense in expenses:
        if expense.account_id:
            if expense.account_id == account_id:
                expense_out += expense.amount
        elif _legacy_match(account, (expense.mode,)):
            expense_out += expense.amount

    worker_out = sum(
        (p.amount for p in worker_payments if p.account_id == account_id),
        ZERO,
    )

    return inflow - expense_out - worker_out


def account_balances(
    accounts: Sequence[Account],
    orders: Sequence[Order],
    expenses: Sequence[Expense],
    worker_payments: Sequence[WorkerPayment],
) -> dict[str, Decimal]:
    return {
        account.id: account_balance(account.id, accounts, orders, expenses, worker_payments)
        for account in accounts
    }


# =============================================================================
# WORKERS
# =============================================================================

def _assignments_of(worker: Worker, orders: Iterable[Order]):
    """Yield (order, role, rate) for each role the worker holds on each order."""
    for order in orders:
        for role in AssignmentRole:
            if order.assignments.worker_for(role) == worker.name:
                yield order, role, order.assignments.rate_for(role)


def worker_earned(worker: Worker, orders: Iterable[Order]) -> Decimal:
    """
    Piece-work value earned on the given orders.

    Holding both roles on one order earns both rates.
    """
    return sum((rate for _, _, rate in _assignments_of(worker, orders)), ZERO)


def worker_paid(worker: Worker, worker_payments: Iterable[WorkerPayment]) -> Decimal:
    return sum(
        (p.amount for p in worker_payments if p.worker_id == worker.id),
        ZERO,
    )


def worker_balance(
    worker: Worker,
    orders: Iterable[Order],
    worker_payments: Iterable[WorkerPayment],
) -> Decimal:
    """Earned minus paid. Negative means the worker holds an advance."""
    return worker_earned(worker, orders) - worker_paid(worker, worker_payments)


def worker_payable(
    worker: Worker,
    orders: Iterable[Order],
    worker_payments: Iterable[WorkerPayment],
) -> Decimal:
    return max(ZERO, worker_balance(worker, orders, worker_payments))


def total_worker_payables(
    workers: Iterable[Worker],
    orders: Sequence[Order],
    worker_payments: Sequence[WorkerPayment],
) -> Decimal:
    """Sum of payables with every advance floored to zero."""
    return sum(
        (worker_payable(w, orders, worker_payments) for w in workers),
        ZERO,
    )


class WorkerLedgerEntry(BaseModel):
    """One line of a worker's statement."""
    date: datetime
    kind: str = Field(..., description="'assignment' or 'payment'")
    amount: Decimal = Field(..., description="Signed: earnings positive, payouts negative")
    running_balance: Decimal
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    role: Optional[AssignmentRole] = None
    account_id: Optional[str] = None

    @property
    def balance_label(self) -> str:
        return "Advance" if self.running_balance < 0 else "Balance"


def worker_ledger(
    worker: Worker,
    orders: Iterable[Order],
    worker_payments: Iterable[WorkerPayment],
) -> list[WorkerLedgerEntry]:
    """
    Chronological statement of a worker's assignments and payouts with a
    running balance.
    """
    rows: list[dict] = []
    for order, role, rate in _assignments_of(worker, orders):
        rows.append({
            "date": order.date,
            "kind": "assignment",
            "amount": rate,
            "order_id": order.id,
            "order_number": order.display_number,
            "customer_name": order.customer_name,
            "role": role,
        })
    for payment in worker_payments:
        if payment.worker_id != worker.id:
            continue
        rows.append({
            "date": payment.date,
            "kind": "payment",
            "amount": -payment.amount,
            "account_id": payment.account_id,
        })

    rows.sort(key=lambda row: row["date"])

    entries = []
    running = ZERO
    for row in rows:
        running += row["amount"]
        entries.append(WorkerLedgerEntry(running_balance=running, **row))
    return entries


# =============================================================================
# PERIODS
# =============================================================================

def in_range(moment: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Inclusive range check; a missing bound is open."""
    if moment is None:
        return start is None and end is None
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


class PeriodSummary(BaseModel):
    """Money totals over a date range."""
    revenue: Decimal = Field(default=ZERO, description="Billed value of orders in range")
    collections: Decimal = Field(default=ZERO, description="Payments taken on orders in range")
    expenses: Decimal = Field(default=ZERO, description="Expenses dated in range")
    order_count: int = 0
    expense_count: int = 0

    @property
    def net_flow(self) -> Decimal:
        """Collected minus spent. Not the same as revenue."""
        return self.collections - self.expenses


def period_summary(
    orders: Iterable[Order],
    expenses: Iterable[Expense],
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> PeriodSummary:
    """
    Totals for orders and expenses dated inside [start, end].

    Collections are the payments held by orders booked in the range,
    whenever those payments were taken.
    """
    period_orders = [o for o in orders if in_range(o.date, start, end)]
    period_expenses = [e for e in expenses if in_range(e.date, start, end)]
    return PeriodSummary(
        revenue=sum((o.total_price for o in period_orders), ZERO),
        collections=sum((order_paid(o) for o in period_orders), ZERO),
        expenses=sum((e.amount for e in period_expenses), ZERO),
        order_count=len(period_orders),
        expense_count=len(period_expenses),
    )
