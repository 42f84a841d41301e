"""
CSV Export

Flat records in, delimited text out. Pure formatting: the row builders
only reshape records the caller has already filtered for visibility.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

from tailorbook.ledger.calculator import order_balance, order_paid
from tailorbook.models.entities import Account, Customer, Expense, Order
from tailorbook.queries.reports import ShopReport


Column = tuple[str, str]  # (dotted key, header label)


def _lookup(record: Any, dotted_key: str) -> Any:
    value = record
    for part in dotted_key.split("."):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def to_csv(
    records: Sequence[Any],
    columns: Optional[Sequence[Column]] = None,
) -> str:
    """
    Render records as CSV.

    Without `columns` the keys of the first record become the header.
    Keys may be dotted ("assignments.cutter") to reach nested values.
    Fields containing a comma, quote or newline are quoted.
    """
    if columns is None:
        if not records:
            return ""
        first = records[0]
        keys = list(first.keys()) if isinstance(first, dict) else list(type(first).model_fields)
        columns = [(key, key) for key in keys]

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([label for _, label in columns])
    for record in records:
        writer.writerow([_cell(_lookup(record, key)) for key, _ in columns])
    return buffer.getvalue()


# =============================================================================
# ROW BUILDERS
# =============================================================================

def order_rows(orders: Iterable[Order]) -> list[dict]:
    return [
        {
            "Order ID": order.display_number,
            "Customer Name": order.customer_name,
            "Phone": order.customer_phone,
            "Status": _cell(order.status),
            "Total Price": order.total_price,
            "Paid": order_paid(order),
            "Balance": order_balance(order),
            "Order Date": order.date.date(),
            "Delivery Date": order.delivery_date,
            "Items": "; ".join(
                f"{item.qty}x {item.type} @{_cell(item.price)}" for item in order.items_list
            ),
            "Cutter": order.assignments.cutter,
            "Stitcher": order.assignments.stitcher,
        }
        for order in orders
    ]


def customer_rows(customers: Iterable[Customer], orders: Sequence[Order]) -> list[dict]:
    rows = []
    for customer in customers:
        own = [o for o in orders if o.customer_id == customer.id]
        billed = sum((o.total_price for o in own), Decimal("0"))
        paid = sum((order_paid(o) for o in own), Decimal("0"))
        rows.append({
            "Customer ID": customer.id,
            "Name": customer.name,
            "Phone": customer.phone,
            "Date Added": customer.date_added,
            "Total Orders": len(own),
            "Total Billed": billed,
            "Total Paid": paid,
            "Balance": billed - paid,
            "Profiles": "; ".join(p.name for p in customer.profiles),
        })
    return rows


def expense_rows(expenses: Iterable[Expense], accounts: Sequence[Account]) -> list[dict]:
    names = {a.id: a.name for a in accounts}
    return [
        {
            "Date": expense.date.date(),
            "Category": expense.category,
            "Amount": expense.amount,
            "Account": names.get(expense.account_id or "", expense.mode or ""),
            "Description": expense.note,
        }
        for expense in expenses
    ]


def report_rows(report: ShopReport) -> list[dict]:
    summary = report.summary
    return [{
        "Report Period": report.period_label,
        "Total Orders": summary.order_count,
        "Total Revenue": summary.revenue,
        "Collections": summary.collections,
        "Total Expenses": summary.expenses,
        "Net Flow": summary.net_flow,
        "Worker Payables": report.worker_payables,
        "Estimated Net Profit": report.estimated_net_profit,
        "Completed Orders": report.delivered_orders,
        "Pending Orders": report.pending_orders,
    }]
