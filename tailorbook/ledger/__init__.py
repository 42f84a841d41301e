"""Ledger package: derived balances, dues and payables."""

from tailorbook.ledger.calculator import (
    PeriodSummary,
    WorkerLedgerEntry,
    account_balance,
    account_balances,
    customer_due,
    in_range,
    order_balance,
    order_paid,
    period_summary,
    total_worker_payables,
    worker_balance,
    worker_earned,
    worker_ledger,
    worker_paid,
    worker_payable,
)

__all__ = [
    "PeriodSummary",
    "WorkerLedgerEntry",
    "account_balance",
    "account_balances",
    "customer_due",
    "in_range",
    "order_balance",
    "order_paid",
    "period_summary",
    "total_worker_payables",
    "worker_balance",
    "worker_earned",
    "worker_ledger",
    "worker_paid",
    "worker_payable",
]
