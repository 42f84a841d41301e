"""Order lifecycle package."""

from tailorbook.orders.lifecycle import (
    OrderDraft,
    ReceiptAllocation,
    add_partial_payment,
    apply_customer_receipt,
    clear_worker_assignments,
    create_order,
    generate_order_number,
    remove_customer_orders,
    update_order_assignment,
    update_order_status,
)

__all__ = [
    "OrderDraft",
    "ReceiptAllocation",
    "add_partial_payment",
    "apply_customer_receipt",
    "clear_worker_assignments",
    "create_order",
    "generate_order_number",
    "remove_customer_orders",
    "update_order_assignment",
    "update_order_status",
]
