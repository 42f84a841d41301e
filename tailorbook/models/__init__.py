"""
Data Models Package

This package contains all Pydantic models used in TailorBook.
Everything loaded from or saved to the backend store goes through these schemas.
"""

from tailorbook.models.common import (
    Money,
    RecordId,
    StoredRecord,
)
from tailorbook.models.entities import (
    COLLECTION_KEYS,
    Account,
    AccountType,
    AssignmentRole,
    Assignments,
    BusinessSettings,
    Customer,
    Expense,
    MeasurementProfile,
    Order,
    OrderItem,
    OrderMeasurement,
    OrderStatus,
    Payment,
    PaymentSource,
    StateSnapshot,
    User,
    Worker,
    WorkerPayment,
    new_record_id,
)
from tailorbook.models.activity import (
    ActivityEvent,
    ActivityEventBuilder,
    ActivityEventType,
    ActivitySeverity,
)

__all__ = [
    # Field types
    "Money",
    "RecordId",
    "StoredRecord",
    # Entity models
    "COLLECTION_KEYS",
    "Account",
    "AccountType",
    "AssignmentRole",
    "Assignments",
    "BusinessSettings",
    "Customer",
    "Expense",
    "MeasurementProfile",
    "Order",
    "OrderItem",
    "OrderMeasurement",
    "OrderStatus",
    "Payment",
    "PaymentSource",
    "StateSnapshot",
    "User",
    "Worker",
    "WorkerPayment",
    "new_record_id",
    # Activity models
    "ActivityEvent",
    "ActivityEventBuilder",
    "ActivityEventType",
    "ActivitySeverity",
]
