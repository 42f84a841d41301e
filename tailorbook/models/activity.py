"""
Activity Models for TailorBook

Significant shop actions are emitted as structured log events.
This provides:
1. Traceability of money movements and deletions in the local log
2. Debugging information when a save or load goes wrong
3. Correlation of everything that happened inside one session

DESIGN DECISION: Activity events go to the structured log only.
They are never written to the backend store and are not a history
that can be replayed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class ActivityEventType(str, Enum):
    """Types of events we log."""
    # Session
    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    LOGIN_FAILED = "login_failed"
    PASSWORD_CHANGED = "password_changed"

    # Sync
    STATE_LOADED = "state_loaded"
    STATE_LOAD_FAILED = "state_load_failed"
    STATE_SAVED = "state_saved"
    SAVE_FAILED = "save_failed"

    # Orders
    ORDER_CREATED = "order_created"
    ORDER_DELETED = "order_deleted"
    STATUS_CHANGED = "status_changed"
    PAYMENT_RECORDED = "payment_recorded"
    RECEIPT_APPLIED = "receipt_applied"

    # People
    CUSTOMER_DELETED = "customer_deleted"
    WORKER_CREATED = "worker_created"
    WORKER_DELETED = "worker_deleted"
    WORKER_PAID = "worker_paid"
    USER_CREATED = "user_created"
    USER_DELETED = "user_deleted"

    # Access
    PERMISSION_DENIED = "permission_denied"


class ActivitySeverity(str, Enum):
    """Severity level for activity events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ActivityEvent(BaseModel):
    """
    A single activity event.

    Every significant action creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    event_type: ActivityEventType = Field(
        ...,
        description="Type of event"
    )
    severity: ActivitySeverity = Field(
        default=ActivitySeverity.INFO,
        description="Event severity"
    )

    # Context - what record is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of record (e.g., 'order', 'customer', 'state')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the record this event relates to"
    )
    actor_id: Optional[str] = Field(
        default=None,
        description="User who triggered the event"
    )

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate events within one session"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


def _money(amount: Decimal) -> str:
    return format(amount, "f")


class ActivityEventBuilder:
    """
    Helper class to build activity events with common patterns.

    Usage:
        event = ActivityEventBuilder.order_created(order, actor_id)
        event = ActivityEventBuilder.save_failed(error, correlation_id)
    """

    @staticmethod
    def user_logged_in(user_id: str, username: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.USER_LOGGED_IN,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description=f"User logged in: {username}",
        )

    @staticmethod
    def user_logged_out(user_id: str, flushed: bool) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.USER_LOGGED_OUT,
            entity_type="user",
            entity_id=user_id,
            actor_id=user_id,
            description="User logged out",
            details={"flushed_pending_changes": flushed},
        )

    @staticmethod
    def login_failed(username: str, reason: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.LOGIN_FAILED,
            severity=ActivitySeverity.WARNING,
            entity_type="user",
            description=f"Login failed for {username}",
            error_message=reason,
        )

    @staticmethod
    def password_changed(actor_id: str, target_id: str) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.PASSWORD_CHANGED,
            entity_type="user",
            entity_id=target_id,
            actor_id=actor_id,
            description="Password changed",
        )

    @staticmethod
    def state_loaded(counts: dict[str, int], correlation_id: Optional[UUID]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.STATE_LOADED,
            entity_type="state",
            correlation_id=correlation_id,
            description=f"Loaded {sum(counts.values())} records",
            details={"counts": counts},
        )

    @staticmethod
    def state_load_failed(error_message: str, correlation_id: Optional[UUID]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.STATE_LOAD_FAILED,
            severity=ActivitySeverity.ERROR,
            entity_type="state",
            correlation_id=correlation_id,
            description="Initial state load failed",
            error_message=error_message,
        )

    @staticmethod
    def state_saved(
        changed: list[str],
        elapsed_ms: float,
        correlation_id: Optional[UUID],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.STATE_SAVED,
            entity_type="state",
            correlation_id=correlation_id,
            description=f"Saved state ({len(changed)} changed collections)",
            details={
                "changed_collections": changed,
                "elapsed_ms": round(elapsed_ms, 2),
            },
        )

    @staticmethod
    def save_failed(error_message: str, correlation_id: Optional[UUID]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.SAVE_FAILED,
            severity=ActivitySeverity.ERROR,
            entity_type="state",
            correlation_id=correlation_id,
            description="Failed to save changes",
            error_message=error_message,
        )

    @staticmethod
    def order_created(
        order_id: str,
        order_number: str,
        total_price: Decimal,
        advance: Decimal,
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ORDER_CREATED,
            entity_type="order",
            entity_id=order_id,
            actor_id=actor_id,
            description=f"Order booked: {order_number}",
            details={
                "order_number": order_number,
                "total_price": _money(total_price),
                "advance": _money(advance),
            },
        )

    @staticmethod
    def order_deleted(order_id: str, actor_id: Optional[str]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.ORDER_DELETED,
            severity=ActivitySeverity.WARNING,
            entity_type="order",
            entity_id=order_id,
            actor_id=actor_id,
            description="Order deleted",
        )

    @staticmethod
    def status_changed(
        order_id: str,
        old_status: str,
        new_status: str,
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.STATUS_CHANGED,
            entity_type="order",
            entity_id=order_id,
            actor_id=actor_id,
            description=f"Status changed: {old_status} -> {new_status}",
            details={"from": old_status, "to": new_status},
        )

    @staticmethod
    def payment_recorded(
        order_id: str,
        amount: Decimal,
        account_id: Optional[str],
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.PAYMENT_RECORDED,
            entity_type="order",
            entity_id=order_id,
            actor_id=actor_id,
            description=f"Payment recorded: {_money(amount)}",
            details={"amount": _money(amount), "account_id": account_id},
        )

    @staticmethod
    def receipt_applied(
        customer_id: str,
        applied: Decimal,
        unapplied: Decimal,
        order_count: int,
        actor_id: Optional[str],
    ) -> ActivityEvent:
        # A remainder is not credited anywhere, so it is logged loudly
        severity = ActivitySeverity.WARNING if unapplied > 0 else ActivitySeverity.INFO
        return ActivityEvent(
            event_type=ActivityEventType.RECEIPT_APPLIED,
            severity=severity,
            entity_type="customer",
            entity_id=customer_id,
            actor_id=actor_id,
            description=f"Receipt applied across {order_count} orders",
            details={
                "applied": _money(applied),
                "unapplied": _money(unapplied),
            },
        )

    @staticmethod
    def customer_deleted(
        customer_id: str,
        removed_orders: int,
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.CUSTOMER_DELETED,
            severity=ActivitySeverity.WARNING,
            entity_type="customer",
            entity_id=customer_id,
            actor_id=actor_id,
            description=f"Customer deleted with {removed_orders} orders",
            details={"removed_orders": removed_orders},
        )

    @staticmethod
    def worker_created(
        worker_id: str,
        name: str,
        username: Optional[str],
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.WORKER_CREATED,
            entity_type="worker",
            entity_id=worker_id,
            actor_id=actor_id,
            description=f"Worker added: {name}",
            details={"login_created": username},
        )

    @staticmethod
    def worker_deleted(
        worker_id: str,
        cleared_assignments: int,
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.WORKER_DELETED,
            severity=ActivitySeverity.WARNING,
            entity_type="worker",
            entity_id=worker_id,
            actor_id=actor_id,
            description=f"Worker deleted, {cleared_assignments} assignments cleared",
            details={"cleared_assignments": cleared_assignments},
        )

    @staticmethod
    def worker_paid(
        worker_id: str,
        amount: Decimal,
        account_id: Optional[str],
        actor_id: Optional[str],
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.WORKER_PAID,
            entity_type="worker",
            entity_id=worker_id,
            actor_id=actor_id,
            description=f"Worker paid: {_money(amount)}",
            details={"amount": _money(amount), "account_id": account_id},
        )

    @staticmethod
    def user_created(user_id: str, username: str, actor_id: Optional[str]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.USER_CREATED,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor_id,
            description=f"User created: {username}",
        )

    @staticmethod
    def user_deleted(user_id: str, actor_id: Optional[str]) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.USER_DELETED,
            severity=ActivitySeverity.WARNING,
            entity_type="user",
            entity_id=user_id,
            actor_id=actor_id,
            description="User deleted",
        )

    @staticmethod
    def permission_denied(
        actor_id: Optional[str],
        permission: str,
        operation: str,
    ) -> ActivityEvent:
        return ActivityEvent(
            event_type=ActivityEventType.PERMISSION_DENIED,
            severity=ActivitySeverity.WARNING,
            actor_id=actor_id,
            description=f"Permission denied: {operation}",
            details={"permission": permission, "operation": operation},
        )
