"""
Input Validation

DESIGN DECISION: Commands validate their input before touching state.
A failed validation aborts the whole command, so there is never a partial
change to undo. Every issue carries a message that can be shown to the
user as-is.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from tailorbook.config import get_settings
from tailorbook.models.entities import Account, Customer, OrderStatus, User
from tailorbook.orders.lifecycle import OrderDraft


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate', 'too_short')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one command's input."""

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]


class InputValidationError(Exception):
    """Raised by commands whose input did not validate."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.messages) or "Invalid input")


class InputValidator:
    """
    Validates command input against the current collections.

    Limits such as the minimum password length come from AppSettings.
    """

    def __init__(self, min_password_length: Optional[int] = None):
        self._min_password_length = (
            min_password_length
            if min_password_length is not None
            else get_settings().app.min_password_length
        )

    @staticmethod
    def ensure_valid(result: ValidationResult) -> None:
        """Raise InputValidationError if the result holds any error."""
        if result.has_errors:
            raise InputValidationError(result)

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def _check_identity(
        self,
        name: str,
        username: str,
        users: Sequence[User],
        exclude_id: Optional[str],
    ) -> list[ValidationIssue]:
        issues = []
        if not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Name is required.",
            ))
        if not username.strip():
            issues.append(ValidationIssue(
                field="username",
                issue_type="missing",
                message="Username is required.",
            ))
        elif any(u.username == username.strip() and u.id != exclude_id for u in users):
            issues.append(ValidationIssue(
                field="username",
                issue_type="duplicate",
                message="Username is already in use.",
                suggested_fix="Pick a different username",
            ))
        return issues

    def validate_new_user(
        self,
        name: str,
        username: str,
        users: Sequence[User],
    ) -> ValidationResult:
        return ValidationResult(issues=self._check_identity(name, username, users, None))

    def validate_profile_update(
        self,
        user_id: str,
        name: str,
        username: str,
        users: Sequence[User],
    ) -> ValidationResult:
        """Name and username are required; the username must stay unique."""
        return ValidationResult(issues=self._check_identity(name, username, users, user_id))

    def validate_password_change(
        self,
        new_password: str,
        confirm_password: str,
        current_password: Optional[str] = None,
        require_current: bool = False,
    ) -> ValidationResult:
        issues = []
        if len(new_password) < self._min_password_length:
            issues.append(ValidationIssue(
                field="new_password",
                issue_type="too_short",
                message=f"Password must be at least {self._min_password_length} characters long.",
            ))
        if new_password != confirm_password:
            issues.append(ValidationIssue(
                field="confirm_password",
                issue_type="mismatch",
                message="Passwords do not match.",
            ))
        if require_current and not current_password:
            issues.append(ValidationIssue(
                field="current_password",
                issue_type="missing",
                message="Please enter your current password.",
            ))
        return ValidationResult(issues=issues)

    # -------------------------------------------------------------------------
    # Orders & money
    # -------------------------------------------------------------------------

    def validate_order_draft(
        self,
        draft: OrderDraft,
        customers: Sequence[Customer],
    ) -> ValidationResult:
        issues = []
        if not any(c.id == draft.customer_id for c in customers):
            issues.append(ValidationIssue(
                field="customer_id",
                issue_type="not_found",
                message="Select an existing customer for this order.",
            ))
        if not draft.items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="missing",
                message="Add at least one item to the order.",
            ))
        if draft.total_price < 0:
            issues.append(ValidationIssue(
                field="total_price",
                issue_type="invalid_value",
                message="Total price cannot be negative.",
            ))
        if draft.advance < 0:
            issues.append(ValidationIssue(
                field="advance",
                issue_type="invalid_value",
                message="Advance cannot be negative.",
            ))
        elif draft.advance > draft.total_price:
            issues.append(ValidationIssue(
                field="advance",
                issue_type="suspicious_value",
                message="Advance is more than the order total.",
                severity="warning",
            ))
        return ValidationResult(issues=issues)

    def validate_amount(
        self, amount: Decimal, field: str = "amount", allow_zero: bool = False
    ) -> ValidationResult:
        """Money movements must be a finite number greater than zero (or at least zero)."""
        try:
            value = Decimal(amount) if amount not in (None, "") else None
        except (InvalidOperation, TypeError, ValueError):
            value = None

        issues = []
        if value is None or not value.is_finite():
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_format",
                message="Amount must be a number.",
            ))
        elif value < 0 or (value == 0 and not allow_zero):
            issues.append(ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount cannot be negative." if allow_zero else "Amount must be greater than zero.",
            ))
        return ValidationResult(issues=issues)

    def validate_status(self, status: str) -> ValidationResult:
        issues = []
        if status not in {s.value for s in OrderStatus}:
            issues.append(ValidationIssue(
                field="status",
                issue_type="invalid_value",
                message=f"Unknown order status: {status}",
            ))
        return ValidationResult(issues=issues)

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    def validate_account(self, name: str, accounts: Sequence[Account]) -> ValidationResult:
        """
        Account names must be unique (ignoring case): legacy records are
        matched to accounts by name.
        """
        issues = []
        cleaned = name.strip()
        if not cleaned:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Account name is required.",
            ))
        elif any(a.name.casefold() == cleaned.casefold() for a in accounts):
            issues.append(ValidationIssue(
                field="name",
                issue_type="duplicate",
                message=f"An account named {cleaned} already exists.",
            ))
        return ValidationResult(issues=issues)

    def validate_named_record(self, name: str, field: str = "name") -> ValidationResult:
        issues = []
        if not name or not name.strip():
            issues.append(ValidationIssue(
                field=field,
                issue_type="missing",
                message="Name is required.",
            ))
        return ValidationResult(issues=issues)
