"""Input validation package."""

from tailorbook.validation.validator import (
    InputValidationError,
    InputValidator,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "InputValidationError",
    "InputValidator",
    "ValidationIssue",
    "ValidationResult",
]
