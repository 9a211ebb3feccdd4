"""Request shape validation package."""

from expense_tracker.validation.requests import (
    CategoryRequest,
    DeleteAccountRequest,
    ExpenseRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
)
from expense_tracker.validation.validator import (
    RequestValidationError,
    RequestValidator,
    ValidationIssue,
)

__all__ = [
    "CategoryRequest",
    "DeleteAccountRequest",
    "ExpenseRequest",
    "LoginRequest",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "RequestValidationError",
    "RequestValidator",
    "ValidationIssue",
]
