"""
Request Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION (this module):
- Type checking
- Required field presence
- Format validation (email, password strength, currency code)
- Runs before authentication, needs no storage

STAGE 2 - INVARIANT VALIDATION (expense_tracker.access):
- Referenced records exist
- Ownership and role checks
- Uniqueness of emails and (name, owner) pairs

WHY TWO STAGES:
1. Separation of concerns (structural vs relational)
2. Better error messages (know exactly what kind of issue)
3. Stage 2 needs storage; stage 1 never does

IMPORTANT: Validation NEVER silently fixes issues beyond normalisation
(trimming, lower-casing emails, upper-casing currency codes).
"""

from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from expense_tracker.errors import AccessControlError


RequestT = TypeVar("RequestT", bound=BaseModel)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'string_too_short', 'value_error')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class RequestValidationError(AccessControlError):
    """The payload did not have the required shape."""

    code = "validation_failed"

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(f"{i.field}: {i.message}" for i in issues))


class RequestValidator:
    """Parses raw payloads into request models."""

    @staticmethod
    def parse(model: Type[RequestT], payload: Optional[dict[str, Any]]) -> RequestT:
        """
        Validate a payload against a request model.

        Raises:
            RequestValidationError: One issue per offending field
        """
        try:
            return model.model_validate(payload or {})
        except ValidationError as e:
            raise RequestValidationError(RequestValidator.to_issues(e)) from e

    @staticmethod
    def to_issues(error: ValidationError) -> list[ValidationIssue]:
        issues = []
        for detail in error.errors():
            field = ".".join(str(part) for part in detail["loc"]) or "body"
            message = detail["msg"]
            # pydantic prefixes custom validator messages
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            issues.append(ValidationIssue(
                field=field,
                issue_type=detail["type"],
                message=message,
            ))
        return issues

    @staticmethod
    def get_user_friendly_summary(error: RequestValidationError) -> str:
        """One line per issue, for showing to an end user."""
        lines = ["Please fix the following:"]
        for issue in error.issues:
            lines.append(f"   • '{issue.field}' {issue.message}")
        return "\n".join(lines)
