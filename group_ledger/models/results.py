"""
Result and Validation Models

Every ledger operation returns an OperationResult instead of raising for
expected business-rule violations. Callers branch on error_kind.

DESIGN DECISION: Rejections are values, not silence.
A non-admin mutation attempt comes back as UNAUTHORIZED; nothing is
quietly skipped.
"""

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Why an operation did not apply."""
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating one operation's input."""

    operation: str = Field(
        ...,
        description="Operation whose input was validated"
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

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
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]

    def error_summary(self) -> str:
        return "; ".join(
            issue.message for issue in self.issues if issue.severity == "error"
        )


class OperationResult(BaseModel, Generic[T]):
    """
    Discriminated result of a ledger operation.

    success=True carries value; success=False carries error_kind and a
    message (plus validation issues for VALIDATION_ERROR).
    """

    success: bool
    value: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls, value: Optional[T] = None) -> "OperationResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def fail(
        cls,
        kind: ErrorKind,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "OperationResult[T]":
        return cls(
            success=False,
            error_kind=kind,
            error_message=message,
            issues=issues or [],
        )

    @classmethod
    def invalid(cls, validation: ValidationResult) -> "OperationResult[T]":
        return cls.fail(
            ErrorKind.VALIDATION_ERROR,
            validation.error_summary() or "Invalid input",
            validation.issues,
        )

    @property
    def is_unauthorized(self) -> bool:
        return self.error_kind == ErrorKind.UNAUTHORIZED
