"""
Validation and flow result models.

Expected failures (bad input, a store that said no) are returned as
values, never raised, so a screen can always show something.
"""

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class RuleResult(BaseModel):
    """
    Outcome of a single validation rule.

    ``value`` carries the parsed input (a Decimal, a date...) when the
    rule passed, so callers don't parse twice.
    """

    ok: bool
    reason: Optional[str] = None
    value: Any = None

    @classmethod
    def passed(cls, value: Any = None) -> "RuleResult":
        return cls(ok=True, value=value)

    @classmethod
    def failed(cls, reason: str) -> "RuleResult":
        return cls(ok=False, reason=reason)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'mismatch')"
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


class ValidationResult(BaseModel):
    """All issues found while checking one form submission."""

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def messages(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def first_message(self) -> Optional[str]:
        return self.issues[0].message if self.issues else None


class ActionResult(BaseModel, Generic[T]):
    """
    What a flow hands back to a screen.

    ``message`` is always safe to show to the user. ``data`` holds the
    created/updated entity or the fetched rows on success.
    """

    success: bool
    message: str = ""
    data: Optional[T] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: Optional[T] = None, message: str = "") -> "ActionResult[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(
        cls,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ) -> "ActionResult[T]":
        return cls(success=False, message=message, issues=issues or [])
