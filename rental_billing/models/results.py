"""
Result Models

Outputs of validation, reconciliation and recalculation.
These are returned to presentation collaborators, never persisted.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'negative', 'invalid_format')"
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
    """
    Result of validating an operation's input.

    Errors block the operation before any transaction is opened.
    Warnings are reported but do not block.
    """

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'bill 101/2025-06')"
    )
    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    issues: list[ValidationIssue] = Field(default_factory=list)

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
    def warnings(self) -> list[str]:
        return [i.message for i in self.issues if i.severity == "warning"]


class TotalFormat(str, Enum):
    """
    Historical encodings of a persisted bill total.

    OLD       - total = sum of line items (current convention for writes)
    NEW       - total = tenant rent + sum of line items (legacy rows)
    ANOMALOUS - matches neither; repaired on read
    """
    OLD = "old"
    NEW = "new"
    ANOMALOUS = "anomalous"


class DisplayTotal(BaseModel):
    """Reconciled total for one bill, ready for presentation."""

    room_number: str
    month: str
    display_total: Decimal = Field(
        ...,
        ge=0,
        description="Rent-inclusive total shown to the operator"
    )
    persisted_total: Decimal
    details_sum: Decimal
    rent: Decimal
    format: TotalFormat


class RecalculationReport(BaseModel):
    """Aggregate outcome of a recalculation cascade."""

    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    tenants_processed: int = 0
    bills_updated: int = 0
    failed_rooms: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_rooms
