"""
Bill Input Validation

DESIGN DECISION: Validation happens in two distinct stages, and both
run BEFORE any transaction is opened:

STAGE 1 - INPUT VALIDATION:
- Room and month presence/format
- Readings, usage and amounts parse and are non-negative
- Named extra fees carry a usable amount
- Meter and fee names fit a line item
- This catches malformed input from the editing surface

STAGE 2 - AGGREGATE VALIDATION:
- Every built line item has a non-negative amount
- The total matches the sum of line items
- This catches anything the builder could not make consistent

IMPORTANT: Validation NEVER silently fixes issues.
Errors reject the save; warnings are reported alongside it.
"""

import re
from decimal import Decimal
from typing import Optional

from rental_billing.calculator import derive_usage, parse_decimal
from rental_billing.config import get_settings
from rental_billing.models.bill import MAX_DETAIL_NAME_LENGTH, MONTH_PATTERN, BillDetail
from rental_billing.models.editing import ExtraFeeRow, MeterRow, OverrideState
from rental_billing.models.results import ValidationIssue, ValidationResult

_MONTH_RE = re.compile(MONTH_PATTERN)


class BillValidationError(ValueError):
    """Input was rejected before any write."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Validation failed for {result.subject}: {messages}")


class BillValidator:
    """
    Validates bill input and built aggregates.

    Stage 1 runs on the raw editing rows.
    Stage 2 runs on the line items the builder produced.
    """

    def __init__(self, tolerance: Optional[Decimal] = None):
        """
        Args:
            tolerance: Allowed difference between a total and its line items.
                       Defaults to the reconciliation tolerance setting.
        """
        if tolerance is None:
            tolerance = Decimal(str(get_settings().billing.reconciliation_tolerance))
        self._tolerance = tolerance

    def _error(self, field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity="error",
            suggested_fix=fix,
        )

    def _warning(self, field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
        return ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            severity="warning",
            suggested_fix=fix,
        )

    def _validate_key(self, room_number: str, month: str) -> list[ValidationIssue]:
        issues = []
        if not room_number or not room_number.strip():
            issues.append(self._error(
                "room_number", "missing", "Room number is required",
            ))
        if not month or not _MONTH_RE.match(month):
            issues.append(self._error(
                "month", "invalid_format",
                f"Month '{month}' is not in YYYY-MM format",
                "Use a month like 2025-06",
            ))
        return issues

    def _validate_reading(self, field: str, raw: str) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        if not raw or not raw.strip():
            return None, []
        value = parse_decimal(raw)
        if value is None:
            return None, [self._error(
                field, "invalid_format", f"'{raw}' is not a number",
            )]
        if value < 0:
            return value, [self._error(
                field, "negative", f"Reading {value} is negative",
            )]
        return value, []

    def _validate_name(self, field: str, name: str) -> list[ValidationIssue]:
        if len(name) <= MAX_DETAIL_NAME_LENGTH:
            return []
        return [self._error(
            field, "too_long",
            f"Name '{name[:20]}...' is longer than {MAX_DETAIL_NAME_LENGTH} characters",
            "Use a shorter name",
        )]

    def _validate_meter(self, index: int, row: MeterRow) -> list[ValidationIssue]:
        prefix = f"meters[{index}]"
        issues = self._validate_name(f"{prefix}.default_name", row.default_name)

        previous, prev_issues = self._validate_reading(f"{prefix}.previous_reading", row.previous_reading)
        current, curr_issues = self._validate_reading(f"{prefix}.current_reading", row.current_reading)
        issues.extend(prev_issues)
        issues.extend(curr_issues)

        if row.usage is not None and row.usage < 0:
            issues.append(self._error(
                f"{prefix}.usage", "negative", f"{row.default_name}: usage is negative",
            ))
        if row.amount is not None and row.amount < 0:
            issues.append(self._error(
                f"{prefix}.amount", "negative", f"{row.default_name}: amount is negative",
            ))

        if row.override == OverrideState.DERIVED and not prev_issues and not curr_issues:
            if current is not None and derive_usage(previous, current) is None:
                issues.append(self._warning(
                    f"{prefix}.current_reading", "inconsistent",
                    f"{row.default_name}: current reading is below previous reading",
                    "Check the readings or enter usage manually",
                ))
            elif current is None and row.amount is None:
                issues.append(self._warning(
                    f"{prefix}.current_reading", "missing",
                    f"{row.default_name}: no current reading, will be saved as 0",
                ))
        return issues

    def _validate_fee(self, index: int, fee: ExtraFeeRow) -> list[ValidationIssue]:
        prefix = f"extra_fees[{index}]"
        if not fee.name:
            if fee.amount:
                return [ValidationIssue(
                    field=f"{prefix}.name",
                    issue_type="dropped",
                    message="Fee without a name will not be saved",
                    severity="info",
                )]
            return []

        issues = self._validate_name(f"{prefix}.name", fee.name)
        if not fee.amount:
            return issues
        amount = parse_decimal(fee.amount)
        if amount is None:
            issues.append(self._error(
                f"{prefix}.amount", "invalid_format",
                f"{fee.name}: '{fee.amount}' is not a number",
            ))
        elif amount < 0:
            issues.append(self._error(
                f"{prefix}.amount", "negative", f"{fee.name}: amount is negative",
            ))
        return issues

    def validate_input(
        self,
        room_number: str,
        month: str,
        meters: list[MeterRow],
        extra_fees: list[ExtraFeeRow],
    ) -> ValidationResult:
        """
        Stage 1: validate raw editing rows.

        Returns:
            ValidationResult with all issues found
        """
        issues = self._validate_key(room_number, month)
        for index, row in enumerate(meters):
            issues.extend(self._validate_meter(index, row))
        for index, fee in enumerate(extra_fees):
            issues.extend(self._validate_fee(index, fee))

        return ValidationResult(subject=f"bill {room_number}/{month}", issues=issues)

    def validate_details(
        self,
        room_number: str,
        month: str,
        details: list[BillDetail],
        total_amount: Decimal,
        legacy_rent: Optional[Decimal] = None,
    ) -> ValidationResult:
        """
        Stage 2: validate a built aggregate.

        Every amount must be non-negative and the total must equal
        the sum of line items (rent excluded).

        Args:
            legacy_rent: When importing stored bills, also accept the
                         older encoding where the total includes this rent
        """
        issues = self._validate_key(room_number, month)

        for index, detail in enumerate(details):
            if detail.amount < 0:
                issues.append(self._error(
                    f"details[{index}].amount", "negative",
                    f"{detail.name}: amount {detail.amount} is negative",
                ))
            if detail.usage is not None and detail.usage < 0:
                issues.append(self._error(
                    f"details[{index}].usage", "negative",
                    f"{detail.name}: usage {detail.usage} is negative",
                ))

        expected = sum((d.amount for d in details), Decimal("0"))
        accepted = [expected]
        if legacy_rent is not None:
            accepted.append(expected + legacy_rent)
        if total_amount < 0:
            issues.append(self._error(
                "total_amount", "negative", f"Total {total_amount} is negative",
            ))
        elif all(abs(total_amount - value) > self._tolerance for value in accepted):
            issues.append(self._error(
                "total_amount", "inconsistent",
                f"Total {total_amount} doesn't match line items ({expected})",
            ))

        return ValidationResult(subject=f"bill {room_number}/{month}", issues=issues)

    def validate_price(self, water: Decimal, electricity: Decimal) -> ValidationResult:
        """Tariffs must be non-negative."""
        issues = []
        if water < 0:
            issues.append(self._error("water", "negative", "Water price is negative"))
        if electricity < 0:
            issues.append(self._error("electricity", "negative", "Electricity price is negative"))
        return ValidationResult(subject="price", issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate an operator-facing summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append(f"Cannot save {result.subject}:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   - {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)
