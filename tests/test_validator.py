"""
Tests for bill validation.
"""

import pytest
from decimal import Decimal

from rental_billing.models.bill import (
    MAIN_WATER_METER,
    MAX_DETAIL_NAME_LENGTH,
    BillDetail,
    DetailType,
    MeterType,
)
from rental_billing.models.editing import ExtraFeeRow, MeterRow, OverrideState
from rental_billing.validation import BillValidationError, BillValidator


def water_row(**kwargs) -> MeterRow:
    return MeterRow(meter_type=MeterType.WATER, default_name=MAIN_WATER_METER, **kwargs)


@pytest.fixture
def validator() -> BillValidator:
    return BillValidator(tolerance=Decimal("0.01"))


class TestInputValidation:
    """Stage 1: raw editing rows."""

    def test_valid_input(self, validator):
        """Test that complete rows pass."""
        result = validator.validate_input(
            "101", "2025-06",
            [water_row(previous_reading="100", current_reading="110")],
            [ExtraFeeRow(name="Internet", amount="30")],
        )
        assert result.is_valid
        assert result.issues == []

    def test_blank_room_and_bad_month(self, validator):
        """Test that the bill key is checked."""
        result = validator.validate_input("  ", "June", [], [])
        fields = {issue.field for issue in result.issues}
        assert fields == {"room_number", "month"}
        assert result.error_count == 2

    def test_negative_reading(self, validator):
        """Test that a negative reading is an error."""
        result = validator.validate_input(
            "101", "2025-06", [water_row(previous_reading="-5", current_reading="10")], []
        )
        assert result.has_errors
        assert result.issues[0].issue_type == "negative"

    def test_unparsable_reading(self, validator):
        """Test that a malformed reading is an error."""
        result = validator.validate_input(
            "101", "2025-06", [water_row(current_reading="abc")], []
        )
        assert result.has_errors
        assert result.issues[0].issue_type == "invalid_format"

    def test_negative_manual_amount(self, validator):
        """Test that a negative manual amount is rejected."""
        row = water_row(amount=Decimal("-1"), override=OverrideState.MANUAL_AMOUNT)
        result = validator.validate_input("101", "2025-06", [row], [])
        assert result.has_errors

    def test_current_below_previous_warns(self, validator):
        """Test that an inconsistent reading pair only warns."""
        result = validator.validate_input(
            "101", "2025-06", [water_row(previous_reading="110", current_reading="100")], []
        )
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_missing_current_reading_warns(self, validator):
        """Test that a missing reading will be saved as zero."""
        result = validator.validate_input("101", "2025-06", [water_row()], [])
        assert result.is_valid
        assert "saved as 0" in result.warnings[0]

    def test_manual_rows_dont_warn_about_readings(self, validator):
        """Test that manual values make readings optional."""
        row = water_row(usage=Decimal("7"), amount=Decimal("35"), override=OverrideState.MANUAL_USAGE)
        result = validator.validate_input("101", "2025-06", [row], [])
        assert result.issues == []

    def test_extra_fee_checks(self, validator):
        """Test named fee amounts are checked and unnamed fees are reported."""
        result = validator.validate_input(
            "101", "2025-06", [],
            [
                ExtraFeeRow(name="Internet", amount="thirty"),
                ExtraFeeRow(name="Cleaning", amount="-10"),
                ExtraFeeRow(name="", amount="5"),
            ],
        )
        assert result.error_count == 2
        assert [i.severity for i in result.issues] == ["error", "error", "info"]

    def test_overlong_names_rejected(self, validator):
        """Test that a name too long for a line item is a validation error."""
        long_name = "x" * (MAX_DETAIL_NAME_LENGTH + 1)
        result = validator.validate_input(
            "101", "2025-06",
            [MeterRow(meter_type=MeterType.WATER, default_name=long_name)],
            [
                ExtraFeeRow(name=long_name, amount="30"),
                ExtraFeeRow(name="x" * MAX_DETAIL_NAME_LENGTH, amount="5"),
            ],
        )
        errors = [i for i in result.issues if i.severity == "error"]
        assert [(i.field, i.issue_type) for i in errors] == [
            ("meters[0].default_name", "too_long"),
            ("extra_fees[0].name", "too_long"),
        ]


class TestDetailValidation:
    """Stage 2: built line items."""

    def test_negative_line_item_rejected(self, validator):
        """Test that any negative amount fails validation."""
        details = [
            BillDetail(type=DetailType.WATER, name=MAIN_WATER_METER, amount=Decimal("50")),
            BillDetail(type=DetailType.EXTRA, name="Discount", amount=Decimal("-10")),
        ]
        result = validator.validate_details("101", "2025-06", details, Decimal("40"))
        assert result.has_errors
        assert result.issues[0].field == "details[1].amount"

    def test_total_must_match_line_items(self, validator):
        """Test the total consistency check."""
        details = [BillDetail(type=DetailType.EXTRA, name="Internet", amount=Decimal("30"))]
        assert validator.validate_details("101", "2025-06", details, Decimal("30")).is_valid
        assert validator.validate_details("101", "2025-06", details, Decimal("30.005")).is_valid
        assert not validator.validate_details("101", "2025-06", details, Decimal("31")).is_valid

    def test_legacy_rent_inclusive_total(self, validator):
        """Test that imports may keep a rent-inclusive total."""
        details = [BillDetail(type=DetailType.EXTRA, name="Internet", amount=Decimal("350"))]
        result = validator.validate_details(
            "101", "2025-06", details, Decimal("1350"), legacy_rent=Decimal("1000")
        )
        assert result.is_valid

    def test_negative_price(self, validator):
        """Test tariff validation."""
        assert validator.validate_price(Decimal("4"), Decimal("1")).is_valid
        result = validator.validate_price(Decimal("-4"), Decimal("1"))
        assert result.error_count == 1


class TestSummary:
    """Tests for operator-facing messages."""

    def test_error_carries_result(self, validator):
        """Test BillValidationError exposes the result."""
        result = validator.validate_input("", "2025-06", [], [])
        error = BillValidationError(result)
        assert error.result is result
        assert "Room number is required" in str(error)

    def test_user_friendly_summary(self, validator):
        """Test the summary lists errors and warnings."""
        result = validator.validate_input(
            "101", "bad", [water_row(previous_reading="110", current_reading="100")], []
        )
        summary = validator.get_user_friendly_summary(result)
        assert "Cannot save" in summary
        assert "Use a month like 2025-06" in summary
        assert "Please verify" in summary

    def test_summary_all_good(self, validator):
        """Test the summary for clean input."""
        result = validator.validate_input("101", "2025-06", [], [])
        assert validator.get_user_friendly_summary(result) == "All checks passed."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
