"""
Tests for the meter reading calculator.
"""

import pytest
from decimal import Decimal

from rental_billing.calculator import MeterReadingCalculator, derive_usage, parse_decimal
from rental_billing.models.bill import MAIN_ELECTRICITY_METER, MAIN_WATER_METER, MeterType, Price
from rental_billing.models.editing import MeterRow, OverrideState


def water_row(**kwargs) -> MeterRow:
    return MeterRow(meter_type=MeterType.WATER, default_name=MAIN_WATER_METER, **kwargs)


@pytest.fixture
def calc() -> MeterReadingCalculator:
    return MeterReadingCalculator(Price(water=Decimal("5"), electricity=Decimal("1.2")))


class TestParsing:
    """Tests for number parsing and usage derivation."""

    def test_parse_decimal(self):
        """Test parsing of typed numbers."""
        assert parse_decimal("110") == Decimal("110")
        assert parse_decimal(" 2.5 ") == Decimal("2.5")

    def test_parse_decimal_rejects_junk(self):
        """Test that blank, malformed and non-finite input gives None."""
        assert parse_decimal("") is None
        assert parse_decimal("   ") is None
        assert parse_decimal(None) is None
        assert parse_decimal("12a") is None
        assert parse_decimal("NaN") is None
        assert parse_decimal("Infinity") is None

    def test_derive_usage(self):
        """Test usage = current - previous."""
        assert derive_usage(Decimal("100"), Decimal("110")) == Decimal("10")
        assert derive_usage(Decimal("100"), Decimal("100")) == Decimal("0")

    def test_derive_usage_missing_previous_counts_as_zero(self):
        """Test that a first reading is all usage."""
        assert derive_usage(None, Decimal("42")) == Decimal("42")

    def test_derive_usage_incomplete(self):
        """Test that a missing or lower current reading can't be derived."""
        assert derive_usage(Decimal("100"), None) is None
        assert derive_usage(Decimal("100"), Decimal("90")) is None


class TestReadingEdits:
    """Tests for edits to previous/current readings."""

    def test_current_reading_derives_usage_and_amount(self, calc):
        """Test the basic derivation."""
        row = calc.edit_previous_reading(water_row(), "100")
        row = calc.edit_current_reading(row, "110")
        assert row.usage == Decimal("10")
        assert row.amount == Decimal("50")
        assert row.override == OverrideState.DERIVED

    def test_electricity_uses_its_own_tariff(self, calc):
        """Test that electricity rows are priced with the electricity tariff."""
        row = MeterRow(
            meter_type=MeterType.ELECTRICITY,
            default_name=MAIN_ELECTRICITY_METER,
            previous_reading="2000",
        )
        row = calc.edit_current_reading(row, "2150")
        assert row.usage == Decimal("150")
        assert row.amount == Decimal("180.0")

    def test_unparsable_current_unsets_values(self, calc):
        """Test that incomplete input is None, not zero."""
        row = calc.edit_current_reading(water_row(previous_reading="100"), "1x0")
        assert row.usage is None
        assert row.amount is None

    def test_current_below_previous_unsets_values(self, calc):
        """Test that a lower current reading is incomplete input."""
        row = calc.edit_current_reading(water_row(previous_reading="100"), "90")
        assert row.usage is None
        assert row.amount is None

    def test_reading_edit_releases_overrides(self, calc):
        """Test that editing a reading clears any manual value."""
        row = water_row(previous_reading="100", current_reading="110")
        row = calc.edit_amount(row, "999")
        assert row.override == OverrideState.MANUAL_AMOUNT

        row = calc.edit_current_reading(row, "112")
        assert row.override == OverrideState.DERIVED
        assert row.usage == Decimal("12")
        assert row.amount == Decimal("60")

    def test_rows_are_not_mutated(self, calc):
        """Test that edits return new rows."""
        original = water_row(previous_reading="100")
        calc.edit_current_reading(original, "110")
        assert original.current_reading == ""
        assert original.usage is None


class TestManualOverrides:
    """Tests for manual usage and amount."""

    def test_manual_usage_stays_price_coupled(self, calc):
        """Test amount = entered usage x price."""
        row = calc.edit_usage(water_row(previous_reading="100", current_reading="110"), "7")
        assert row.override == OverrideState.MANUAL_USAGE
        assert row.usage == Decimal("7")
        assert row.amount == Decimal("35")

    def test_manual_usage_clears_manual_amount(self, calc):
        """Test that a usage edit replaces an amount override."""
        row = calc.edit_amount(water_row(), "80")
        row = calc.edit_usage(row, "3")
        assert row.override == OverrideState.MANUAL_USAGE
        assert row.amount == Decimal("15")

    def test_blank_manual_usage(self, calc):
        """Test that unparsable usage leaves both values unset."""
        row = calc.edit_usage(water_row(), "")
        assert row.usage is None
        assert row.amount is None

    def test_manual_amount_leaves_usage(self, calc):
        """Test that an amount edit is decoupled from usage."""
        row = calc.edit_current_reading(water_row(previous_reading="100"), "110")
        row = calc.edit_amount(row, "20")
        assert row.override == OverrideState.MANUAL_AMOUNT
        assert row.usage == Decimal("10")
        assert row.amount == Decimal("20")

    def test_recalculate_skips_overridden_rows(self, calc):
        """Test that nothing is recomputed behind the operator's back."""
        row = calc.edit_amount(water_row(previous_reading="100", current_reading="110"), "20")
        assert calc.recalculate(row) == row


class TestTariffChange:
    """Tests for re-pricing rows while editing."""

    def test_derived_rows_follow_new_price(self, calc):
        """Test that derived rows are re-priced."""
        row = calc.edit_current_reading(water_row(previous_reading="100"), "110")
        repriced = calc.apply_price(row, Price(water=Decimal("6")))
        assert repriced.amount == Decimal("60")

    def test_manual_usage_follows_new_price(self, calc):
        """Test usage 7 at price 5 becomes 42 at price 6, usage unchanged."""
        row = calc.edit_usage(water_row(previous_reading="100", current_reading="110"), "7")
        assert row.amount == Decimal("35")
        repriced = calc.apply_price(row, Price(water=Decimal("6")))
        assert repriced.override == OverrideState.MANUAL_USAGE
        assert repriced.usage == Decimal("7")
        assert repriced.amount == Decimal("42")

    def test_manual_amount_is_kept(self, calc):
        """Test that a flat charge ignores the tariff."""
        row = calc.edit_amount(water_row(previous_reading="100", current_reading="110"), "20")
        repriced = calc.apply_price(row, Price(water=Decimal("6")))
        assert repriced.amount == Decimal("20")
        assert repriced.usage == Decimal("10")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
