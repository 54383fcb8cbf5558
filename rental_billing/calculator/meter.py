"""
Meter Reading Calculator

Pure derivation of usage and amount for one meter row while it is
being edited.

RULES:
- Editing a reading releases any manual override and re-derives:
  usage = current - previous (previous defaults to 0), amount = usage x price,
  but only when current parses and current >= previous. Otherwise both
  become None, meaning "incomplete input" (distinct from zero).
- Editing usage marks it manual and re-prices it: amount = usage x price.
- Editing amount marks it manual and leaves usage exactly as it is.
- While any override is active, nothing is re-derived from the readings.
  A tariff change re-prices derived rows and manual usage (the usage
  itself stays), and never touches a manual amount.

Every method returns a new MeterRow; rows are never mutated in place.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from rental_billing.models.bill import Price
from rental_billing.models.editing import MeterRow, OverrideState


def parse_decimal(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse a user-typed number.

    Returns None for blank, malformed or non-finite input.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def derive_usage(
    previous_reading: Optional[Decimal],
    current_reading: Optional[Decimal],
) -> Optional[Decimal]:
    """
    Usage between two readings, or None if it can't be derived.

    A missing previous reading counts as 0 (first bill for a new meter).
    """
    if current_reading is None:
        return None
    previous = previous_reading if previous_reading is not None else Decimal("0")
    if current_reading < previous:
        return None
    return current_reading - previous


class MeterReadingCalculator:
    """
    Applies edits to meter rows against the current tariff.

    Usage:
        calc = MeterReadingCalculator(price)
        row = calc.edit_current_reading(row, "110")
    """

    def __init__(self, price: Price):
        self._price = price

    @property
    def price(self) -> Price:
        return self._price

    def unit_price(self, row: MeterRow) -> Decimal:
        return self._price.unit_price_for(row.detail_type)

    def recalculate(self, row: MeterRow) -> MeterRow:
        """
        Re-derive usage and amount from the readings.

        Rows with an active override are returned untouched.
        """
        if row.override != OverrideState.DERIVED:
            return row

        usage = derive_usage(
            parse_decimal(row.previous_reading),
            parse_decimal(row.current_reading),
        )
        if usage is None:
            return row.model_copy(update={"usage": None, "amount": None})

        return row.model_copy(update={
            "usage": usage,
            "amount": usage * self.unit_price(row),
        })

    def edit_previous_reading(self, row: MeterRow, raw: str) -> MeterRow:
        """Set the previous reading, release overrides, re-derive."""
        updated = row.model_copy(update={
            "previous_reading": raw,
            "override": OverrideState.DERIVED,
        })
        return self.recalculate(updated)

    def edit_current_reading(self, row: MeterRow, raw: str) -> MeterRow:
        """Set the current reading, release overrides, re-derive."""
        updated = row.model_copy(update={
            "current_reading": raw,
            "override": OverrideState.DERIVED,
        })
        return self.recalculate(updated)

    def edit_usage(self, row: MeterRow, raw: str) -> MeterRow:
        """
        Override usage by hand.

        The amount stays coupled to the tariff: amount = usage x price.
        Unparsable usage leaves both usage and amount unset.
        """
        usage = parse_decimal(raw)
        amount = usage * self.unit_price(row) if usage is not None else None
        return row.model_copy(update={
            "usage": usage,
            "amount": amount,
            "override": OverrideState.MANUAL_USAGE,
        })

    def edit_amount(self, row: MeterRow, raw: str) -> MeterRow:
        """
        Override the amount by hand (e.g. a negotiated flat charge).

        Usage is left exactly as it is.
        """
        return row.model_copy(update={
            "amount": parse_decimal(raw),
            "override": OverrideState.MANUAL_AMOUNT,
        })

    def apply_price(self, row: MeterRow, price: Price) -> MeterRow:
        """
        Re-price a row after a tariff change.

        Derived rows are re-derived. Manual usage is kept and priced at
        the new tariff. A manual amount is left alone.
        """
        calculator = MeterReadingCalculator(price)
        if row.override == OverrideState.MANUAL_USAGE:
            if row.usage is None:
                return row
            return row.model_copy(update={"amount": row.usage * calculator.unit_price(row)})
        return calculator.recalculate(row)
