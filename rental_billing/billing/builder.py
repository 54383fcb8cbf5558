"""
Bill Aggregate Builder

Turns the rows on the editing surface into the line items that get
persisted, and re-prices stored bills for the recalculation cascade.

RULES:
- Every meter row becomes exactly one line item named with its
  CANONICAL meter name. Custom display names are resolved at read
  time and never persisted.
- Every extra fee with a non-blank name becomes one "extra" line item.
  Blank-named fees are dropped.
- Total = sum of line item amounts. Rent is NOT included; it is a
  tenant attribute added only when the total is displayed.
"""

from decimal import Decimal
from typing import Optional

from rental_billing.calculator import derive_usage, parse_decimal
from rental_billing.models.bill import (
    BillAggregate,
    BillDetail,
    BillWithDetails,
    DetailType,
    Price,
)
from rental_billing.models.editing import ExtraFeeRow, MeterRow

ZERO = Decimal("0")


def sum_amounts(details: list[BillDetail]) -> Decimal:
    return sum((d.amount for d in details), ZERO)


class BillAggregateBuilder:
    """
    Builds bill aggregates against one tariff.

    Usage:
        builder = BillAggregateBuilder(price)
        aggregate = builder.build("101", "2025-06", meters, extra_fees)
    """

    def __init__(self, price: Price):
        self._price = price

    def _meter_detail(self, row: MeterRow) -> BillDetail:
        unit_price = self._price.unit_price_for(row.detail_type)
        previous = parse_decimal(row.previous_reading)
        current = parse_decimal(row.current_reading)

        # Incomplete readings are saved as zero usage
        usage = row.usage
        if usage is None:
            usage = derive_usage(previous, current)
        if usage is None:
            usage = ZERO

        amount = row.amount if row.amount is not None else usage * unit_price

        return BillDetail(
            type=row.detail_type,
            name=row.default_name,
            previous_reading=previous,
            current_reading=current,
            usage=usage,
            price_per_unit=unit_price,
            amount=amount,
        )

    def _fee_detail(self, fee: ExtraFeeRow) -> Optional[BillDetail]:
        if not fee.name:
            return None
        amount = parse_decimal(fee.amount)
        return BillDetail(
            type=DetailType.EXTRA,
            name=fee.name,
            amount=amount if amount is not None else ZERO,
        )

    def build(
        self,
        room_number: str,
        month: str,
        meters: list[MeterRow],
        extra_fees: list[ExtraFeeRow],
    ) -> BillAggregate:
        """
        Build the aggregate for one bill.

        Line items keep the input order: meters first, then extra fees.
        """
        details = [self._meter_detail(row) for row in meters]
        for fee in extra_fees:
            detail = self._fee_detail(fee)
            if detail is not None:
                details.append(detail)

        return BillAggregate(
            room_number=room_number,
            month=month,
            details=details,
            total_amount=sum_amounts(details),
        )

    def reprice(self, stored: BillWithDetails) -> BillAggregate:
        """
        Re-price a stored bill against this builder's tariff.

        Metered items get the current unit price and amount = usage x price
        (missing usage counts as 0). Readings, usage and extra items are
        left exactly as stored.
        """
        details = []
        for detail in stored.details:
            if detail.type.is_metered:
                unit_price = self._price.unit_price_for(detail.type)
                usage = detail.usage if detail.usage is not None else ZERO
                detail = detail.model_copy(update={
                    "price_per_unit": unit_price,
                    "amount": usage * unit_price,
                })
            details.append(detail)

        return BillAggregate(
            room_number=stored.bill.room_number,
            month=stored.bill.month,
            details=details,
            total_amount=sum_amounts(details),
        )
