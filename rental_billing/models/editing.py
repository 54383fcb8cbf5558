"""
In-Memory Editing Models

These represent the rows an operator edits before a bill is saved.
Raw readings are kept as strings because they come straight from an
input field and may be blank or half-typed.

CRITICAL: Override state is NEVER persisted. Only the resulting
numbers reach storage.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from rental_billing.models.bill import DetailType, MeterType


class OverrideState(str, Enum):
    """
    Which value, if any, the operator has typed in by hand.

    DERIVED       - usage and amount follow the readings
    MANUAL_USAGE  - usage typed in, amount still follows usage x price
    MANUAL_AMOUNT - amount typed in, decoupled from usage and price
    """
    DERIVED = "derived"
    MANUAL_USAGE = "manual_usage"
    MANUAL_AMOUNT = "manual_amount"


class MeterRow(BaseModel):
    """
    One meter on the editing surface.

    `name` is what the operator sees (possibly a custom display name),
    `default_name` is the canonical name that gets persisted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    row_id: str = Field(default_factory=lambda: str(uuid4()))
    meter_type: MeterType
    default_name: str = Field(..., min_length=1)
    name: str = Field(
        default="",
        description="Display name (may be custom, never persisted)"
    )
    is_primary: bool = False
    previous_reading: str = ""
    current_reading: str = ""
    usage: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    override: OverrideState = OverrideState.DERIVED

    @property
    def detail_type(self) -> DetailType:
        return DetailType(self.meter_type.value)

    @property
    def usage_overridden(self) -> bool:
        return self.override == OverrideState.MANUAL_USAGE

    @property
    def amount_overridden(self) -> bool:
        return self.override == OverrideState.MANUAL_AMOUNT


class ExtraFeeRow(BaseModel):
    """A flat fee row. Rows with a blank name are dropped on save."""
    model_config = ConfigDict(str_strip_whitespace=True)

    row_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    amount: str = ""
