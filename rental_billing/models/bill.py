"""
Core Data Models for Rental Billing

These models define the persisted shapes of the billing store:
Tenant, Price, Bill, BillDetail and MeterNameConfig.

They are also the interchange format for import/export collaborators,
so field names are stable and every value is serializable.

DESIGN DECISION: We use Pydantic v2 with Decimal money fields.
Float arithmetic on tariffs accumulates error across a cascade,
Decimal keeps every recalculation reproducible.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_WATER_PRICE = Decimal("4.0")
DEFAULT_ELECTRICITY_PRICE = Decimal("1.0")

# Canonical names of the primary meters. These are never customised.
MAIN_WATER_METER = "Main Water Meter"
MAIN_ELECTRICITY_METER = "Main Electricity Meter"
PRIMARY_METER_NAMES = frozenset({MAIN_WATER_METER, MAIN_ELECTRICITY_METER})

# Canonical name prefixes for additional meters, e.g. "Extra Water Meter 2"
EXTRA_WATER_METER_PREFIX = "Extra Water Meter"
EXTRA_ELECTRICITY_METER_PREFIX = "Extra Electricity Meter"

# Scope value for meter name configs that apply to every tenant
GLOBAL_SCOPE = ""

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

# Longest meter or fee name a line item can persist
MAX_DETAIL_NAME_LENGTH = 100


# =============================================================================
# ENUMS
# =============================================================================

class DetailType(str, Enum):
    """
    Line item categories.

    WATER and ELECTRICITY items are metered and priced from the tariff.
    EXTRA items are flat fees and never touched by recalculation.
    """
    WATER = "water"
    ELECTRICITY = "electricity"
    EXTRA = "extra"

    @property
    def is_metered(self) -> bool:
        return self in (DetailType.WATER, DetailType.ELECTRICITY)


class MeterType(str, Enum):
    """Meter categories that carry a tariff."""
    WATER = "water"
    ELECTRICITY = "electricity"


# =============================================================================
# TENANT & PRICE
# =============================================================================

class Tenant(BaseModel):
    """
    A tenant, keyed by room number.

    Rent is a tenant attribute: it is NOT part of a bill's persisted total
    and is only added at presentation time.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    room_number: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Room identifier (unique key)"
    )
    name: str = Field(
        default="",
        max_length=100,
        description="Tenant name"
    )
    rent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Monthly rent"
    )


class Price(BaseModel):
    """
    Global tariff singleton.

    Exactly one logical instance exists. It is created lazily with
    default prices the first time anything needs it.
    """

    water: Decimal = Field(
        default=DEFAULT_WATER_PRICE,
        ge=0,
        description="Water unit price"
    )
    electricity: Decimal = Field(
        default=DEFAULT_ELECTRICITY_PRICE,
        ge=0,
        description="Electricity unit price"
    )
    privacy_keywords: list[str] = Field(
        default_factory=list,
        description="Keywords hidden from room labels on shared output"
    )

    def unit_price_for(self, detail_type: DetailType) -> Optional[Decimal]:
        """Tariff for a metered line item type, None for extras."""
        if detail_type == DetailType.WATER:
            return self.water
        if detail_type == DetailType.ELECTRICITY:
            return self.electricity
        return None


# =============================================================================
# BILL & LINE ITEMS
# =============================================================================

class BillDetail(BaseModel):
    """
    One priced line item of a bill.

    Line items only exist as children of a Bill and are replaced
    wholesale every time the bill is saved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    detail_id: Optional[int] = Field(
        default=None,
        description="Store-assigned identity (None before insert)"
    )
    bill_id: Optional[int] = Field(
        default=None,
        description="Parent bill identity (None before insert)"
    )
    type: DetailType
    name: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DETAIL_NAME_LENGTH,
        description="Canonical meter name or fee name"
    )
    previous_reading: Optional[Decimal] = None
    current_reading: Optional[Decimal] = None
    usage: Optional[Decimal] = None
    price_per_unit: Optional[Decimal] = None
    amount: Decimal = Field(
        ...,
        description="Amount charged for this line item"
    )


class Bill(BaseModel):
    """
    A tenant's bill for one month.

    INVARIANT: at most one Bill per (room_number, month).
    Bills are only created or overwritten through the upsert transaction.
    """

    bill_id: Optional[int] = Field(
        default=None,
        description="Store-assigned identity (None before insert)"
    )
    room_number: str = Field(..., min_length=1)
    month: str = Field(
        ...,
        pattern=MONTH_PATTERN,
        description="Billing month, YYYY-MM"
    )
    total_amount: Decimal = Field(
        ...,
        description="Persisted total (sum of line items, or rent + sum for legacy rows)"
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the bill was first created"
    )

    @property
    def key(self) -> tuple[str, str]:
        return self.room_number, self.month


class BillWithDetails(BaseModel):
    """A bill together with its current line items."""

    bill: Bill
    details: list[BillDetail] = Field(default_factory=list)

    @property
    def details_sum(self) -> Decimal:
        return sum((d.amount for d in self.details), Decimal("0"))


class BillAggregate(BaseModel):
    """
    A bill ready to be written: its key, total and complete set of line items.

    The upsert transaction writes an aggregate as one unit, replacing
    whatever was stored for the same (room_number, month).
    """

    room_number: str = Field(..., min_length=1)
    month: str = Field(..., pattern=MONTH_PATTERN)
    details: list[BillDetail] = Field(default_factory=list)
    total_amount: Decimal

    @property
    def key(self) -> tuple[str, str]:
        return self.room_number, self.month


# =============================================================================
# METER NAMES
# =============================================================================

class MeterNameConfig(BaseModel):
    """
    A custom display name for a canonical meter name.

    Rows are append-only: an update deactivates the previous row and
    inserts a new one. The latest active row wins, and a tenant-scoped
    row takes precedence over a global one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    config_id: Optional[int] = None
    meter_type: MeterType
    default_name: str = Field(..., min_length=1)
    custom_name: str = Field(..., min_length=1)
    scope: str = Field(
        default=GLOBAL_SCOPE,
        description="Room number, or empty string for a global config"
    )
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("scope", mode="before")
    @classmethod
    def normalize_scope(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @property
    def is_global(self) -> bool:
        return self.scope == GLOBAL_SCOPE


def is_primary_meter(name: str) -> bool:
    """Primary meters keep their canonical name."""
    return name in PRIMARY_METER_NAMES


def is_customizable_meter(name: str) -> bool:
    """Any water/electricity meter other than the primary ones."""
    is_meter = "Water Meter" in name or "Electricity Meter" in name
    return is_meter and not is_primary_meter(name)
