"""
Data Models Package

This package contains all Pydantic models used by the rental billing engine.
All data flowing through the system must conform to these schemas.
"""

from rental_billing.models.bill import (
    DEFAULT_ELECTRICITY_PRICE,
    DEFAULT_WATER_PRICE,
    EXTRA_ELECTRICITY_METER_PREFIX,
    EXTRA_WATER_METER_PREFIX,
    GLOBAL_SCOPE,
    MAIN_ELECTRICITY_METER,
    MAIN_WATER_METER,
    Bill,
    BillAggregate,
    BillDetail,
    BillWithDetails,
    DetailType,
    MeterNameConfig,
    MeterType,
    Price,
    Tenant,
    is_customizable_meter,
    is_primary_meter,
)
from rental_billing.models.editing import (
    ExtraFeeRow,
    MeterRow,
    OverrideState,
)
from rental_billing.models.operation import (
    OperationEvent,
    OperationEventBuilder,
    OperationEventType,
    OperationSeverity,
)
from rental_billing.models.results import (
    DisplayTotal,
    RecalculationReport,
    TotalFormat,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Constants
    "DEFAULT_ELECTRICITY_PRICE",
    "DEFAULT_WATER_PRICE",
    "EXTRA_ELECTRICITY_METER_PREFIX",
    "EXTRA_WATER_METER_PREFIX",
    "GLOBAL_SCOPE",
    "MAIN_ELECTRICITY_METER",
    "MAIN_WATER_METER",
    # Persisted models
    "Bill",
    "BillAggregate",
    "BillDetail",
    "BillWithDetails",
    "DetailType",
    "MeterNameConfig",
    "MeterType",
    "Price",
    "Tenant",
    "is_customizable_meter",
    "is_primary_meter",
    # Editing models
    "ExtraFeeRow",
    "MeterRow",
    "OverrideState",
    # Operation events
    "OperationEvent",
    "OperationEventBuilder",
    "OperationEventType",
    "OperationSeverity",
    # Results
    "DisplayTotal",
    "RecalculationReport",
    "TotalFormat",
    "ValidationIssue",
    "ValidationResult",
]
