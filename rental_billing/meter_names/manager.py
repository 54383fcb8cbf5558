"""
Meter Name Manager

Maps canonical meter names to custom display names.

RULES:
- The primary meters ("Main Water Meter", "Main Electricity Meter")
  always show their canonical name.
- Only water/electricity meters can be renamed.
- Lookup: latest active tenant-scoped name, then latest active global
  name, then the canonical name.
- Saving appends a new row and deactivates the previous one for the
  same (canonical name, scope). Rows are never hard-deleted.

Custom names are display-only: bills always persist the canonical name.
"""

import re
from typing import Optional

import structlog

from rental_billing.config import get_settings
from rental_billing.logs import OperationLogger
from rental_billing.models.bill import (
    GLOBAL_SCOPE,
    MeterNameConfig,
    MeterType,
    is_customizable_meter,
    is_primary_meter,
)
from rental_billing.models.editing import MeterRow
from rental_billing.notifications import ChangeNotificationBus, MeterNameChanged
from rental_billing.services.storage import BillingStoreInterface

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_WHITESPACE = re.compile(r"\s+")


class MeterNameError(ValueError):
    """A custom meter name that can't be saved."""
    pass


def sanitize_custom_name(name: str) -> str:
    """Strip markup characters and collapse whitespace."""
    return _WHITESPACE.sub(" ", _UNSAFE_CHARS.sub("", name)).strip()


class MeterNameManager:
    """
    Resolves and stores custom meter display names.

    Usage:
        names = MeterNameManager(store, bus)
        await names.save_custom_name("Extra Water Meter 1", "Garden tap",
                                     MeterType.WATER, room_number="101")
        await names.get_display_name("Extra Water Meter 1", "101")
    """

    def __init__(
        self,
        store: BillingStoreInterface,
        bus: ChangeNotificationBus,
        operation_logger: Optional[OperationLogger] = None,
    ):
        self._store = store
        self._bus = bus
        self._operation_logger = operation_logger or OperationLogger()
        self._max_length = get_settings().billing.custom_name_max_length

    def validate_custom_name(self, name: str) -> bool:
        return bool(name.strip()) and len(name) <= self._max_length

    async def get_display_name(self, default_name: str, room_number: str = "") -> str:
        """
        Name to show for a meter.

        Never fails: a lookup error falls back to the canonical name.
        """
        if not default_name.strip() or not is_customizable_meter(default_name):
            return default_name

        try:
            room_number = room_number.strip()
            if room_number:
                custom = await self._store.find_custom_name(default_name, room_number)
                if custom:
                    return custom
            custom = await self._store.find_custom_name(default_name, GLOBAL_SCOPE)
        except Exception as e:
            logger.warning(
                "meter_name_lookup_failed",
                default_name=default_name,
                room_number=room_number,
                error=str(e),
            )
            return default_name

        return custom or default_name

    async def with_display_names(
        self,
        rows: list[MeterRow],
        room_number: str = "",
    ) -> list[MeterRow]:
        """Copies of the rows with `name` set to the current display name."""
        named = []
        for row in rows:
            display = await self.get_display_name(row.default_name, room_number)
            named.append(row.model_copy(update={"name": display}))
        return named

    async def save_custom_name(
        self,
        default_name: str,
        custom_name: str,
        meter_type: MeterType,
        room_number: str = "",
    ) -> str:
        """
        Give a meter a custom display name.

        A name equal to the canonical one resets the meter instead.

        Returns:
            The name that was stored (after sanitizing)

        Raises:
            MeterNameError: If the meter can't be renamed or the name is invalid
        """
        if is_primary_meter(default_name):
            raise MeterNameError(f"'{default_name}' is a primary meter and can't be renamed")
        if not is_customizable_meter(default_name):
            raise MeterNameError(f"'{default_name}' is not a water or electricity meter")
        if not self.validate_custom_name(custom_name):
            raise MeterNameError(
                f"Custom name must be 1 to {self._max_length} characters"
            )

        sanitized = sanitize_custom_name(custom_name)
        if not sanitized:
            raise MeterNameError("Custom name is empty after removing special characters")
        if sanitized == default_name:
            await self.reset_to_default(default_name, room_number)
            return default_name

        scope = room_number.strip()
        async with self._store.transaction() as tx:
            await tx.deactivate_meter_names(default_name, scope)
            await tx.insert_meter_name(MeterNameConfig(
                meter_type=meter_type,
                default_name=default_name,
                custom_name=sanitized,
                scope=scope,
            ))

        self._operation_logger.log_meter_name_changed(default_name, sanitized, scope)
        await self._bus.publish(MeterNameChanged(
            default_name=default_name,
            custom_name=sanitized,
            scope=scope,
        ))
        return sanitized

    async def reset_to_default(self, default_name: str, room_number: str = "") -> int:
        """
        Drop the custom name for (default_name, scope).

        Returns:
            Number of configs deactivated
        """
        scope = room_number.strip()
        async with self._store.transaction() as tx:
            count = await tx.deactivate_meter_names(default_name, scope)

        self._operation_logger.log_meter_name_changed(default_name, default_name, scope)
        await self._bus.publish(MeterNameChanged(
            default_name=default_name,
            custom_name=default_name,
            scope=scope,
        ))
        return count

    async def list_active_configs(
        self,
        room_number: Optional[str] = None,
        meter_type: Optional[MeterType] = None,
    ) -> list[MeterNameConfig]:
        """Active configs, optionally for one scope and/or meter type."""
        return await self._store.list_meter_name_configs(
            scope=room_number,
            meter_type=meter_type,
            active_only=True,
        )
