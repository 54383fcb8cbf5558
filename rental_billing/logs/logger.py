"""
Operation Logger

DESIGN DECISION: Every mutation and every read-time repair is logged
as a typed OperationEvent. This provides:
1. Traceability of cascades that only report aggregate completion
2. A record of totals repaired on read
3. Visibility into swallowed side-channel failures (backup, notifications)

The logger:
- Logs locally through structlog, nothing is persisted
- Never raises (a failed log line must not break a save)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from rental_billing.models.operation import (
    OperationEvent,
    OperationEventBuilder,
    OperationSeverity,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog for local JSON logging.

    Call once at startup (create_app_components does this).
    """
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


class OperationLogger:
    """
    Central operation logging service.

    Thin typed layer over structlog so every component reports the
    same event names with the same fields.
    """

    def __init__(self, logger_name: str = "rental_billing.operations"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: OperationEvent) -> None:
        """Log an operation event at a level matching its severity."""
        log_dict = event.to_log_dict()

        try:
            if event.severity in (OperationSeverity.ERROR, OperationSeverity.CRITICAL):
                self._logger.error("operation_event", **log_dict)
            elif event.severity == OperationSeverity.WARNING:
                self._logger.warning("operation_event", **log_dict)
            elif event.severity == OperationSeverity.DEBUG:
                self._logger.debug("operation_event", **log_dict)
            else:
                self._logger.info("operation_event", **log_dict)
        except Exception:
            # Logging must never break the operation being logged
            pass

    def log_bill_saved(
        self,
        room_number: str,
        month: str,
        bill_id: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed bill save."""
        self.log(OperationEventBuilder.bill_saved(
            room_number=room_number,
            month=month,
            bill_id=bill_id,
            total=total,
            correlation_id=correlation_id,
        ))

    def log_save_failed(
        self,
        room_number: str,
        month: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a bill save that was rolled back."""
        self.log(OperationEventBuilder.save_failed(
            room_number=room_number,
            month=month,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_validation_failed(
        self,
        room_number: str,
        month: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log input rejected before a transaction was opened."""
        self.log(OperationEventBuilder.validation_failed(
            room_number=room_number,
            month=month,
            issues=issues,
            correlation_id=correlation_id,
        ))

    def log_recalculation_completed(
        self,
        trigger: str,
        tenants_processed: int,
        bills_updated: int,
        failed_rooms: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log the aggregate outcome of a cascade."""
        self.log(OperationEventBuilder.recalculation_completed(
            trigger=trigger,
            tenants_processed=tenants_processed,
            bills_updated=bills_updated,
            failed_rooms=failed_rooms,
            correlation_id=correlation_id,
        ))

    def log_recalculation_failed(
        self,
        room_number: str,
        error_message: str,
        month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log one tenant (or bill) the cascade had to skip."""
        self.log(OperationEventBuilder.recalculation_failed(
            room_number=room_number,
            error_message=error_message,
            month=month,
            correlation_id=correlation_id,
        ))

    def log_reconciliation_anomaly(
        self,
        room_number: str,
        month: str,
        persisted_total: str,
        details_sum: str,
        rent: str,
    ) -> None:
        """Log a persisted total that matched neither encoding."""
        self.log(OperationEventBuilder.reconciliation_anomaly(
            room_number=room_number,
            month=month,
            persisted_total=persisted_total,
            details_sum=details_sum,
            rent=rent,
        ))

    def log_price_saved(
        self,
        water: str,
        electricity: str,
        changed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(OperationEventBuilder.price_saved(
            water=water,
            electricity=electricity,
            changed=changed,
            correlation_id=correlation_id,
        ))

    def log_rent_changed(
        self,
        room_number: str,
        old_rent: str,
        new_rent: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(OperationEventBuilder.rent_changed(
            room_number=room_number,
            old_rent=old_rent,
            new_rent=new_rent,
            correlation_id=correlation_id,
        ))

    def log_tenant_deleted(self, room_number: str) -> None:
        self.log(OperationEventBuilder.tenant_deleted(room_number))

    def log_backup_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a best-effort backup that gave up."""
        self.log(OperationEventBuilder.backup_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_recalculation_started(
        self,
        trigger: str,
        tenant_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(OperationEventBuilder.recalculation_started(
            trigger=trigger,
            tenant_count=tenant_count,
            correlation_id=correlation_id,
        ))

    def log_privacy_keywords_saved(self, keywords: list[str]) -> None:
        self.log(OperationEventBuilder.privacy_keywords_saved(keywords))

    def log_meter_name_changed(
        self,
        default_name: str,
        custom_name: str,
        scope: str,
    ) -> None:
        self.log(OperationEventBuilder.meter_name_changed(
            default_name=default_name,
            custom_name=custom_name,
            scope=scope,
        ))

    def log_backup_completed(
        self,
        sink: str,
        bill_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(OperationEventBuilder.backup_completed(
            sink=sink,
            bill_count=bill_count,
            correlation_id=correlation_id,
        ))

    def log_notification_delayed(self, channel: str, subscriber_id: str) -> None:
        """Log a publish still waiting on a full subscriber queue."""
        self.log(OperationEventBuilder.notification_delayed(channel, subscriber_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(OperationEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new operator action (e.g., a price change).
    Pass it through all subsequent operations.
    """
    return uuid4()
