"""
Operation Event Models for Rental Billing

Every mutation of the billing store, and every anomaly found while
reading it, is described by an OperationEvent. Events go to the
structured local log so a failed cascade or a repaired total can be
traced afterwards.

DESIGN DECISION: Events are logged, never persisted. Bills carry no
history or versioning of their own.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class OperationEventType(str, Enum):
    """
    Types of events we log.

    Each stage of save, recalculation and reconciliation has its own type.
    """
    # Bill persistence
    BILL_SAVED = "bill_saved"
    SAVE_FAILED = "save_failed"
    BILL_VALIDATION_FAILED = "bill_validation_failed"

    # Recalculation cascade
    RECALCULATION_STARTED = "recalculation_started"
    RECALCULATION_COMPLETED = "recalculation_completed"
    RECALCULATION_FAILED = "recalculation_failed"

    # Reads
    RECONCILIATION_ANOMALY = "reconciliation_anomaly"

    # Settings
    PRICE_SAVED = "price_saved"
    RENT_CHANGED = "rent_changed"
    TENANT_DELETED = "tenant_deleted"
    PRIVACY_KEYWORDS_SAVED = "privacy_keywords_saved"
    METER_NAME_CHANGED = "meter_name_changed"

    # Side channels
    BACKUP_COMPLETED = "backup_completed"
    BACKUP_FAILED = "backup_failed"
    NOTIFICATION_DELAYED = "notification_delayed"

    # System events
    SYSTEM_ERROR = "system_error"


class OperationSeverity(str, Enum):
    """Severity level for operation events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class OperationEvent(BaseModel):
    """
    A single operation event.

    Context fields (room, month) are optional because not every event
    concerns a single bill.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: OperationEventType = Field(
        ...,
        description="Type of event"
    )
    severity: OperationSeverity = Field(
        default=OperationSeverity.INFO,
        description="Event severity"
    )

    # Context - which bill is this about?
    room_number: Optional[str] = None
    month: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events in one cascade)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "room_number": self.room_number,
            "month": self.month,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class OperationEventBuilder:
    """
    Helper class to build operation events with common patterns.

    Usage:
        event = OperationEventBuilder.bill_saved("101", "2025-06", 7, "230.00")
        event = OperationEventBuilder.backup_failed("timeout")
    """

    @staticmethod
    def bill_saved(
        room_number: str,
        month: str,
        bill_id: int,
        total: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.BILL_SAVED,
            room_number=room_number,
            month=month,
            correlation_id=correlation_id,
            description=f"Bill saved for {room_number} {month}: {total}",
            details={"bill_id": bill_id, "total": total},
        )

    @staticmethod
    def save_failed(
        room_number: str,
        month: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.SAVE_FAILED,
            severity=OperationSeverity.ERROR,
            room_number=room_number,
            month=month,
            correlation_id=correlation_id,
            description=f"Bill save failed for {room_number} {month}",
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(
        room_number: str,
        month: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.BILL_VALIDATION_FAILED,
            severity=OperationSeverity.WARNING,
            room_number=room_number,
            month=month,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def recalculation_completed(
        trigger: str,
        tenants_processed: int,
        bills_updated: int,
        failed_rooms: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.RECALCULATION_COMPLETED,
            severity=(
                OperationSeverity.WARNING if failed_rooms else OperationSeverity.INFO
            ),
            correlation_id=correlation_id,
            description=(
                f"Recalculation ({trigger}) updated {bills_updated} bills "
                f"across {tenants_processed} tenants"
            ),
            details={
                "trigger": trigger,
                "tenants_processed": tenants_processed,
                "bills_updated": bills_updated,
                "failed_rooms": failed_rooms,
            },
        )

    @staticmethod
    def recalculation_failed(
        room_number: str,
        error_message: str,
        month: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.RECALCULATION_FAILED,
            severity=OperationSeverity.ERROR,
            room_number=room_number,
            month=month,
            correlation_id=correlation_id,
            description=f"Recalculation failed for {room_number}",
            error_message=error_message,
        )

    @staticmethod
    def reconciliation_anomaly(
        room_number: str,
        month: str,
        persisted_total: str,
        details_sum: str,
        rent: str,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.RECONCILIATION_ANOMALY,
            severity=OperationSeverity.WARNING,
            room_number=room_number,
            month=month,
            description=(
                f"Persisted total {persisted_total} matches neither encoding"
            ),
            details={
                "persisted_total": persisted_total,
                "details_sum": details_sum,
                "rent": rent,
            },
        )

    @staticmethod
    def price_saved(
        water: str,
        electricity: str,
        changed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.PRICE_SAVED,
            correlation_id=correlation_id,
            description=f"Price saved: water={water}, electricity={electricity}",
            details={"water": water, "electricity": electricity, "changed": changed},
        )

    @staticmethod
    def rent_changed(
        room_number: str,
        old_rent: str,
        new_rent: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.RENT_CHANGED,
            room_number=room_number,
            correlation_id=correlation_id,
            description=f"Rent for {room_number} changed {old_rent} -> {new_rent}",
            details={"old_rent": old_rent, "new_rent": new_rent},
        )

    @staticmethod
    def tenant_deleted(room_number: str) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.TENANT_DELETED,
            room_number=room_number,
            description=f"Tenant {room_number} and its bills deleted",
        )

    @staticmethod
    def backup_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.BACKUP_FAILED,
            severity=OperationSeverity.ERROR,
            correlation_id=correlation_id,
            description="Automatic backup failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.SYSTEM_ERROR,
            severity=OperationSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def recalculation_started(
        trigger: str,
        tenant_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.RECALCULATION_STARTED,
            correlation_id=correlation_id,
            description=f"Recalculation ({trigger}) started for {tenant_count} tenants",
            details={"trigger": trigger, "tenant_count": tenant_count},
        )

    @staticmethod
    def privacy_keywords_saved(keywords: list[str]) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.PRIVACY_KEYWORDS_SAVED,
            description=f"Saved {len(keywords)} privacy keywords",
            details={"keyword_count": len(keywords)},
        )

    @staticmethod
    def meter_name_changed(
        default_name: str,
        custom_name: str,
        scope: str,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.METER_NAME_CHANGED,
            room_number=scope or None,
            description=f"Meter '{default_name}' now shown as '{custom_name}'",
            details={
                "default_name": default_name,
                "custom_name": custom_name,
                "scope": scope or "global",
            },
        )

    @staticmethod
    def backup_completed(
        sink: str,
        bill_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.BACKUP_COMPLETED,
            correlation_id=correlation_id,
            description=f"Backup to {sink} wrote {bill_count} bills",
            details={"sink": sink, "bill_count": bill_count},
        )

    @staticmethod
    def notification_delayed(channel: str, subscriber_id: str) -> OperationEvent:
        return OperationEvent(
            event_type=OperationEventType.NOTIFICATION_DELAYED,
            severity=OperationSeverity.WARNING,
            description=f"Delivery of a {channel} notification is waiting on a slow subscriber",
            details={"channel": channel, "subscriber_id": subscriber_id},
        )
