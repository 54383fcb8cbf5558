"""
Tests for settings and the operation logger.
"""

import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from structlog.testing import capture_logs

from rental_billing.billing import FormatReconciliationReader
from rental_billing.config import get_settings, validate_all_settings
from rental_billing.logs import OperationLogger, create_correlation_id
from rental_billing.models.bill import Bill, BillDetail, BillWithDetails, DetailType, Tenant
from rental_billing.services.storage import InMemoryBillingStore


@pytest.fixture
def fresh_settings(monkeypatch):
    for name in (
        "BILLING_DEFAULT_WATER_PRICE",
        "BILLING_RECONCILIATION_TOLERANCE",
        "NOTIFY_SUBSCRIBER_QUEUE_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_defaults(self, fresh_settings):
        """Test the documented defaults."""
        settings = get_settings()
        assert settings.billing.default_water_price == 4.0
        assert settings.billing.default_electricity_price == 1.0
        assert settings.billing.reconciliation_tolerance == 0.01
        assert settings.billing.max_privacy_keywords == 10
        assert settings.notifications.subscriber_queue_size == 100

    def test_environment_override(self, fresh_settings, monkeypatch):
        """Test that prefixed environment variables are picked up."""
        monkeypatch.setenv("BILLING_DEFAULT_WATER_PRICE", "6.5")
        monkeypatch.setenv("NOTIFY_SUBSCRIBER_QUEUE_SIZE", "5")
        settings = get_settings()
        assert settings.billing.default_water_price == 6.5
        assert settings.notifications.subscriber_queue_size == 5

    def test_validate_all_settings_reports_bad_section(self, fresh_settings, monkeypatch):
        """Test the startup health check."""
        monkeypatch.setenv("BILLING_RECONCILIATION_TOLERANCE", "-1")
        results = validate_all_settings()
        assert results["billing"] is False
        assert "billing_error" in results
        assert results["notifications"] is True


class TestOperationLogger:
    """Tests for structured operation events."""

    def test_bill_saved_is_logged(self):
        """Test the event name and fields."""
        correlation_id = create_correlation_id()
        with capture_logs() as logs:
            OperationLogger().log_bill_saved(
                room_number="101",
                month="2025-06",
                bill_id=1,
                total="230",
                correlation_id=correlation_id,
            )

        assert len(logs) == 1
        entry = logs[0]
        assert entry["event"] == "operation_event"
        assert entry["log_level"] == "info"
        assert entry["event_type"] == "bill_saved"
        assert entry["correlation_id"] == str(correlation_id)

    def test_anomaly_logged_as_warning(self):
        """Test that a repaired total shows up in the logs."""
        stored = BillWithDetails(
            bill=Bill(room_number="101", month="2025-06", total_amount=Decimal("500")),
            details=[BillDetail(type=DetailType.EXTRA, name="Internet", amount=Decimal("350"))],
        )
        reader = FormatReconciliationReader(InMemoryBillingStore(), tolerance=Decimal("0.01"))

        with capture_logs() as logs:
            reader.reconcile(Tenant(room_number="101", rent=Decimal("1000")), stored)

        assert [e["event_type"] for e in logs] == ["reconciliation_anomaly"]
        assert logs[0]["log_level"] == "warning"
        assert logs[0]["details"]["persisted_total"] == "500"

    def test_logging_failure_is_swallowed(self):
        """Test that a broken log sink never breaks the caller."""
        operation_logger = OperationLogger()
        operation_logger._logger = MagicMock()
        operation_logger._logger.info.side_effect = RuntimeError("sink gone")
        operation_logger.log_tenant_deleted("101")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
