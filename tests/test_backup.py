"""
Tests for the Google Sheets backup sink.

No real API calls: the gspread client is replaced with mocks.
"""

import asyncio
import threading

import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from tenacity import wait_none

from rental_billing.config import get_settings
from rental_billing.interchange import BillingSnapshot
from rental_billing.models.bill import (
    Bill,
    BillDetail,
    BillWithDetails,
    DetailType,
    Tenant,
)
from rental_billing.services.backup import BackupConnectionError, BackupError, GoogleSheetsBackup
from rental_billing.services.backup.google_sheets import (
    BILL_COLUMNS,
    DETAIL_COLUMNS,
    TENANT_COLUMNS,
)


def fake_client() -> tuple[MagicMock, dict[str, MagicMock]]:
    sheets: dict[str, MagicMock] = {}

    def get_worksheet(title, columns):
        return sheets.setdefault(title, MagicMock(name=title))

    client = MagicMock()
    client.settings = get_settings().google_sheets
    client.get_worksheet.side_effect = get_worksheet
    return client, sheets


def snapshot() -> BillingSnapshot:
    return BillingSnapshot(
        tenants=[Tenant(room_number="101", name="Alice", rent=Decimal("1000"))],
        bills=[
            BillWithDetails(
                bill=Bill(bill_id=1, room_number="101", month="2025-06", total_amount=Decimal("50")),
                details=[
                    BillDetail(
                        detail_id=1,
                        bill_id=1,
                        type=DetailType.WATER,
                        name="Main Water Meter",
                        previous_reading=Decimal("100"),
                        current_reading=Decimal("110"),
                        usage=Decimal("10"),
                        price_per_unit=Decimal("5"),
                        amount=Decimal("50"),
                    ),
                ],
            ),
        ],
    )


@pytest.fixture(autouse=True)
def google_sheets_env(monkeypatch):
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", "x")
    monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "y")


@pytest.fixture
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(GoogleSheetsBackup._replace_sheet.retry, "wait", wait_none())


class TestGoogleSheetsBackup:
    """Tests for GoogleSheetsBackup."""

    def test_writes_three_sheets(self):
        """Test that each sheet is cleared and rewritten with a header row."""
        client, sheets = fake_client()
        backup = GoogleSheetsBackup(client=client)
        asyncio.run(backup.write_snapshot(snapshot()))

        assert set(sheets) == {"Tenants", "Bills", "BillDetails"}
        for sheet in sheets.values():
            sheet.clear.assert_called_once()

        tenant_rows = sheets["Tenants"].append_rows.call_args.args[0]
        assert tenant_rows == [TENANT_COLUMNS, ["101", "Alice", "1000"]]

        bill_rows = sheets["Bills"].append_rows.call_args.args[0]
        assert bill_rows[0] == BILL_COLUMNS
        assert bill_rows[1][:4] == ["1", "101", "2025-06", "50"]

        detail_rows = sheets["BillDetails"].append_rows.call_args.args[0]
        assert detail_rows[0] == DETAIL_COLUMNS
        assert detail_rows[1] == ["1", "1", "water", "Main Water Meter", "100", "110", "10", "5", "50"]

    def test_empty_values_are_blank_cells(self):
        """Test that unset readings become empty strings."""
        detail = BillDetail(type=DetailType.EXTRA, name="Internet", amount=Decimal("30"))
        row = GoogleSheetsBackup(client=fake_client()[0])._detail_to_row(detail)
        assert row == ["", "", "extra", "Internet", "", "", "", "", "30"]

    def test_api_failure_is_wrapped(self, no_retry_wait):
        """Test that gspread errors surface as BackupError after retries."""
        client, sheets = fake_client()
        failing = MagicMock()
        failing.append_rows.side_effect = RuntimeError("quota exceeded")
        client.get_worksheet.side_effect = None
        client.get_worksheet.return_value = failing

        with pytest.raises(BackupError, match="quota exceeded"):
            asyncio.run(GoogleSheetsBackup(client=client).write_snapshot(snapshot()))
        assert failing.append_rows.call_count == 3

    def test_connection_error_passes_through(self, no_retry_wait):
        """Test that a BackupError subclass isn't wrapped again."""
        client, _ = fake_client()
        client.get_worksheet.side_effect = BackupConnectionError("no credentials")

        with pytest.raises(BackupConnectionError):
            asyncio.run(GoogleSheetsBackup(client=client).write_snapshot(snapshot()))

    def test_failing_sheet_does_not_stall_event_loop(self, no_retry_wait):
        """Test that other coroutines keep running while a sheet call blocks."""
        released = threading.Event()
        waits: list[bool] = []

        def blocked_sheet(title, columns):
            waits.append(released.wait(timeout=2))
            raise RuntimeError("sheet unavailable")

        client, _ = fake_client()
        client.get_worksheet.side_effect = blocked_sheet

        async def scenario():
            backup = asyncio.create_task(GoogleSheetsBackup(client=client).write_snapshot(snapshot()))
            await asyncio.sleep(0.05)
            released.set()
            with pytest.raises(BackupError, match="sheet unavailable"):
                await backup

        asyncio.run(scenario())

        assert waits == [True, True, True]

    def test_name(self):
        assert GoogleSheetsBackup(client=fake_client()[0]).name == "google_sheets"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
