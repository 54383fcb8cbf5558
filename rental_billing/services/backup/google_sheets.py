"""
Google Sheets Backup Implementation

DESIGN DECISION: Google Sheets is used as the backup destination because:
1. The landlord can read tenants and bills directly in Sheets
2. No server or database setup required
3. Google keeps the file history for us

TRADEOFFS:
- Every backup rewrites the three worksheets in full (fine for a small
  rental operation)
- No transactions: a failed backup can leave a sheet half written,
  the next successful backup overwrites it
- One-way: the store is never restored from Sheets automatically
"""

import asyncio
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from rental_billing.config import get_settings
from rental_billing.interchange import BillingSnapshot
from rental_billing.models.bill import BillDetail, BillWithDetails, Tenant
from rental_billing.services.backup.interface import (
    BackupConnectionError,
    BackupError,
    BackupSinkInterface,
)


# Column mappings for Tenants sheet
TENANT_COLUMNS = [
    "room_number",
    "name",
    "rent",
]

# Column mappings for Bills sheet
BILL_COLUMNS = [
    "bill_id",
    "room_number",
    "month",
    "total_amount",
    "created_at",
]

# Column mappings for BillDetails sheet
DETAIL_COLUMNS = [
    "detail_id",
    "bill_id",
    "type",
    "name",
    "previous_reading",
    "current_reading",
    "usage",
    "price_per_unit",
    "amount",
]


def _cell(value) -> str:
    return "" if value is None else str(value)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @property
    def settings(self):
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise BackupConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackupConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise BackupConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
        return sheet


class GoogleSheetsBackup(BackupSinkInterface):
    """
    Writes snapshots to three worksheets: tenants, bills, line items.

    Each worksheet holds a header row followed by one row per record.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @property
    def name(self) -> str:
        return "google_sheets"

    def _tenant_to_row(self, tenant: Tenant) -> list:
        return [tenant.room_number, tenant.name, str(tenant.rent)]

    def _bill_to_row(self, stored: BillWithDetails) -> list:
        bill = stored.bill
        return [
            _cell(bill.bill_id),
            bill.room_number,
            bill.month,
            str(bill.total_amount),
            bill.created_at.isoformat(),
        ]

    def _detail_to_row(self, detail: BillDetail) -> list:
        return [
            _cell(detail.detail_id),
            _cell(detail.bill_id),
            detail.type.value,
            detail.name,
            _cell(detail.previous_reading),
            _cell(detail.current_reading),
            _cell(detail.usage),
            _cell(detail.price_per_unit),
            str(detail.amount),
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _replace_sheet(self, title: str, columns: list[str], rows: list[list]) -> None:
        sheet = self._client.get_worksheet(title, columns)
        sheet.clear()
        sheet.append_rows([columns] + rows, value_input_option="RAW")

    async def write_snapshot(self, snapshot: BillingSnapshot) -> None:
        """
        Overwrite the three worksheets with the snapshot.

        gspread is blocking, so each sheet is written from a worker thread
        and retry waits never hold up the event loop.
        """
        settings = self._client.settings
        try:
            await asyncio.to_thread(
                self._replace_sheet,
                settings.tenants_sheet_name,
                TENANT_COLUMNS,
                [self._tenant_to_row(t) for t in snapshot.tenants],
            )
            await asyncio.to_thread(
                self._replace_sheet,
                settings.bills_sheet_name,
                BILL_COLUMNS,
                [self._bill_to_row(b) for b in snapshot.bills],
            )
            await asyncio.to_thread(
                self._replace_sheet,
                settings.details_sheet_name,
                DETAIL_COLUMNS,
                [
                    self._detail_to_row(d)
                    for b in snapshot.bills
                    for d in b.details
                ],
            )
        except BackupError:
            raise
        except Exception as e:
            raise BackupError(f"Failed to write backup: {e}")
