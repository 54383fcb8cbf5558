"""
Backup Services Package

Best-effort snapshot sinks that run after a successful save.
"""

from rental_billing.services.backup.google_sheets import (
    GoogleSheetsBackup,
    GoogleSheetsClient,
)
from rental_billing.services.backup.interface import (
    BackupConnectionError,
    BackupError,
    BackupSinkInterface,
)

__all__ = [
    "BackupConnectionError",
    "BackupError",
    "BackupSinkInterface",
    "GoogleSheetsBackup",
    "GoogleSheetsClient",
]
