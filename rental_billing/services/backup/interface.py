"""
Abstract Backup Interface

DESIGN DECISION: Backups are a side channel. A sink receives a full
snapshot after a successful save; the caller logs and swallows any
failure, so a broken backup never affects the committed save.
"""

from abc import ABC, abstractmethod

from rental_billing.interchange import BillingSnapshot


class BackupSinkInterface(ABC):
    """Destination for store snapshots."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Short label used in logs."""
        pass

    @abstractmethod
    async def write_snapshot(self, snapshot: BillingSnapshot) -> None:
        """
        Replace the backup with this snapshot.

        Raises:
            BackupError: If the snapshot could not be written
        """
        pass


class BackupError(Exception):
    """Base exception for backup operations."""
    pass


class BackupConnectionError(BackupError):
    """Could not reach the backup destination."""
    pass
