"""Snapshot import/export package."""

from rental_billing.interchange.snapshot import (
    BillingSnapshot,
    ImportSummary,
    export_snapshot,
    import_snapshot,
)

__all__ = ["BillingSnapshot", "ImportSummary", "export_snapshot", "import_snapshot"]
