"""Operation logging package."""

from rental_billing.logs.logger import (
    OperationLogger,
    configure_logging,
    create_correlation_id,
)

__all__ = ["OperationLogger", "configure_logging", "create_correlation_id"]
