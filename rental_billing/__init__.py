"""
Rental Billing - Source Package

Billing consistency and recalculation engine for small rental
operations: metered water/electricity bills per tenant and month.

DESIGN PRINCIPLES:
1. One bill per (room, month), always written atomically
2. Totals exclude rent when written and include it when displayed
3. Tariff and rent changes re-price history deterministically
4. Side channels (notifications, backups) never break a save
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Rental Billing Team"
