"""Change notification package."""

from rental_billing.notifications.bus import ChangeNotificationBus, Subscription
from rental_billing.notifications.events import (
    AnyChangeEvent,
    BillChanged,
    ChangeEvent,
    MeterNameChanged,
    NotificationChannel,
    PriceChanged,
    PrivacyKeywordsChanged,
    TenantChanged,
)

__all__ = [
    "AnyChangeEvent",
    "BillChanged",
    "ChangeEvent",
    "ChangeNotificationBus",
    "MeterNameChanged",
    "NotificationChannel",
    "PriceChanged",
    "PrivacyKeywordsChanged",
    "Subscription",
    "TenantChanged",
]
