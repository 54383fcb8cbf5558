"""
Change Notification Events

One typed payload per channel. Subscribers use these only to
invalidate views they loaded independently; events carry keys,
never the changed rows themselves.
"""

from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


class NotificationChannel(str, Enum):
    TENANT_CHANGED = "tenant-changed"
    PRICE_CHANGED = "price-changed"
    PRIVACY_KEYWORDS_CHANGED = "privacy-keywords-changed"
    METER_NAME_CHANGED = "meter-name-changed"
    BILL_CHANGED = "bill-changed"


class ChangeEvent(BaseModel):
    """Base payload. Events are immutable once published."""
    model_config = ConfigDict(frozen=True)

    emitted_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def channel(self) -> NotificationChannel:
        raise NotImplementedError


class TenantChanged(ChangeEvent):
    room_number: str

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.TENANT_CHANGED


class PriceChanged(ChangeEvent):
    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.PRICE_CHANGED


class PrivacyKeywordsChanged(ChangeEvent):
    keywords: tuple[str, ...] = ()

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.PRIVACY_KEYWORDS_CHANGED


class MeterNameChanged(ChangeEvent):
    default_name: str
    custom_name: str
    scope: str = Field(
        default="",
        description="Room number, or empty for a global name"
    )

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.METER_NAME_CHANGED


class BillChanged(ChangeEvent):
    room_number: str
    month: str

    @property
    def channel(self) -> NotificationChannel:
        return NotificationChannel.BILL_CHANGED


AnyChangeEvent = Union[
    TenantChanged,
    PriceChanged,
    PrivacyKeywordsChanged,
    MeterNameChanged,
    BillChanged,
]
