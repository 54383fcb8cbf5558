"""
Change Notification Bus

In-process fan-out of change events to live subscribers.

DESIGN DECISION: Every subscriber owns a bounded asyncio.Queue.
Publishing awaits each queue in turn until it accepts the event, so:
1. Events on one channel arrive in publish order (FIFO per publisher)
2. Every live subscriber receives every event published while it is
   subscribed
3. A slow subscriber delays the publisher; each wait longer than the
   publish timeout is logged, and cancelling the subscription releases
   the publisher

There is no replay buffer: a subscriber only sees events published
while it is subscribed. Delivery problems are never raised to the
publisher.
"""

import asyncio
from typing import Optional
from uuid import uuid4

import structlog

from rental_billing.config import get_settings
from rental_billing.logs import OperationLogger
from rental_billing.notifications.events import ChangeEvent, NotificationChannel

logger = structlog.get_logger(__name__)

_CLOSED = object()


class Subscription:
    """
    A live event stream for one channel.

    Usage:
        async with bus.subscribe(NotificationChannel.BILL_CHANGED) as sub:
            async for event in sub:
                refresh(event.room_number, event.month)

    Iteration ends once the subscription is cancelled and every event
    already queued has been consumed.
    """

    def __init__(
        self,
        bus: "ChangeNotificationBus",
        channel: NotificationChannel,
        queue_size: int,
    ):
        self.subscriber_id = uuid4().hex[:8]
        self.channel = channel
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        self._bus.unsubscribe(self)
        try:
            # Wakes a consumer blocked on an empty queue
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    async def get(self) -> ChangeEvent:
        """
        Wait for the next event.

        Raises:
            StopAsyncIteration: If the subscription is cancelled and drained
        """
        if self._cancelled and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def get_nowait(self) -> Optional[ChangeEvent]:
        """Next queued event, or None if nothing is waiting."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return None if item is _CLOSED else item

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()

    async def _offer(self, event: ChangeEvent, timeout: float) -> bool:
        if self._cancelled:
            return False
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


class ChangeNotificationBus:
    """
    Five independent channels, any number of subscribers each.

    Usage:
        bus = ChangeNotificationBus()
        sub = bus.subscribe(NotificationChannel.PRICE_CHANGED)
        await bus.publish(PriceChanged())
    """

    def __init__(
        self,
        queue_size: Optional[int] = None,
        publish_timeout: Optional[float] = None,
        operation_logger: Optional[OperationLogger] = None,
    ):
        settings = get_settings().notifications
        self._queue_size = queue_size or settings.subscriber_queue_size
        self._publish_timeout = (
            publish_timeout if publish_timeout is not None
            else settings.publish_timeout_seconds
        )
        self._operation_logger = operation_logger or OperationLogger()
        self._subscribers: dict[NotificationChannel, list[Subscription]] = {
            channel: [] for channel in NotificationChannel
        }

    def subscribe(self, channel: NotificationChannel) -> Subscription:
        """Open a subscription. Only events published from now on are seen."""
        subscription = Subscription(self, channel, self._queue_size)
        self._subscribers[channel].append(subscription)
        logger.debug(
            "subscriber_added",
            channel=channel.value,
            subscriber_id=subscription.subscriber_id,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers[subscription.channel]
        if subscription in subscribers:
            subscribers.remove(subscription)

    def subscriber_count(self, channel: NotificationChannel) -> int:
        return len(self._subscribers[channel])

    async def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every live subscriber of its channel.

        Returns:
            Number of subscribers that received the event
        """
        delivered = 0
        # Copy: a subscriber may cancel while we are awaiting its queue
        for subscription in list(self._subscribers[event.channel]):
            if await self._deliver(subscription, event):
                delivered += 1
        return delivered

    async def _deliver(self, subscription: Subscription, event: ChangeEvent) -> bool:
        # Only cancellation ends the wait; a full queue is waited out
        while not subscription.cancelled:
            if await subscription._offer(event, self._publish_timeout):
                return True
            if not subscription.cancelled:
                self._operation_logger.log_notification_delayed(
                    channel=event.channel.value,
                    subscriber_id=subscription.subscriber_id,
                )
        return False
