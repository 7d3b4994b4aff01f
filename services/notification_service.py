import time
from typing import Callable, Optional

import httpx
from fastapi import BackgroundTasks

from core.enums import NotificationChannel
from schemas.base import CamelModel
from utils.logger import get_logger

logger = get_logger(__name__)


ORDER_PLACED = "order.placed"
ORDER_APPROVED = "order.approved"
ORDER_REJECTED = "order.rejected"
ORDER_ASSIGNED = "order.assigned"
ORDER_DELIVERED = "order.delivered"

FALLBACK_CHANNEL = {
    NotificationChannel.EMAIL: NotificationChannel.SMS,
    NotificationChannel.SMS: NotificationChannel.EMAIL,
    NotificationChannel.PUSH: NotificationChannel.EMAIL,
}


class Notification(CamelModel):
    user_id: str
    type: str
    channel: NotificationChannel
    # Recipient user id; the notification service resolves it to an address or device
    to: str
    message: str
    subject: Optional[str] = None
    title: Optional[str] = None
    correlation_id: Optional[str] = None


def build_notifications(event: str, order, correlation_id: Optional[str] = None) -> list[Notification]:
    """
    Translate an order event into the notifications it should produce.

    Args:
        event: One of the ``order.*`` event names
        order: Order (or anything exposing id/customer_id/vendor_id/courier_id)
        correlation_id: Request id to thread through the notification service

    Returns:
        Notifications to dispatch; empty for events nobody is told about
    """
    order_id = order.id

    def note(user_id, channel, subject, message):
        return Notification(
            user_id=user_id,
            type=event.replace(".", "_"),
            channel=channel,
            to=user_id,
            subject=subject if channel == NotificationChannel.EMAIL else None,
            title=subject if channel == NotificationChannel.PUSH else None,
            message=message,
            correlation_id=correlation_id
        )

    if event == ORDER_PLACED:
        return [
            note(order.customer_id, NotificationChannel.EMAIL, "Order Confirmation",
                 f"Your order #{order_id} has been placed successfully."),
            note(order.vendor_id, NotificationChannel.EMAIL, "New Order Received",
                 f"A new order #{order_id} has been placed."),
        ]
    if event == ORDER_APPROVED:
        return [note(order.customer_id, NotificationChannel.EMAIL, "Order Approved",
                     f"Your order #{order_id} was approved by the vendor.")]
    if event == ORDER_REJECTED:
        return [note(order.customer_id, NotificationChannel.EMAIL, "Order Rejected",
                     f"Your order #{order_id} was rejected by the vendor.")]
    if event == ORDER_ASSIGNED:
        return [
            note(order.courier_id, NotificationChannel.PUSH, "New Order Assigned",
                 f"Order #{order_id} is awaiting pickup."),
            note(order.customer_id, NotificationChannel.EMAIL, "Courier On The Way",
                 f"A courier has picked up your order #{order_id}."),
        ]
    if event == ORDER_DELIVERED:
        return [note(order.customer_id, NotificationChannel.PUSH, "Order Delivered",
                     f"Your order #{order_id} has been delivered.")]
    return []


class NotificationDispatcher:
    """
    Best-effort sender for the notification service.

    Each notification gets ``max_retries`` attempts on its channel with
    linear backoff, then the same again on the fallback channel. Nothing
    here raises: a notification that cannot be delivered is logged and
    dropped.
    """

    def __init__(self, http: httpx.Client, enabled: bool = True, max_retries: int = 3,
                 backoff_seconds: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        self.http = http
        self.enabled = enabled
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def _post(self, notification: Notification):
        response = self.http.post(
            "/notifications",
            json=notification.model_dump(by_alias=True, exclude_none=True, mode="json")
        )
        response.raise_for_status()

    def _try_channel(self, notification: Notification) -> bool:
        for attempt in range(1, self.max_retries + 1):
            try:
                self._post(notification)
                return True
            except httpx.HTTPError as e:
                logger.debug(
                    "Notification attempt failed",
                    extra={
                        "user_id": notification.user_id,
                        "type": notification.type,
                        "channel": notification.channel.value,
                        "attempt": attempt,
                        "error": str(e),
                        "error_type": type(e).__name__
                    }
                )
                if attempt < self.max_retries:
                    self.sleep(self.backoff_seconds * attempt)
        return False

    def send(self, notification: Notification) -> bool:
        if not self.enabled:
            logger.info(
                "[TEST MODE] Notification skipped",
                extra={"user_id": notification.user_id, "type": notification.type}
            )
            return False

        if self._try_channel(notification):
            logger.info(
                "Notification sent successfully",
                extra={
                    "user_id": notification.user_id,
                    "type": notification.type,
                    "channel": notification.channel.value,
                    "correlation_id": notification.correlation_id
                }
            )
            return True

        fallback = FALLBACK_CHANNEL[notification.channel]
        logger.warning(
            f"Retrying with fallback channel {fallback.value}",
            extra={"user_id": notification.user_id, "type": notification.type,
                   "correlation_id": notification.correlation_id}
        )
        if self._try_channel(notification.model_copy(update={"channel": fallback})):
            logger.info(
                "Notification sent on fallback channel",
                extra={"user_id": notification.user_id, "type": notification.type,
                       "channel": fallback.value}
            )
            return True

        logger.warning(
            "Notification delivery failed on all channels",
            extra={
                "user_id": notification.user_id,
                "type": notification.type,
                "correlation_id": notification.correlation_id
            }
        )
        return False


class OrderEventEmitter:
    """
    Request-scoped publisher for order events.

    Called only after the order change has been committed. Dispatch is
    queued on ``BackgroundTasks`` so it runs after the response is sent;
    without background tasks (scripts, some tests) it runs inline. Either
    way a failure is logged and never propagates to the caller.
    """

    def __init__(self, dispatcher: NotificationDispatcher, bg: Optional[BackgroundTasks] = None,
                 correlation_id: Optional[str] = None):
        self.dispatcher = dispatcher
        self.bg = bg
        self.correlation_id = correlation_id

    def emit(self, event: str, order):
        try:
            notifications = build_notifications(event, order, self.correlation_id)
            for notification in notifications:
                if self.bg is not None:
                    self.bg.add_task(self.dispatcher.send, notification)
                else:
                    self.dispatcher.send(notification)

            logger.info(
                "Order event emitted",
                extra={"event": event, "order_id": order.id, "notifications": len(notifications)}
            )
        except Exception as e:
            logger.warning(
                f"Order event emission failed: {str(e)}",
                extra={"event": event, "order_id": getattr(order, "id", None),
                       "error_type": type(e).__name__},
                exc_info=True
            )
