"""
Notification Dispatcher

Formats order and status messages and delivers them best-effort.

Rules:
    - a notification never changes the outcome of the request that caused it
    - every send is bounded by a timeout and never retried
    - every failure is logged here and goes no further

The ``dispatch_*`` methods schedule delivery as a background task and return
immediately; the ``notify_*`` methods do the actual (awaited) delivery.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence, Union

from food_delivery.services.notifications.base import BaseNotificationService, ChatId
from food_delivery.services.pricing import format_money, price_items

logger = logging.getLogger(__name__)

STATUS_TEXT = {
    "pending": "accepted for processing",
    "preparing": "being prepared",
    "delivering": "handed to the courier",
    "delivered": "delivered",
    "cancelled": "cancelled",
}


@dataclass
class OrderSummary:
    """
    What the operations chat is told about a new order.

    ``raw_items`` are the items exactly as the client sent them; totals in
    the message are recomputed from them.
    """
    order_id: Union[int, str]
    customer_name: str
    customer_phone: str
    delivery_address: str
    restaurant_name: str
    raw_items: Sequence[Any]


def format_order_message(summary: OrderSummary, now: Optional[datetime] = None) -> str:
    priced = price_items(summary.raw_items)
    now = now or datetime.now()

    lines = [
        f"🆕 NEW ORDER #{summary.order_id}",
        f"👤 Customer: {summary.customer_name}",
        f"📞 Phone: {summary.customer_phone}",
        f"📍 Address: {summary.delivery_address}",
        f"🍽️ Restaurant: {summary.restaurant_name}",
        f"💰 Total: {format_money(priced.total)}",
        f"📦 Items: {priced.item_count} pcs.",
        f"🕐 Time: {now:%Y-%m-%d %H:%M:%S}",
        "",
        "Order contents:",
    ]
    lines.extend(
        f"• {item.name} × {item.quantity} — {format_money(item.subtotal)}"
        for item in priced.items
    )
    return "\n".join(lines)


def format_status_message(order_id: Union[int, str], status: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return (
        f"🔄 The status of your order #{order_id} has changed:\n"
        f"Status: {STATUS_TEXT.get(status, 'updated')}\n"
        f"Time: {now:%Y-%m-%d %H:%M:%S}"
    )


class NotificationDispatcher:
    """Best-effort delivery of order and status messages."""

    def __init__(
        self,
        service: BaseNotificationService,
        operations_chat_id: Optional[ChatId] = None,
        order_timeout: float = 10.0,
        status_timeout: float = 5.0,
    ):
        self._service = service
        self._operations_chat_id = operations_chat_id
        self._order_timeout = order_timeout
        self._status_timeout = status_timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def provider_name(self) -> str:
        return self._service.provider_name

    @property
    def configured(self) -> bool:
        return self._operations_chat_id is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # AWAITED DELIVERY
    # =========================================================================

    async def notify_order(self, summary: OrderSummary) -> bool:
        """Send the new-order message to the operations chat."""
        if self._operations_chat_id is None:
            logger.warning(f"Operations chat not configured, order #{summary.order_id} not announced")
            return False

        try:
            text = format_order_message(summary)
        except Exception as e:
            logger.error(f"Could not format notification for order #{summary.order_id}: {e}", exc_info=True)
            return False

        return await self._deliver(
            self._operations_chat_id,
            text,
            self._order_timeout,
            f"order #{summary.order_id}",
        )

    async def notify_status(self, chat_id: ChatId, order_id: Union[int, str], status: str) -> bool:
        """Tell the customer their order changed status."""
        return await self._deliver(
            chat_id,
            format_status_message(order_id, status),
            self._status_timeout,
            f"status of order #{order_id}",
        )

    async def _deliver(self, chat_id: ChatId, text: str, timeout: float, what: str) -> bool:
        try:
            result = await asyncio.wait_for(
                self._service.send_message(chat_id, text, timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Notification for {what} timed out after {timeout}s")
            return False
        except Exception as e:
            logger.error(f"Notification for {what} failed: {e}", exc_info=True)
            return False

        if not result.success:
            logger.warning(f"Notification for {what} not delivered: {result.error_message}")
            return False

        logger.info(f"✅ Notification for {what} sent via {result.provider}")
        return True

    # =========================================================================
    # FIRE AND FORGET
    # =========================================================================

    def dispatch_order(self, summary: OrderSummary) -> asyncio.Task:
        return self._spawn(self.notify_order(summary), f"notify-order-{summary.order_id}")

    def dispatch_status(self, chat_id: ChatId, order_id: Union[int, str], status: str) -> asyncio.Task:
        return self._spawn(self.notify_status(chat_id, order_id, status), f"notify-status-{order_id}")

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        # Keep a reference until done so the task isn't garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
