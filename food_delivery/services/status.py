"""
Order Status Transitions

Validates and writes order status changes, then tells the order's owner
through their Telegram chat when they registered one.

By default any status in the allowed set may follow any other (direct
overwrite). With STRICT_STATUS_TRANSITIONS enabled, ``ALLOWED_TRANSITIONS``
is enforced.
"""

import logging
from typing import Any, Optional

from food_delivery.core.errors import InvalidStatus, StorageUnavailable
from food_delivery.models import OrderStatus
from food_delivery.services import fallback
from food_delivery.services.notifications import NotificationDispatcher
from food_delivery.services.persistence import PersistenceGateway
from food_delivery.services.records import OrderStatusRecord

logger = logging.getLogger(__name__)

VALID_STATUSES: tuple[str, ...] = tuple(s.value for s in OrderStatus)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.PENDING.value: frozenset({OrderStatus.PREPARING.value, OrderStatus.CANCELLED.value}),
    OrderStatus.PREPARING.value: frozenset({OrderStatus.DELIVERING.value, OrderStatus.CANCELLED.value}),
    OrderStatus.DELIVERING.value: frozenset({OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}),
    OrderStatus.DELIVERED.value: frozenset(),
    OrderStatus.CANCELLED.value: frozenset(),
}


def validate_status(status: Any) -> str:
    """Return ``status`` if it is one of the five known values."""
    if not isinstance(status, str) or status not in VALID_STATUSES:
        raise InvalidStatus(f"Invalid status. Allowed values: {', '.join(VALID_STATUSES)}")
    return status


def is_transition_allowed(current: str, new: str) -> bool:
    if current == new:
        return True
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


class StatusTransitionHandler:
    """Applies status changes coming from the admin panel and the bot."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: NotificationDispatcher,
        enforce_transitions: bool = False,
    ):
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._enforce_transitions = enforce_transitions

    async def apply(
        self,
        order_id: int,
        status: Optional[str],
        *,
        allow_cosmetic: bool = False,
    ) -> OrderStatusRecord:
        """
        Validate and write a new status.

        Args:
            order_id: Order to update
            status: Requested status
            allow_cosmetic: When the database is down, report success without
                writing anything instead of raising ``StorageUnavailable``

        Raises:
            InvalidStatus: Unknown status, or a forbidden transition in strict mode
            NotFound: No such order
            StorageUnavailable: Database down and ``allow_cosmetic`` is False
        """
        status = validate_status(status)

        try:
            if self._enforce_transitions:
                current = await self._gateway.get_order_status(order_id)
                if not is_transition_allowed(current, status):
                    raise InvalidStatus(f"Cannot change status from '{current}' to '{status}'")
            record = await self._gateway.update_status(order_id, status)
        except StorageUnavailable:
            if not allow_cosmetic:
                raise
            logger.warning(f"Database unavailable, status of order #{order_id} not stored (mock mode)")
            return fallback.status_update(order_id, status)

        await self._notify_owner(record)
        return record

    async def _notify_owner(self, record: OrderStatusRecord) -> None:
        if record.user_id is None:
            return

        try:
            chat_id = await self._gateway.get_user_channel(record.user_id)
        except StorageUnavailable:
            logger.warning(f"Could not look up chat for user {record.user_id}, skipping status message")
            return

        if chat_id:
            self._dispatcher.dispatch_status(chat_id, record.id, record.status)
