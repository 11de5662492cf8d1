"""
Order Assembler

Runs one order submission through

    Validate -> Price -> Persist (or mock fallback) -> Notify -> Respond

Validation failures stop the pipeline. Once validation passes the order is
always answered: with the stored order when the database accepted it, or
with a synthesized one when the database is unavailable. The operations
chat is notified in both cases and notification problems never reach the
caller. Data the database refuses is an ``InvalidRequest`` and is not
announced.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from food_delivery.core.errors import InvalidRequest, ServiceError, StorageUnavailable, Unauthorized
from food_delivery.core.security import Identity
from food_delivery.schemas import OrderCreate
from food_delivery.services import fallback
from food_delivery.services.notifications import NotificationDispatcher, OrderSummary
from food_delivery.services.persistence import PersistenceGateway
from food_delivery.services.pricing import PricedOrder, parse_id, price_items
from food_delivery.services.records import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_CUSTOMER_PHONE,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_RESTAURANT_NAME,
    CompositeOrder,
    OrderHeader,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("restaurant_id", "items", "delivery_address")


@dataclass
class OrderCreateResult:
    order: CompositeOrder
    persisted: bool


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return False


class OrderAssembler:
    """
    Turns an ``OrderCreate`` request into a stored (or synthesized) order.

    Example:
        >>> assembler = OrderAssembler(gateway, dispatcher)
        >>> result = await assembler.submit(identity, order_data)
        >>> result.order.total_amount
        Decimal('1398.00')
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: NotificationDispatcher,
        strict_pricing: bool = False,
    ):
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._strict_pricing = strict_pricing

    async def submit(self, identity: Optional[Identity], order_data: OrderCreate) -> OrderCreateResult:
        # Validate
        if identity is None:
            raise Unauthorized("Authorization required")
        self._validate(order_data)

        logger.info(f"🛒 Creating order for user {identity.user_id}")

        # Price
        priced = price_items(order_data.items, strict=self._strict_pricing)
        header = await self._build_header(identity, order_data, priced)

        # Persist or fall back
        try:
            order = await self._persist(header, priced)
            persisted = True
            logger.info(f"Order #{order.id} created ({len(order.items)} items, total {order.total_amount})")
        except StorageUnavailable:
            order = fallback.synthesize_order(header, priced)
            persisted = False
            logger.warning(f"Database unavailable, answering with mock order #{order.id}")

        # Notify, best effort
        self._dispatcher.dispatch_order(OrderSummary(
            order_id=order.id,
            customer_name=header.customer_name,
            customer_phone=header.customer_phone,
            delivery_address=header.delivery_address,
            restaurant_name=header.restaurant_name,
            raw_items=list(order_data.items),
        ))

        return OrderCreateResult(order=order, persisted=persisted)

    def _validate(self, order_data: OrderCreate) -> None:
        missing = [name for name in REQUIRED_FIELDS if _is_blank(getattr(order_data, name))]
        if missing:
            raise InvalidRequest(f"Required fields missing: {', '.join(REQUIRED_FIELDS)}")

    async def _build_header(
        self,
        identity: Identity,
        order_data: OrderCreate,
        priced: PricedOrder,
    ) -> OrderHeader:
        restaurant_id = parse_id(order_data.restaurant_id)
        restaurant_name = order_data.restaurant_name
        restaurant_image = order_data.restaurant_image

        if not restaurant_name and restaurant_id is not None:
            snapshot = await self._restaurant_snapshot(restaurant_id)
            restaurant_name = snapshot.get("name")
            restaurant_image = restaurant_image or snapshot.get("image_url")

        return OrderHeader(
            user_id=identity.user_id,
            restaurant_id=restaurant_id,
            total_amount=priced.total,
            delivery_address=order_data.delivery_address.strip(),
            restaurant_name=restaurant_name or DEFAULT_RESTAURANT_NAME,
            restaurant_image=restaurant_image or "",
            payment_method=order_data.payment_method or DEFAULT_PAYMENT_METHOD,
            customer_name=order_data.customer_name or DEFAULT_CUSTOMER_NAME,
            customer_phone=order_data.customer_phone or DEFAULT_CUSTOMER_PHONE,
        )

    async def _restaurant_snapshot(self, restaurant_id: int) -> dict[str, Any]:
        """Catalog lookup for the name/image snapshot. Never fails the order."""
        try:
            return await self._gateway.get_restaurant(restaurant_id)
        except StorageUnavailable:
            return fallback.restaurant(restaurant_id) or {}
        except ServiceError:
            return {}

    async def _persist(self, header: OrderHeader, priced: PricedOrder) -> CompositeOrder:
        # Header, then items, then re-read. No transaction spans the three
        # steps: a failure after the header leaves an order without items.
        order_id = await self._gateway.create_order(header)
        for item in priced.items:
            await self._gateway.add_line_item(order_id, item)
        return await self._gateway.read_composite(order_id)
