"""
Persistence Gateway

Single owner of the database connection and of the "is the database
reachable" flag. Every read and write the API performs goes through
``PersistenceGateway``; no other module opens a session or looks at the flag.

Availability:
    - decided at startup by ``connect()`` (SELECT 1, create tables, seed)
    - re-checked every ``probe_interval`` seconds by a background task
    - while unavailable every operation raises ``StorageUnavailable``

Driver errors are logged and converted here; callers never see raw database
exceptions. Connection failures become ``StorageUnavailable`` (callers fall
back), data the database rejects becomes ``InvalidRequest`` and anything else
``StorageError``. Unknown ids raise ``NotFound``.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Mapping, Optional

from sqlalchemy import exc, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from food_delivery.core.errors import InvalidRequest, NotFound, ServiceError, StorageError, StorageUnavailable
from food_delivery.database import create_engine_for_url, create_session_maker, init_db, mask_url
from food_delivery.models import Dish, Order, OrderItem, OrderStatus, Restaurant, User
from food_delivery.services import fallback
from food_delivery.services.pricing import PricedItem
from food_delivery.services.records import (
    DEFAULT_CUSTOMER_NAME,
    DEFAULT_CUSTOMER_PHONE,
    DEFAULT_DELIVERY_ADDRESS,
    DEFAULT_PAYMENT_METHOD,
    DEFAULT_RESTAURANT_NAME,
    CompositeItem,
    CompositeOrder,
    OrderHeader,
    OrderStatusRecord,
)

logger = logging.getLogger(__name__)

UPDATABLE_DISH_FIELDS = frozenset({
    "name",
    "description",
    "image_url",
    "price",
    "preparation_time",
    "is_spicy",
    "is_vegetarian",
    "is_available",
})
CREATABLE_DISH_FIELDS = (UPDATABLE_DISH_FIELDS | {"ingredients"}) - {"is_available"}


class AvailabilityState:
    """
    The database-reachable flag.

    Only the gateway holds a reference. Reads and writes happen on the event
    loop thread, so no locking is needed.
    """

    def __init__(self, available: bool = False):
        self._available = available
        self.last_error: Optional[str] = None
        self.last_checked: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self._available

    def mark_available(self) -> bool:
        """Set the flag; returns True if this changed it."""
        changed = not self._available
        self._available = True
        self.last_error = None
        self.last_checked = datetime.now(timezone.utc)
        return changed

    def mark_unavailable(self, reason: str) -> bool:
        changed = self._available
        self._available = False
        self.last_error = reason
        self.last_checked = datetime.now(timezone.utc)
        return changed


class PersistenceGateway:
    """
    Database access with graceful degradation.

    Example:
        >>> gateway = PersistenceGateway("postgresql+psycopg://...")
        >>> await gateway.connect()
        >>> gateway.start_probe()
        >>> order_id = await gateway.create_order(header)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        *,
        probe_interval: float = 30.0,
        echo: bool = False,
        seed_demo_data: bool = True,
        state: Optional[AvailabilityState] = None,
    ):
        self._database_url = database_url
        self._probe_interval = probe_interval
        self._seed_demo_data = seed_demo_data
        self._state = state or AvailabilityState()
        self._initialized = False
        self._probe_task: Optional[asyncio.Task] = None

        if database_url:
            self._engine: Optional[AsyncEngine] = create_engine_for_url(database_url, echo=echo)
            self._session_maker = create_session_maker(self._engine)
        else:
            self._engine = None
            self._session_maker = None

    @property
    def available(self) -> bool:
        return self._state.available

    @property
    def configured(self) -> bool:
        return self._engine is not None

    @property
    def mode(self) -> str:
        return "connected" if self.available else "mock-mode"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def connect(self) -> bool:
        """
        Probe the database once, creating tables on first success.

        Never raises: failure leaves the gateway in mock mode.
        """
        if self._engine is None:
            logger.warning("DATABASE_URL not set, running in mock mode")
            self._state.mark_unavailable("DATABASE_URL not configured")
            return False

        logger.info(f"Connecting to database {mask_url(self._database_url)}")
        return await self.probe_once()

    async def probe_once(self) -> bool:
        """Run the liveness query and update the availability flag."""
        if self._engine is None:
            return False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            if not self._initialized:
                await self._initialize()
        except (SQLAlchemyError, OSError) as e:
            first_check = self._state.last_checked is None
            if self._state.mark_unavailable(str(e)):
                logger.warning(f"Lost database connection, switching to mock mode: {e}")
            elif first_check:
                logger.error(f"Could not connect to database, running in mock mode: {e}")
            else:
                logger.debug(f"Database still unavailable: {e}")
            return False

        if self._state.mark_available():
            logger.info("Database connection established")
        return True

    async def _initialize(self) -> None:
        await init_db(self._engine)
        if self._seed_demo_data:
            async with self._session_maker() as session:
                await self._seed_demo_catalog(session)
        self._initialized = True

    async def _seed_demo_catalog(self, session: AsyncSession) -> None:
        count = await session.scalar(select(func.count(Restaurant.id)))
        if count:
            return

        logger.info("Seeding demo restaurant and menu")
        demo = dict(fallback.DEMO_RESTAURANT)
        demo.pop("id")
        restaurant = Restaurant(**demo, is_active=True)
        session.add(restaurant)
        await session.flush()

        for dish in fallback.DEMO_DISHES:
            fields = {k: v for k, v in dish.items() if k != "id"}
            session.add(Dish(restaurant_id=restaurant.id, is_available=True, **fields))
        await session.commit()

    def start_probe(self) -> None:
        """Start the periodic liveness probe. No-op without a database URL."""
        if self._engine is None or self._probe_task is not None:
            return
        self._probe_task = asyncio.create_task(self._probe_loop(), name="db-liveness-probe")

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self._probe_interval)
            await self.probe_once()

    async def stop_probe(self) -> None:
        if self._probe_task is None:
            return
        self._probe_task.cancel()
        try:
            await self._probe_task
        except asyncio.CancelledError:
            pass
        self._probe_task = None

    async def close(self) -> None:
        await self.stop_probe()
        if self._engine is not None:
            await self._engine.dispose()

    # =========================================================================
    # SESSION HANDLING
    # =========================================================================

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        if not self._state.available or self._session_maker is None:
            raise StorageUnavailable()

        async with self._session_maker() as session:
            try:
                yield session
            except (SQLAlchemyError, OverflowError) as e:
                logger.error(f"Database error during {operation}: {e}")
                try:
                    await session.rollback()
                except SQLAlchemyError as rollback_error:
                    logger.debug(f"Rollback after {operation} failed: {rollback_error}")
                raise _translate_error(e) from e

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def create_order(self, header: OrderHeader) -> int:
        """Insert the order header and return its id."""
        async with self._session("create order") as session:
            order = Order(
                user_id=header.user_id,
                restaurant_id=header.restaurant_id,
                restaurant_name=header.restaurant_name,
                restaurant_image=header.restaurant_image,
                total_amount=header.total_amount,
                status=header.status,
                delivery_address=header.delivery_address,
                payment_method=header.payment_method,
                customer_name=header.customer_name,
                customer_phone=header.customer_phone,
            )
            session.add(order)
            await session.flush()
            order_id = order.id
            await session.commit()

        logger.info(f"Order #{order_id} header stored")
        return order_id

    async def add_line_item(self, order_id: int, item: PricedItem) -> None:
        async with self._session("add line item") as session:
            session.add(OrderItem(
                order_id=order_id,
                dish_id=item.dish_id,
                dish_name=item.name,
                dish_price=item.unit_price,
                quantity=item.quantity,
                dish_image=item.image,
            ))
            await session.commit()

    async def read_composite(self, order_id: int) -> CompositeOrder:
        """Order header + line items. An order without items has ``items == []``."""
        async with self._session("read order") as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise NotFound(f"Order #{order_id} not found")
            composites = await self._load_composites(session, [order])
        return composites[0]

    async def list_orders_for_user(self, user_id: int, limit: int = 50) -> list[CompositeOrder]:
        async with self._session("list user orders") as session:
            result = await session.execute(
                select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.order_date.desc(), Order.id.desc())
                .limit(limit)
            )
            return await self._load_composites(session, list(result.scalars().all()))

    async def list_all_orders(self, limit: int = 50) -> list[CompositeOrder]:
        async with self._session("list orders") as session:
            result = await session.execute(
                select(Order).order_by(Order.order_date.desc(), Order.id.desc()).limit(limit)
            )
            return await self._load_composites(session, list(result.scalars().all()))

    async def get_order_status(self, order_id: int) -> str:
        async with self._session("read order status") as session:
            status = await session.scalar(select(Order.status).where(Order.id == order_id))
        if status is None:
            raise NotFound(f"Order #{order_id} not found")
        return status

    async def update_status(self, order_id: int, status: str) -> OrderStatusRecord:
        """Overwrite the order status. Validation is the caller's job."""
        async with self._session("update order status") as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise NotFound(f"Order #{order_id} not found")
            order.status = status
            await session.commit()
            record = OrderStatusRecord(
                id=order.id,
                status=order.status,
                user_id=order.user_id,
                updated_at=datetime.now(timezone.utc),
            )

        logger.info(f"Order #{order_id} status set to '{status}'")
        return record

    async def _load_composites(
        self,
        session: AsyncSession,
        orders: list[Order],
    ) -> list[CompositeOrder]:
        if not orders:
            return []

        # LEFT JOIN: a deleted or unknown dish must not hide the line item
        result = await session.execute(
            select(OrderItem, Dish.description)
            .outerjoin(Dish, OrderItem.dish_id == Dish.id)
            .where(OrderItem.order_id.in_([o.id for o in orders]))
            .order_by(OrderItem.id)
        )

        items_by_order: dict[int, list[CompositeItem]] = defaultdict(list)
        for item, description in result.all():
            items_by_order[item.order_id].append(CompositeItem(
                dish_id=item.dish_id,
                dish_name=item.dish_name or "Dish",
                dish_price=Decimal(item.dish_price if item.dish_price is not None else 0),
                quantity=item.quantity or 1,
                dish_image=item.dish_image or "",
                dish_description=description,
            ))

        return [
            CompositeOrder(
                id=order.id,
                user_id=order.user_id,
                restaurant_name=order.restaurant_name or DEFAULT_RESTAURANT_NAME,
                restaurant_image=order.restaurant_image or "",
                order_date=order.order_date or datetime.now(timezone.utc),
                total_amount=Decimal(order.total_amount),
                status=order.status or OrderStatus.PENDING.value,
                delivery_address=order.delivery_address or DEFAULT_DELIVERY_ADDRESS,
                payment_method=order.payment_method or DEFAULT_PAYMENT_METHOD,
                customer_name=order.customer_name or DEFAULT_CUSTOMER_NAME,
                customer_phone=order.customer_phone or DEFAULT_CUSTOMER_PHONE,
                items=items_by_order.get(order.id, []),
            )
            for order in orders
        ]

    # =========================================================================
    # USERS
    # =========================================================================

    async def get_user_channel(self, user_id: int) -> Optional[int]:
        """The user's Telegram chat id, if they registered one."""
        async with self._session("read user channel") as session:
            return await session.scalar(
                select(User.telegram_chat_id).where(User.id == user_id)
            )

    async def user_stats(self, user_id: int) -> dict[str, Any]:
        async with self._session("user stats") as session:
            counts = await session.execute(
                select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
                .where(Order.user_id == user_id)
                .group_by(Order.status)
            )
            favorite = await session.execute(
                select(Order.restaurant_name, func.count(Order.id).label("order_count"))
                .where(Order.user_id == user_id)
                .group_by(Order.restaurant_name)
                .order_by(func.count(Order.id).desc(), Order.restaurant_name)
                .limit(1)
            )
            favorite_row = favorite.first()

        by_status: dict[str, int] = {}
        total_orders = 0
        total_spent = Decimal("0.00")
        for status, count, spent in counts.all():
            by_status[status] = count
            total_orders += count
            total_spent += Decimal(str(spent))

        average = round(total_spent / total_orders) if total_orders else 0

        return {
            "total_orders": total_orders,
            "delivered_orders": by_status.get(OrderStatus.DELIVERED.value, 0),
            "pending_orders": by_status.get(OrderStatus.PENDING.value, 0),
            "total_spent": total_spent,
            "average_order_value": int(average),
            "favorite_restaurant": favorite_row[0] if favorite_row and favorite_row[0] else fallback.NO_DATA,
        }

    # =========================================================================
    # CATALOG
    # =========================================================================

    async def list_restaurants(self) -> list[dict[str, Any]]:
        async with self._session("list restaurants") as session:
            result = await session.execute(
                select(Restaurant)
                .where(Restaurant.is_active.is_(True))
                .order_by(Restaurant.rating.desc(), Restaurant.name)
            )
            return [_restaurant_to_dict(r) for r in result.scalars().all()]

    async def get_restaurant(self, restaurant_id: int) -> dict[str, Any]:
        async with self._session("read restaurant") as session:
            restaurant = await session.get(Restaurant, restaurant_id)
            if restaurant is None or not restaurant.is_active:
                raise NotFound(f"Restaurant #{restaurant_id} not found")
            return _restaurant_to_dict(restaurant)

    async def get_menu(self, restaurant_id: int) -> list[dict[str, Any]]:
        async with self._session("read menu") as session:
            result = await session.execute(
                select(Dish)
                .where(Dish.restaurant_id == restaurant_id, Dish.is_available.is_(True))
                .order_by(Dish.name)
            )
            return [_dish_to_dict(d) for d in result.scalars().all()]

    async def get_dish(self, dish_id: int) -> dict[str, Any]:
        async with self._session("read dish") as session:
            row = (await session.execute(
                select(Dish, Restaurant.name)
                .join(Restaurant, Dish.restaurant_id == Restaurant.id)
                .where(Dish.id == dish_id)
            )).first()
        if row is None:
            raise NotFound(f"Dish #{dish_id} not found")
        dish, restaurant_name = row
        return _dish_to_dict(dish, restaurant_name=restaurant_name)

    async def toggle_dish_availability(self, dish_id: int) -> dict[str, Any]:
        async with self._session("toggle dish") as session:
            dish = await session.get(Dish, dish_id)
            if dish is None:
                raise NotFound(f"Dish #{dish_id} not found")
            dish.is_available = not dish.is_available
            await session.commit()
            logger.info(f"Dish #{dish_id} availability -> {dish.is_available}")
            return {"id": dish.id, "name": dish.name, "is_available": dish.is_available}

    async def update_dish(self, dish_id: int, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Apply a partial update. Unknown keys are ignored."""
        changes = {k: v for k, v in fields.items() if k in UPDATABLE_DISH_FIELDS}
        async with self._session("update dish") as session:
            dish = await session.get(Dish, dish_id)
            if dish is None:
                raise NotFound(f"Dish #{dish_id} not found")
            for key, value in changes.items():
                setattr(dish, key, value)
            await session.commit()
            await session.refresh(dish)
            return _dish_to_dict(dish)

    async def create_dish(self, restaurant_id: int, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Add an available dish to a restaurant's menu."""
        values = {k: v for k, v in fields.items() if k in CREATABLE_DISH_FIELDS}
        async with self._session("create dish") as session:
            restaurant = await session.get(Restaurant, restaurant_id)
            if restaurant is None:
                raise NotFound(f"Restaurant #{restaurant_id} not found")
            dish = Dish(restaurant_id=restaurant_id, **values)
            dish.is_available = True
            session.add(dish)
            await session.commit()
            await session.refresh(dish)
            logger.info(f"Dish #{dish.id} '{dish.name}' added to restaurant #{restaurant_id}")
            return _dish_to_dict(dish)


def _translate_error(error: Exception) -> ServiceError:
    """
    Map a driver error onto the error the caller sees.

    Only connection-level failures mean the store is unreachable; data the
    database refuses is the client's fault, anything else is a plain 500.
    """
    if isinstance(error, (exc.IntegrityError, exc.DataError, OverflowError)):
        return InvalidRequest("Request data rejected by the database")
    if isinstance(error, (exc.OperationalError, exc.InterfaceError, exc.DisconnectionError, exc.TimeoutError)):
        return StorageUnavailable()
    if isinstance(error, exc.DBAPIError) and error.connection_invalidated:
        return StorageUnavailable()
    return StorageError()


def _restaurant_to_dict(restaurant: Restaurant) -> dict[str, Any]:
    return {
        "id": restaurant.id,
        "name": restaurant.name,
        "description": restaurant.description,
        "image_url": restaurant.image_url,
        "rating": restaurant.rating,
        "delivery_time": restaurant.delivery_time,
        "delivery_price": restaurant.delivery_price,
        "categories": restaurant.categories or [],
    }


def _dish_to_dict(dish: Dish, restaurant_name: Optional[str] = None) -> dict[str, Any]:
    data = {
        "id": dish.id,
        "restaurant_id": dish.restaurant_id,
        "name": dish.name,
        "description": dish.description,
        "image_url": dish.image_url,
        "price": dish.price,
        "ingredients": dish.ingredients or [],
        "preparation_time": dish.preparation_time,
        "is_vegetarian": dish.is_vegetarian,
        "is_spicy": dish.is_spicy,
        "is_available": dish.is_available,
    }
    if restaurant_name is not None:
        data["restaurant_name"] = restaurant_name
    return data
