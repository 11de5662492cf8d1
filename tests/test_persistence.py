"""Tests for the persistence gateway against in-memory SQLite."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import DBAPIError, OperationalError, ProgrammingError

from food_delivery.core.errors import InvalidRequest, NotFound, StorageError, StorageUnavailable
from food_delivery.models import User
from food_delivery.services.persistence import AvailabilityState, PersistenceGateway
from food_delivery.services.pricing import PricedItem
from food_delivery.services.records import OrderHeader


def make_header(user_id=1, total="1398.00", **overrides) -> OrderHeader:
    fields = dict(
        user_id=user_id,
        restaurant_id=1,
        total_amount=Decimal(total),
        delivery_address="10 Lenin St",
        restaurant_name="The Hungry Boar",
    )
    fields.update(overrides)
    return OrderHeader(**fields)


async def add_user(gateway, user_id, chat_id=None):
    async with gateway._session("test user") as session:
        session.add(User(
            id=user_id,
            name=f"User {user_id}",
            email=f"user{user_id}@example.com",
            password="x",
            telegram_chat_id=chat_id,
        ))
        await session.commit()


class TestAvailabilityState:

    def test_transitions_report_change(self):
        state = AvailabilityState()

        assert state.available is False
        assert state.mark_available() is True
        assert state.mark_available() is False
        assert state.mark_unavailable("boom") is True
        assert state.last_error == "boom"
        assert state.mark_unavailable("boom") is False


class TestConnect:

    async def test_no_url_means_mock_mode(self, degraded_gateway):
        assert await degraded_gateway.connect() is False
        assert degraded_gateway.available is False
        assert degraded_gateway.mode == "mock-mode"

    async def test_connect_creates_tables_and_seeds_catalog(self, gateway):
        assert gateway.available is True
        assert gateway.mode == "connected"

        restaurants = await gateway.list_restaurants()
        assert [r["name"] for r in restaurants] == ["The Hungry Boar"]

        menu = await gateway.get_menu(restaurants[0]["id"])
        assert len(menu) == 5


class TestDegradedOperations:
    """Every operation refuses to run while the database is unavailable."""

    async def test_create_order_raises(self, degraded_gateway):
        with pytest.raises(StorageUnavailable):
            await degraded_gateway.create_order(make_header())

    async def test_reads_raise(self, degraded_gateway):
        with pytest.raises(StorageUnavailable):
            await degraded_gateway.read_composite(1)
        with pytest.raises(StorageUnavailable):
            await degraded_gateway.list_restaurants()
        with pytest.raises(StorageUnavailable):
            await degraded_gateway.user_stats(1)

    async def test_driver_error_becomes_storage_unavailable(self, gateway):
        gone = OperationalError("SELECT", {}, Exception("gone"))
        with patch("sqlalchemy.ext.asyncio.AsyncSession.get", side_effect=gone):
            with pytest.raises(StorageUnavailable):
                await gateway.read_composite(1)

    async def test_invalidated_connection_becomes_storage_unavailable(self, gateway):
        dropped = DBAPIError("SELECT", {}, Exception("reset"), connection_invalidated=True)
        with patch("sqlalchemy.ext.asyncio.AsyncSession.get", side_effect=dropped):
            with pytest.raises(StorageUnavailable):
                await gateway.read_composite(1)


class TestRejectedData:
    """The database is up but refuses the data: no fallback."""

    async def test_constraint_violation_is_invalid_request(self, gateway):
        item = PricedItem(dish_id=None, name="Pizza", unit_price=Decimal("699.00"), quantity=2)

        with pytest.raises(InvalidRequest):
            await gateway.add_line_item(None, item)

        assert gateway.available is True

    async def test_integer_too_large_for_column_is_invalid_request(self, gateway):
        order_id = await gateway.create_order(make_header())
        item = PricedItem(dish_id=None, name="Pizza", unit_price=Decimal("699.00"), quantity=10 ** 20)

        with pytest.raises(InvalidRequest):
            await gateway.add_line_item(order_id, item)

        assert (await gateway.read_composite(order_id)).items == []

    async def test_other_driver_error_is_storage_error(self, gateway):
        broken = ProgrammingError("SELECT", {}, Exception("no such column"))
        with patch("sqlalchemy.ext.asyncio.AsyncSession.get", side_effect=broken):
            with pytest.raises(StorageError):
                await gateway.read_composite(1)

        assert gateway.available is True


class TestProbe:

    async def test_failed_probe_flips_to_unavailable_and_back(self, gateway):
        down = OperationalError("SELECT 1", {}, Exception("down"))
        with patch("sqlalchemy.ext.asyncio.AsyncEngine.connect", side_effect=down):
            assert await gateway.probe_once() is False
        assert gateway.available is False

        with pytest.raises(StorageUnavailable):
            await gateway.list_restaurants()

        assert await gateway.probe_once() is True
        assert gateway.available is True
        assert await gateway.list_restaurants()

    async def test_probe_task_lifecycle(self, gateway):
        gateway.start_probe()
        assert gateway._probe_task is not None

        await gateway.stop_probe()
        assert gateway._probe_task is None


class TestOrders:

    async def test_composite_read(self, gateway):
        order_id = await gateway.create_order(make_header())
        await gateway.add_line_item(order_id, PricedItem(1, "Ribeye Steak", Decimal("1899.00"), 1))
        await gateway.add_line_item(order_id, PricedItem(None, "Mystery", Decimal("10.00"), 2))

        order = await gateway.read_composite(order_id)

        assert order.id == order_id
        assert order.total_amount == Decimal("1398.00")
        assert order.status == "pending"
        assert [i.dish_name for i in order.items] == ["Ribeye Steak", "Mystery"]
        # Line item with a catalog dish gets its description; unknown dish does not
        assert order.items[0].dish_description
        assert order.items[1].dish_description is None
        assert order.order_date is not None

    async def test_order_without_items_has_empty_list(self, gateway):
        order_id = await gateway.create_order(make_header())

        order = await gateway.read_composite(order_id)

        assert order.items == []

    async def test_unknown_order(self, gateway):
        with pytest.raises(NotFound):
            await gateway.read_composite(999)
        with pytest.raises(NotFound):
            await gateway.update_status(999, "preparing")

    async def test_list_orders_for_user(self, gateway):
        first = await gateway.create_order(make_header(user_id=7))
        second = await gateway.create_order(make_header(user_id=7))
        await gateway.create_order(make_header(user_id=8))

        orders = await gateway.list_orders_for_user(7)

        assert {o.id for o in orders} == {first, second}
        assert len(await gateway.list_orders_for_user(7, limit=1)) == 1

    async def test_update_status(self, gateway):
        order_id = await gateway.create_order(make_header(user_id=3))

        record = await gateway.update_status(order_id, "delivering")

        assert record.status == "delivering"
        assert record.user_id == 3
        assert await gateway.get_order_status(order_id) == "delivering"


class TestUsers:

    async def test_user_channel(self, gateway):
        await add_user(gateway, 5, chat_id=555)
        await add_user(gateway, 6)

        assert await gateway.get_user_channel(5) == 555
        assert await gateway.get_user_channel(6) is None
        assert await gateway.get_user_channel(404) is None

    async def test_user_stats(self, gateway):
        delivered = await gateway.create_order(make_header(user_id=9, total="1000.00"))
        await gateway.update_status(delivered, "delivered")
        await gateway.create_order(make_header(user_id=9, total="500.00"))

        stats = await gateway.user_stats(9)

        assert stats["total_orders"] == 2
        assert stats["delivered_orders"] == 1
        assert stats["pending_orders"] == 1
        assert stats["total_spent"] == Decimal("1500.00")
        assert stats["average_order_value"] == 750
        assert stats["favorite_restaurant"] == "The Hungry Boar"

    async def test_stats_without_orders(self, gateway):
        stats = await gateway.user_stats(12345)

        assert stats["total_orders"] == 0
        assert stats["average_order_value"] == 0
        assert stats["favorite_restaurant"] == "No data"


class TestCatalog:

    async def test_get_restaurant(self, gateway):
        restaurant = await gateway.get_restaurant(1)

        assert restaurant["name"] == "The Hungry Boar"
        with pytest.raises(NotFound):
            await gateway.get_restaurant(99)

    async def test_toggle_dish(self, gateway):
        toggled = await gateway.toggle_dish_availability(1)

        assert toggled["is_available"] is False
        assert len(await gateway.get_menu(1)) == 4

        toggled = await gateway.toggle_dish_availability(1)
        assert toggled["is_available"] is True

    async def test_get_dish_includes_restaurant_name(self, gateway):
        dish = await gateway.get_dish(1)

        assert dish["restaurant_name"] == "The Hungry Boar"
        with pytest.raises(NotFound):
            await gateway.get_dish(999)

    async def test_update_dish_is_partial(self, gateway):
        before = await gateway.get_dish(2)

        dish = await gateway.update_dish(2, {"price": Decimal("1350.00"), "unknown": "ignored"})

        assert dish["price"] == Decimal("1350.00")
        assert dish["name"] == before["name"]
        assert dish["description"] == before["description"]

    async def test_create_dish(self, gateway):
        dish = await gateway.create_dish(1, {
            "name": "Borscht",
            "price": Decimal("349.00"),
            "ingredients": ["Beet", "Cabbage"],
            "is_available": False,
        })

        assert dish["restaurant_id"] == 1
        assert dish["price"] == Decimal("349.00")
        assert dish["ingredients"] == ["Beet", "Cabbage"]
        assert dish["is_available"] is True
        assert len(await gateway.get_menu(1)) == 6

    async def test_create_dish_unknown_restaurant(self, gateway):
        with pytest.raises(NotFound):
            await gateway.create_dish(99, {"name": "Borscht", "price": Decimal("349.00")})


class TestClose:

    async def test_close_without_engine(self):
        gateway = PersistenceGateway(None)
        await gateway.close()
