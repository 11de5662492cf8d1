"""Tests for order status transitions."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from food_delivery.core.errors import InvalidStatus, NotFound, StorageUnavailable
from food_delivery.models import User
from food_delivery.services.records import OrderHeader
from food_delivery.services.status import (
    ALLOWED_TRANSITIONS,
    VALID_STATUSES,
    StatusTransitionHandler,
    is_transition_allowed,
    validate_status,
)


async def place_order(gateway, user_id=1) -> int:
    return await gateway.create_order(OrderHeader(
        user_id=user_id,
        restaurant_id=1,
        total_amount=Decimal("100.00"),
        delivery_address="X",
    ))


async def register_chat(gateway, user_id, chat_id):
    async with gateway._session("test user") as session:
        session.add(User(id=user_id, name="Ann", email=f"ann{user_id}@example.com", password="x",
                         telegram_chat_id=chat_id))
        await session.commit()


class TestValidateStatus:

    @pytest.mark.parametrize("status", VALID_STATUSES)
    def test_known_statuses(self, status):
        assert validate_status(status) == status

    @pytest.mark.parametrize("status", ["shipped", "", None, "PENDING", 3])
    def test_unknown_statuses(self, status):
        with pytest.raises(InvalidStatus) as exc_info:
            validate_status(status)

        assert "pending, preparing, delivering, delivered, cancelled" in exc_info.value.message


class TestTransitionTable:

    def test_forward_path(self):
        assert is_transition_allowed("pending", "preparing")
        assert is_transition_allowed("preparing", "delivering")
        assert is_transition_allowed("delivering", "delivered")

    def test_cancel_from_any_open_state(self):
        for status in ("pending", "preparing", "delivering"):
            assert is_transition_allowed(status, "cancelled")

    def test_terminal_states(self):
        assert ALLOWED_TRANSITIONS["delivered"] == frozenset()
        assert not is_transition_allowed("delivered", "pending")
        assert not is_transition_allowed("cancelled", "preparing")

    def test_self_transition(self):
        assert is_transition_allowed("delivered", "delivered")


class TestApply:

    async def test_invalid_status_writes_nothing(self):
        gateway = MagicMock()
        gateway.update_status = AsyncMock()
        handler = StatusTransitionHandler(gateway, MagicMock())

        with pytest.raises(InvalidStatus):
            await handler.apply(1, "shipped")

        gateway.update_status.assert_not_called()

    async def test_any_to_any_by_default(self, gateway, dispatcher):
        order_id = await place_order(gateway)
        handler = StatusTransitionHandler(gateway, dispatcher)

        await handler.apply(order_id, "delivered")
        record = await handler.apply(order_id, "pending")

        assert record.status == "pending"
        assert await gateway.get_order_status(order_id) == "pending"

    async def test_strict_mode_enforces_table(self, gateway, dispatcher):
        order_id = await place_order(gateway)
        handler = StatusTransitionHandler(gateway, dispatcher, enforce_transitions=True)

        with pytest.raises(InvalidStatus):
            await handler.apply(order_id, "delivered")
        assert await gateway.get_order_status(order_id) == "pending"

        record = await handler.apply(order_id, "preparing")
        assert record.status == "preparing"

    async def test_unknown_order(self, gateway, dispatcher):
        handler = StatusTransitionHandler(gateway, dispatcher)

        with pytest.raises(NotFound):
            await handler.apply(999, "preparing")

    async def test_owner_with_chat_is_notified(self, gateway, dispatcher, channel):
        await register_chat(gateway, 21, chat_id=777)
        order_id = await place_order(gateway, user_id=21)
        handler = StatusTransitionHandler(gateway, dispatcher)

        await handler.apply(order_id, "delivering")
        await dispatcher.drain()

        assert len(channel.sent) == 1
        chat_id, text = channel.sent[0]
        assert chat_id == 777
        assert f"#{order_id}" in text
        assert "handed to the courier" in text

    async def test_owner_without_chat_is_not_notified(self, gateway, dispatcher, channel):
        order_id = await place_order(gateway, user_id=22)
        handler = StatusTransitionHandler(gateway, dispatcher)

        await handler.apply(order_id, "preparing")
        await dispatcher.drain()

        assert channel.sent == []


class TestDegraded:

    async def test_cosmetic_success(self, degraded_gateway, dispatcher):
        handler = StatusTransitionHandler(degraded_gateway, dispatcher)

        record = await handler.apply(55, "delivered", allow_cosmetic=True)

        assert record.id == 55
        assert record.status == "delivered"
        assert record.mode == "mock"

    async def test_without_cosmetic_raises(self, degraded_gateway, dispatcher):
        handler = StatusTransitionHandler(degraded_gateway, dispatcher)

        with pytest.raises(StorageUnavailable):
            await handler.apply(55, "delivered")

    async def test_invalid_status_still_rejected(self, degraded_gateway, dispatcher):
        handler = StatusTransitionHandler(degraded_gateway, dispatcher)

        with pytest.raises(InvalidStatus):
            await handler.apply(55, "lost", allow_cosmetic=True)
