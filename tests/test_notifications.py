"""Tests for notification channels and the dispatcher."""

import asyncio
import json
from datetime import datetime

import httpx
import pytest

from food_delivery.services.notifications import (
    BaseNotificationService,
    MockNotificationService,
    NotificationDispatcher,
    NotificationResult,
    OrderSummary,
    TelegramNotificationService,
    build_dispatcher,
    format_order_message,
    format_status_message,
    get_notification_service,
)


def summary(**overrides) -> OrderSummary:
    fields = dict(
        order_id=17,
        customer_name="Ann",
        customer_phone="+7 999",
        delivery_address="10 Lenin St",
        restaurant_name="The Hungry Boar",
        raw_items=[{"dish_name": "Pizza", "dish_price": "699.00", "quantity": 2}],
    )
    fields.update(overrides)
    return OrderSummary(**fields)


class SlowService(BaseNotificationService):
    """Channel that never answers in time."""

    @property
    def provider_name(self) -> str:
        return "slow"

    async def send_message(self, chat_id, text, timeout=None) -> NotificationResult:
        await asyncio.sleep(10)
        return NotificationResult(success=True, provider="slow")

    async def health_check(self) -> bool:
        return True


class TestFormatting:

    def test_order_message(self):
        text = format_order_message(summary(), now=datetime(2024, 5, 1, 12, 30, 0))

        assert text.splitlines()[0] == "🆕 NEW ORDER #17"
        assert "👤 Customer: Ann" in text
        assert "📞 Phone: +7 999" in text
        assert "📍 Address: 10 Lenin St" in text
        assert "🍽️ Restaurant: The Hungry Boar" in text
        assert "💰 Total: 1398" in text
        assert "📦 Items: 2 pcs." in text
        assert "2024-05-01 12:30:00" in text
        assert text.endswith("• Pizza × 2 — 1398")

    def test_order_message_recomputes_from_raw_items(self):
        text = format_order_message(summary(raw_items=[{"price": "abc", "dishPrice": "5", "quantity": "x"}]))

        assert "💰 Total: 5" in text
        assert "• Dish × 1 — 5" in text

    def test_status_message(self):
        text = format_status_message(9, "cancelled", now=datetime(2024, 5, 1, 8, 0, 0))

        assert "#9" in text
        assert "Status: cancelled" in text


class TestTelegramService:

    async def test_send_message_posts_to_bot_api(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 321}})

        service = TelegramNotificationService(
            bot_token="123:abc",
            api_base="https://telegram.test",
            transport=httpx.MockTransport(handler),
        )

        result = await service.send_message(-100, "hello")

        assert result.success is True
        assert result.message_id == "321"
        assert result.provider == "telegram"
        assert str(requests[0].url) == "https://telegram.test/bot123:abc/sendMessage"
        assert json.loads(requests[0].content) == {"chat_id": -100, "text": "hello"}

    async def test_http_error_is_a_failed_result(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(403, json={"ok": False}))
        service = TelegramNotificationService(bot_token="t", transport=transport)

        result = await service.send_message(1, "hi")

        assert result.success is False
        assert result.error_message == "HTTP 403"

    async def test_timeout_is_a_failed_result(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        service = TelegramNotificationService(bot_token="t", transport=httpx.MockTransport(handler))

        result = await service.send_message(1, "hi")

        assert result.success is False
        assert result.error_message == "Timed out"

    async def test_network_error_is_a_failed_result(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        service = TelegramNotificationService(bot_token="t", transport=httpx.MockTransport(handler))

        result = await service.send_message(1, "hi")

        assert result.success is False

    async def test_missing_token(self):
        service = TelegramNotificationService(bot_token=None)

        result = await service.send_message(1, "hi")

        assert result.success is False
        assert await service.health_check() is False

    async def test_health_check(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))
        service = TelegramNotificationService(bot_token="t", transport=transport)

        assert await service.health_check() is True


class TestDispatcher:

    async def test_order_goes_to_operations_chat(self, dispatcher, channel):
        assert await dispatcher.notify_order(summary()) is True

        chat_id, text = channel.sent[0]
        assert chat_id == -100123
        assert "NEW ORDER #17" in text

    async def test_no_operations_chat(self, channel):
        dispatcher = NotificationDispatcher(channel)

        assert await dispatcher.notify_order(summary()) is False
        assert channel.sent == []

    async def test_timeout_is_swallowed(self):
        dispatcher = NotificationDispatcher(SlowService(), operations_chat_id=1, order_timeout=0.05)

        assert await dispatcher.notify_order(summary()) is False

    async def test_failed_delivery_reported_as_false(self):
        service = MockNotificationService(failure_rate=1.0, max_latency=0)
        dispatcher = NotificationDispatcher(service, operations_chat_id=1)

        assert await dispatcher.notify_status(5, 1, "preparing") is False

    async def test_dispatch_is_fire_and_forget(self, dispatcher, channel):
        task = dispatcher.dispatch_order(summary())

        assert dispatcher.pending == 1
        await dispatcher.drain()

        assert task.done()
        assert task.result() is True
        assert dispatcher.pending == 0
        assert len(channel.sent) == 1

    async def test_dispatch_status(self, dispatcher, channel):
        dispatcher.dispatch_status(555, 8, "delivered")
        await dispatcher.drain()

        assert channel.sent[0][0] == 555


class TestFactory:

    def test_development_uses_mock(self):
        assert isinstance(get_notification_service(), MockNotificationService)

    def test_production_uses_telegram(self, monkeypatch):
        from food_delivery.core.config import get_settings

        monkeypatch.setenv("ENV_MODE", "production")
        get_settings.cache_clear()

        assert isinstance(get_notification_service(), TelegramNotificationService)

    def test_build_dispatcher_reads_settings(self, monkeypatch):
        from food_delivery.core.config import get_settings

        monkeypatch.setenv("TELEGRAM_CHAT_ID", "-42")
        get_settings.cache_clear()

        dispatcher = build_dispatcher()

        assert dispatcher.configured is True
        assert dispatcher.provider_name == "mock"


@pytest.mark.parametrize("status, phrase", [
    ("pending", "accepted for processing"),
    ("preparing", "being prepared"),
    ("delivered", "delivered"),
])
def test_status_phrases(status, phrase):
    assert phrase in format_status_message(1, status)
