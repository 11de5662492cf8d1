"""
Mock Notification Service

Simulates Telegram delivery for development.
No actual messages are sent - they are logged and kept in ``sent``.
"""

import asyncio
import logging
import random
import uuid
from typing import Optional

from food_delivery.services.notifications.base import (
    BaseNotificationService,
    ChatId,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """Mock notification service for development and tests."""

    def __init__(
        self,
        failure_rate: float = 0.05,
        min_latency: float = 0.1,
        max_latency: float = 0.3,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.sent: list[tuple[ChatId, str]] = []
        logger.info(f"MockNotificationService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        timeout: Optional[float] = None,
    ) -> NotificationResult:
        """Simulate sending a chat message."""
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock message failed (simulated) to chat {chat_id}")
            return NotificationResult(
                success=False,
                error_message="Simulated delivery failure",
                provider="mock",
            )

        message_id = f"msg_mock_{uuid.uuid4().hex[:12]}"
        self.sent.append((chat_id, text))
        first_line = text.strip().splitlines()[0] if text.strip() else ""
        logger.info(f"Mock message sent to chat {chat_id}: {first_line[:60]} (ID: {message_id})")

        return NotificationResult(
            success=True,
            message_id=message_id,
            provider="mock",
        )

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
