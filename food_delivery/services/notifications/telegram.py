"""
Telegram Notification Service

Production implementation using the Telegram Bot API ``sendMessage``
method over httpx. Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - TELEGRAM_BOT_TOKEN must be set in environment

API Documentation:
    https://core.telegram.org/bots/api#sendmessage
"""

import logging
from typing import Optional

import httpx

from food_delivery.core.config import get_settings
from food_delivery.services.notifications.base import (
    BaseNotificationService,
    ChatId,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class TelegramNotificationService(BaseNotificationService):
    """
    Telegram Bot API client.

    Each call is a single POST with a bounded timeout. Timeouts, network
    errors and non-2xx answers come back as a failed ``NotificationResult``;
    nothing is retried.
    """

    def __init__(
        self,
        bot_token: Optional[str] = None,
        api_base: Optional[str] = None,
        default_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self._bot_token = bot_token or settings.telegram_bot_token
        self._api_base = (api_base or settings.telegram_api_base).rstrip("/")
        self._default_timeout = default_timeout or settings.notification_timeout_seconds
        self._transport = transport

        if not self._bot_token:
            logger.warning("TELEGRAM_BOT_TOKEN not configured, messages will not be sent")

        logger.info("TelegramNotificationService initialized")

    @property
    def provider_name(self) -> str:
        return "telegram"

    def _url(self, method: str) -> str:
        return f"{self._api_base}/bot{self._bot_token}/{method}"

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        timeout: Optional[float] = None,
    ) -> NotificationResult:
        """Send a message via the Bot API."""
        if not self._bot_token:
            return NotificationResult(
                success=False,
                error_message="Telegram bot token not configured",
                provider="telegram",
            )

        try:
            async with httpx.AsyncClient(
                timeout=timeout or self._default_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._url("sendMessage"),
                    json={"chat_id": chat_id, "text": text},
                )
                response.raise_for_status()
                payload = response.json()

        except httpx.TimeoutException as e:
            logger.error(f"Telegram timeout sending to chat {chat_id}: {e!r}")
            return NotificationResult(
                success=False,
                error_message="Timed out",
                provider="telegram",
            )
        except httpx.HTTPStatusError as e:
            logger.error(f"Telegram rejected message to chat {chat_id}: HTTP {e.response.status_code}")
            return NotificationResult(
                success=False,
                error_message=f"HTTP {e.response.status_code}",
                provider="telegram",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Telegram error sending to chat {chat_id}: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="telegram",
            )

        if not isinstance(payload, dict):
            payload = {}
        message_id = (payload.get("result") or {}).get("message_id")
        logger.info(f"Telegram message sent to chat {chat_id}: {message_id}")

        return NotificationResult(
            success=bool(payload.get("ok", True)),
            message_id=str(message_id) if message_id is not None else None,
            provider="telegram",
        )

    async def health_check(self) -> bool:
        """Call getMe to verify the bot token."""
        if not self._bot_token:
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self._transport) as client:
                response = await client.get(self._url("getMe"))
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Telegram health check failed: {e}")
            return False
