"""
Notification Service Factory

Returns Mock or Telegram notification service based on ENV_MODE.
"""

import logging
from functools import lru_cache
from typing import Optional

from food_delivery.core.config import get_settings
from food_delivery.services.notifications.base import (
    BaseNotificationService,
    ChatId,
    NotificationResult,
)
from food_delivery.services.notifications.dispatcher import (
    NotificationDispatcher,
    OrderSummary,
    format_order_message,
    format_status_message,
)
from food_delivery.services.notifications.mock import MockNotificationService
from food_delivery.services.notifications.telegram import TelegramNotificationService

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_service() -> BaseNotificationService:
    """Get the configured notification service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Service: Using MockNotificationService (development mode)")
        return MockNotificationService(failure_rate=0.05)
    else:
        logger.info(f"Notification Service: Using TelegramNotificationService ({settings.env_mode.value} mode)")
        return TelegramNotificationService()


def reset_notification_service() -> None:
    """Clear the cached service instance."""
    get_notification_service.cache_clear()


def build_dispatcher(service: Optional[BaseNotificationService] = None) -> NotificationDispatcher:
    """Create a dispatcher wired to the operations chat from settings."""
    settings = get_settings()
    return NotificationDispatcher(
        service or get_notification_service(),
        operations_chat_id=settings.telegram_chat_id,
        order_timeout=settings.notification_timeout_seconds,
        status_timeout=settings.status_notification_timeout_seconds,
    )


__all__ = [
    "get_notification_service",
    "reset_notification_service",
    "build_dispatcher",
    "BaseNotificationService",
    "ChatId",
    "NotificationResult",
    "NotificationDispatcher",
    "OrderSummary",
    "format_order_message",
    "format_status_message",
    "MockNotificationService",
    "TelegramNotificationService",
]
