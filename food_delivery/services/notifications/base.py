"""
Notification Service Abstract Base Class

Defines the interface for delivering text messages to a chat channel.
Supports both Mock (development) and Telegram (staging/production)
implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

ChatId = Union[int, str]


@dataclass
class NotificationResult:
    """Result from sending a notification."""
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BaseNotificationService(ABC):
    """Abstract base class for notification services."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        timeout: Optional[float] = None,
    ) -> NotificationResult:
        """
        Send a plain-text message to a chat.

        Implementations report delivery problems through the returned
        result instead of raising.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
