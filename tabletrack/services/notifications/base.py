"""
Push Sink Abstract Base Class

Defines the interface for forwarding stored table notifications to
connected staff devices. Supports both Mock (development) and Redis
(staging/production) implementations.

The sink is the last hop of a notification: records are already
persisted when it runs, so a sink failure only means a device misses a
live update, never that the notification is lost from the inbox.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class PushResult:
    """Result from forwarding one notification."""
    success: bool
    channel: Optional[str] = None
    message_id: Optional[str] = None
    error_message: Optional[str] = None
    provider: str = "unknown"


class BasePushSink(ABC):
    """Abstract base class for push sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def push(self, payload: dict) -> PushResult:
        """Forward one serialized notification to its audience."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check sink connectivity."""
        pass

    @staticmethod
    def channel_for(prefix: str, payload: dict) -> str:
        """Audience channel, e.g. ``table-notifications:employee``."""
        return f"{prefix}:{payload['recipient_type']}"
