"""
Notification Service Factory

Returns the Mock or Redis push sink based on ENV_MODE, and exposes the
dispatcher and inbox used by the tracking services and API.
"""

import logging
from functools import lru_cache

from tabletrack.core.config import get_settings
from tabletrack.services.notifications.base import BasePushSink, PushResult
from tabletrack.services.notifications.mock import MockPushSink
from tabletrack.services.notifications.real import RedisPushSink
from tabletrack.services.notifications.dispatcher import NotificationDispatcher
from tabletrack.services.notifications.inbox import NotificationInbox

logger = logging.getLogger(__name__)


@lru_cache()
def get_push_sink() -> BasePushSink:
    """Get the configured push sink."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Push Sink: Using MockPushSink (development mode)")
        return MockPushSink(failure_rate=settings.mock_push_failure_rate)
    else:
        logger.info(f"Push Sink: Using RedisPushSink ({settings.env_mode.value} mode)")
        return RedisPushSink()


def reset_push_sink() -> None:
    """Clear the cached sink instance."""
    get_push_sink.cache_clear()


__all__ = [
    "get_push_sink",
    "reset_push_sink",
    "BasePushSink",
    "PushResult",
    "MockPushSink",
    "RedisPushSink",
    "NotificationDispatcher",
    "NotificationInbox",
]
