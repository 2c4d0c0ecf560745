"""
Mock Push Sink

Simulates live notification fan-out for development.
Nothing leaves the process - payloads are logged and kept in memory.
"""

import random
import uuid
import logging

from tabletrack.services.notifications.base import BasePushSink, PushResult
from tabletrack.core.config import get_settings

logger = logging.getLogger(__name__)


class MockPushSink(BasePushSink):
    """Mock push sink for development and tests."""

    def __init__(self, failure_rate: float = 0.0):
        self.failure_rate = failure_rate
        self.prefix = get_settings().notification_channel_prefix
        self.sent: list[dict] = []
        logger.info(f"MockPushSink initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def push(self, payload: dict) -> PushResult:
        """Record the payload instead of publishing it."""
        channel = self.channel_for(self.prefix, payload)

        if self._should_fail():
            logger.warning(f"Mock push failed (simulated) on {channel}")
            return PushResult(
                success=False,
                channel=channel,
                error_message="Simulated push failure",
                provider="mock",
            )

        message_id = f"push_mock_{uuid.uuid4().hex[:12]}"
        self.sent.append(payload)
        logger.info(f"Mock push on {channel}: {payload.get('message', '')[:60]} (ID: {message_id})")

        return PushResult(
            success=True,
            channel=channel,
            message_id=message_id,
            provider="mock",
        )

    def clear(self) -> None:
        self.sent.clear()

    async def health_check(self) -> bool:
        """Mock always returns healthy."""
        return True
