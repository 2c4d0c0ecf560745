"""
Redis Push Sink

Production implementation: each notification is handed to a Celery
task that publishes it on the Redis pub/sub channel of its audience
(``{prefix}:admin`` or ``{prefix}:employee``). Staff devices subscribe
through the realtime gateway.
"""

import logging

import redis
from kombu.exceptions import OperationalError

from tabletrack.services.notifications.base import BasePushSink, PushResult
from tabletrack.core.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class RedisPushSink(BasePushSink):
    """Push sink publishing through Celery and Redis."""

    def __init__(self):
        self.prefix = settings.notification_channel_prefix
        self.redis_url = settings.redis_url
        logger.info(f"RedisPushSink initialized (prefix={self.prefix})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def push(self, payload: dict) -> PushResult:
        """Queue the publish task; the worker retries on Redis errors."""
        # Imported here so the Celery app is only configured when used
        from tabletrack.tasks import publish_table_notification

        channel = self.channel_for(self.prefix, payload)
        try:
            result = publish_table_notification.delay(channel, payload)
        except OperationalError as e:
            logger.error(f"Could not queue push for {channel}: {e}")
            return PushResult(
                success=False,
                channel=channel,
                error_message=str(e),
                provider="redis",
            )

        logger.debug(f"Push queued on {channel} (task {result.id})")
        return PushResult(
            success=True,
            channel=channel,
            message_id=result.id,
            provider="redis",
        )

    async def health_check(self) -> bool:
        """Ping the broker."""
        try:
            client = redis.Redis.from_url(self.redis_url, socket_timeout=2)
            client.ping()
            client.close()
            return True
        except redis.RedisError as e:
            logger.error(f"Redis push sink unhealthy: {e}")
            return False
