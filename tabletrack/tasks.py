"""
Celery Tasks
Background publishing of table notifications to staff devices.
"""

import json
import logging
import time

import redis

from tabletrack.celery_worker import celery_app
from tabletrack.core.config import get_settings

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(redis.RedisError,),
    retry_backoff=True
)
def publish_table_notification(self, channel: str, payload: dict) -> dict:
    """
    Publish one notification on a Redis pub/sub channel.

    Args:
        channel: ``{prefix}:admin`` or ``{prefix}:employee``
        payload: TableNotification.to_payload()

    Returns:
        dict: channel, subscriber count and timing
    """
    task_id = self.request.id
    start_time = time.time()

    client = redis.Redis.from_url(get_settings().redis_url)
    try:
        receivers = client.publish(channel, json.dumps(payload))
    finally:
        client.close()

    elapsed = round(time.time() - start_time, 3)
    logger.info(
        f"Task {task_id}: notification #{payload.get('id')} published on "
        f"{channel} to {receivers} subscriber(s) in {elapsed}s"
    )

    return {
        'success': True,
        'task_id': task_id,
        'channel': channel,
        'receivers': receivers,
        'processing_time_seconds': elapsed,
    }
