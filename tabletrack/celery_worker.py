"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Start a worker with:
    celery -A tabletrack.celery_worker worker --loglevel=info
"""

from celery import Celery

from tabletrack.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'tabletrack_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['tabletrack.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Push results are only useful for a short while
    result_expires=600,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
