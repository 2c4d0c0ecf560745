"""
Notification inbox for the admin and employee feeds.

Notifications are broadcast per audience, so every admin (or every
employee) sees the same feed and shares its read state.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tabletrack.core.config import get_settings
from tabletrack.core.exceptions import NotFoundError
from tabletrack.models import RecipientType, TableNotification, utcnow

logger = logging.getLogger(__name__)


class NotificationInbox:

    NOT_FOUND_MESSAGE = "Notification not found"

    def __init__(self, feed_limit: Optional[int] = None):
        self.feed_limit = feed_limit or get_settings().notification_feed_limit

    async def latest(
        self,
        db: AsyncSession,
        recipient: RecipientType,
        limit: Optional[int] = None,
    ) -> list[TableNotification]:
        """Newest notifications for the audience."""
        result = await db.execute(
            select(TableNotification)
            .where(TableNotification.recipient_type == recipient)
            .order_by(TableNotification.created_at.desc(), TableNotification.id.desc())
            .limit(limit or self.feed_limit)
        )
        return list(result.scalars().all())

    async def _get(
        self,
        db: AsyncSession,
        recipient: RecipientType,
        notification_id: int,
    ) -> TableNotification:
        result = await db.execute(
            select(TableNotification).where(
                TableNotification.id == notification_id,
                TableNotification.recipient_type == recipient,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(self.NOT_FOUND_MESSAGE)
        return notification

    async def mark_read(
        self,
        db: AsyncSession,
        recipient: RecipientType,
        notification_id: int,
    ) -> TableNotification:
        notification = await self._get(db, recipient, notification_id)
        notification.is_read = True
        notification.read_at = utcnow()
        await db.commit()
        return notification

    async def mark_all_read(self, db: AsyncSession, recipient: RecipientType) -> int:
        """Mark every unread notification of the audience as read."""
        result = await db.execute(
            update(TableNotification)
            .where(
                TableNotification.recipient_type == recipient,
                TableNotification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        logger.info(f"Marked {result.rowcount} {recipient.value} notification(s) as read")
        return result.rowcount

    async def delete(
        self,
        db: AsyncSession,
        recipient: RecipientType,
        notification_id: int,
    ) -> None:
        notification = await self._get(db, recipient, notification_id)
        await db.delete(notification)
        await db.commit()
