"""
Notification Dispatcher

Persists composed notification records and forwards them to the push
sink. The dispatcher always runs after the state change it reports on
has been committed, on the same task, so notifications for one order are
written in the order the events happened.

Records are written through a separate session on the caller's engine.
A failed write is rolled back there, and the caller's session and the
entities it already returned stay untouched.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tabletrack.core.exceptions import NotificationDispatchError
from tabletrack.models import TableNotification
from tabletrack.services.notifications.base import BasePushSink

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Stores notifications, then pushes them in order."""

    def __init__(
        self,
        sink: Optional[BasePushSink] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        if sink is None:
            from tabletrack.services.notifications import get_push_sink
            sink = get_push_sink()
        self.sink = sink
        self.session_factory = session_factory

    def _session_for(self, db: AsyncSession) -> AsyncSession:
        if self.session_factory is not None:
            return self.session_factory()
        return AsyncSession(bind=db.bind, expire_on_commit=False)

    async def dispatch(
        self,
        db: AsyncSession,
        notifications: list[TableNotification],
    ) -> list[TableNotification]:
        """
        Store the notifications in their own transaction and push them.

        ``db`` is the caller's session; only its engine is used.

        Raises:
            NotificationDispatchError: the records could not be stored
        """
        if not notifications:
            return []

        async with self._session_for(db) as session:
            try:
                session.add_all(notifications)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise NotificationDispatchError(f"Failed to store notifications: {e}") from e

        for notification in notifications:
            await self._push(notification)

        logger.debug(
            f"Dispatched {len(notifications)} notification(s) for order "
            f"#{notifications[0].order_number}"
        )
        return notifications

    async def _push(self, notification: TableNotification) -> None:
        payload = notification.to_payload()
        try:
            result = await self.sink.push(payload)
        except Exception:
            logger.exception(
                f"Push sink {self.sink.provider_name} raised for notification #{notification.id}"
            )
            return
        if not result.success:
            logger.warning(
                f"Push of notification #{notification.id} failed on {result.channel}: "
                f"{result.error_message}"
            )

    async def dispatch_safely(
        self,
        db: AsyncSession,
        notifications: list[TableNotification],
    ) -> bool:
        """
        Fire-and-forget wrapper used after a committed state change.

        Returns False instead of raising; the caller's operation has
        already succeeded and must be reported as such.
        """
        try:
            await self.dispatch(db, notifications)
            return True
        except Exception:
            logger.exception("Notification dispatch failed; state change stands")
            return False
