"""
Status Transition Engine

Applies order status changes coming from admin and employee screens.

Any of the five order statuses may follow any other; the screens only
offer sensible next steps. The one coupling rule: an order reaching
``delivered`` takes its still-active mapping to ``delivered`` in the same
transaction, stamped with who delivered it and when.

Also handles the two ways a mapping leaves the floor: deleting its order
(mapping cleared with reason ``order_deleted``) and a manual clear.
"""

import logging
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletrack.core.exceptions import (
    MappingNotFoundError,
    NotFoundError,
    ValidationError,
)
from tabletrack.models import (
    MappingStatus,
    OrderStatus,
    TableMapping,
    TableOrder,
    utcnow,
)
from tabletrack.services.notifications.composer import (
    compose_delivery,
    compose_status_update,
)
from tabletrack.services.notifications.dispatcher import NotificationDispatcher
from tabletrack.services.tracking.actor import Actor
from tabletrack.services.tracking.resolver import OrderRef, resolve_order

logger = logging.getLogger(__name__)

ORDER_DELETED_REASON = "order_deleted"
MANUAL_CLEAR_REASON = "manual_clear"
ACTIVE_MAPPING_NOT_FOUND = "Active mapping not found for this order"


class StatusTransitionEngine:
    """Order status updates, deliveries, deletes and mapping clears."""

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self.dispatcher = dispatcher or NotificationDispatcher()

    @staticmethod
    def _parse_status(status: Union[OrderStatus, str]) -> OrderStatus:
        try:
            return OrderStatus(status)
        except ValueError:
            raise ValidationError(errors={"status": ["The selected status is invalid."]})

    async def _require_order(self, db: AsyncSession, ref: OrderRef) -> TableOrder:
        order = await resolve_order(db, ref)
        if order is None:
            raise NotFoundError()
        return order

    @staticmethod
    async def _mapping_for(db: AsyncSession, order: TableOrder) -> Optional[TableMapping]:
        if order.mapping_id is None:
            return None
        return await db.get(TableMapping, order.mapping_id)

    @staticmethod
    def _deliver_mapping(mapping: TableMapping, delivered_by: str) -> None:
        mapping.status = MappingStatus.DELIVERED
        mapping.delivered_at = utcnow()
        mapping.delivered_by = delivered_by

    # =========================================================================
    # STATUS UPDATES
    # =========================================================================

    async def update_status(
        self,
        db: AsyncSession,
        ref: OrderRef,
        new_status: Union[OrderStatus, str],
        actor: Actor,
    ) -> tuple[TableOrder, Optional[TableMapping]]:
        """
        Set an order's status.

        Raises:
            ValidationError: unknown status value
            NotFoundError: no order matches ``ref``
        """
        new_status = self._parse_status(new_status)

        try:
            order = await self._require_order(db, ref)
            old_status = order.status
            order.status = new_status

            mapping = await self._mapping_for(db, order)
            if (
                new_status == OrderStatus.DELIVERED
                and mapping is not None
                and mapping.status == MappingStatus.ACTIVE
            ):
                self._deliver_mapping(mapping, actor.name)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Order #{order.order_number} (id {order.id}) {old_status.value} -> "
            f"{new_status.value} by {actor.name}"
        )

        if new_status == OrderStatus.DELIVERED:
            notifications = compose_delivery(order, mapping, actor.name, old_status=old_status)
        else:
            notifications = compose_status_update(order, mapping, old_status, new_status, actor.name)
        await self.dispatcher.dispatch_safely(db, notifications)

        return order, mapping

    async def mark_delivered(
        self,
        db: AsyncSession,
        ref: OrderRef,
        actor: Actor,
        delivered_by: Optional[str] = None,
    ) -> tuple[TableOrder, TableMapping]:
        """
        Mark an order and its mapping delivered, whatever their current status.

        Raises:
            NotFoundError: no order matches ``ref``
            MappingNotFoundError: the order has no table mapping
        """
        delivered_by = delivered_by or actor.name

        try:
            order = await self._require_order(db, ref)
            mapping = await self._mapping_for(db, order)
            if mapping is None:
                raise MappingNotFoundError()

            old_status = order.status
            order.status = OrderStatus.DELIVERED
            self._deliver_mapping(mapping, delivered_by)

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Order #{order.order_number} delivered to Table {mapping.table_number} by {delivered_by}"
        )

        await self.dispatcher.dispatch_safely(
            db, compose_delivery(order, mapping, delivered_by, old_status=old_status)
        )
        return order, mapping

    # =========================================================================
    # REMOVAL
    # =========================================================================

    async def delete_order(self, db: AsyncSession, ref: OrderRef) -> Optional[TableMapping]:
        """
        Delete an order, clearing its mapping first.

        Returns:
            The cleared mapping, or None for a standalone order

        Raises:
            NotFoundError: no order matches ``ref``
        """
        try:
            order = await self._require_order(db, ref)
            mapping = await self._mapping_for(db, order)
            if mapping is not None:
                mapping.status = MappingStatus.CLEARED
                mapping.cleared_at = utcnow()
                mapping.clear_reason = ORDER_DELETED_REASON

            order_number, order_id = order.order_number, order.id
            await db.delete(order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Order #{order_number} (id {order_id}) deleted"
            + (f", mapping #{mapping.id} cleared" if mapping is not None else "")
        )
        return mapping

    async def clear_mapping(
        self,
        db: AsyncSession,
        order_number: str,
        reason: Optional[str] = None,
    ) -> TableMapping:
        """
        Clear the active mapping of an order number. The order is untouched.

        Raises:
            NotFoundError: no active mapping for the number
        """
        try:
            result = await db.execute(
                select(TableMapping)
                .where(
                    TableMapping.order_number == order_number,
                    TableMapping.status == MappingStatus.ACTIVE,
                )
                .order_by(TableMapping.id)
                .limit(1)
            )
            mapping = result.scalar_one_or_none()
            if mapping is None:
                raise NotFoundError(ACTIVE_MAPPING_NOT_FOUND)

            mapping.status = MappingStatus.CLEARED
            mapping.cleared_at = utcnow()
            mapping.clear_reason = reason or MANUAL_CLEAR_REASON
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Mapping #{mapping.id} for Order #{order_number} cleared ({mapping.clear_reason})")
        return mapping
