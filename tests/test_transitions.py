"""Tests for order status transitions, deliveries, deletes and clears."""

import pytest
from sqlalchemy import select

from tabletrack.core.exceptions import MappingNotFoundError, NotFoundError, ValidationError
from tabletrack.models import (
    MappingStatus,
    NotificationPriority,
    NotificationType,
    OrderStatus,
    TableMapping,
    TableOrder,
)
from tabletrack.services.tracking import Actor, OrderRef, resolve_order


# ============================================================================
# Status updates
# ============================================================================

class TestUpdateStatus:

    @pytest.mark.asyncio
    async def test_preparing(self, db_session, transitions, seated_order, push_sink):
        mapping, order = seated_order
        push_sink.clear()

        updated, linked = await transitions.update_status(
            db_session, OrderRef("1001", mapping_id=mapping.id), "preparing", Actor.employee("Kim")
        )

        assert updated.status == OrderStatus.PREPARING
        assert linked.status == MappingStatus.ACTIVE

        [payload] = push_sink.sent
        assert payload["type"] == NotificationType.ORDER_UPDATED.value
        assert payload["recipient_type"] == "employee"
        assert payload["priority"] == NotificationPriority.MEDIUM.value
        assert payload["message"] == "Order #1001 at Table P3: Order is being prepared"
        assert payload["data"] == {"old_status": "pending", "new_status": "preparing", "updated_by": "Kim"}

    @pytest.mark.asyncio
    async def test_ready_is_high_priority(self, db_session, transitions, seated_order, push_sink):
        push_sink.clear()
        await transitions.update_status(
            db_session, OrderRef("1001", table_number="P3"), OrderStatus.READY, Actor.employee()
        )

        [payload] = push_sink.sent
        assert payload["priority"] == "high"
        assert payload["message"] == "Order #1001 at Table P3: Order is ready for delivery"

    @pytest.mark.asyncio
    async def test_delivered_moves_active_mapping(self, db_session, transitions, seated_order, push_sink):
        mapping, _ = seated_order
        push_sink.clear()

        order, linked = await transitions.update_status(
            db_session, OrderRef("1001", mapping_id=mapping.id), "delivered", Actor.admin("Lee")
        )

        assert order.status == OrderStatus.DELIVERED
        assert linked.status == MappingStatus.DELIVERED
        assert linked.delivered_by == "Lee"
        assert linked.delivered_at is not None

        [payload] = push_sink.sent
        assert payload["type"] == "order_delivered"
        assert payload["priority"] == "low"
        assert payload["message"] == "Order #1001 successfully delivered to Table P3"
        assert payload["data"]["delivered_by"] == "Lee"

    @pytest.mark.asyncio
    async def test_any_status_may_follow_any_other(self, db_session, transitions, seated_order):
        ref = OrderRef("1001", table_number="P3")
        for status in ("completed", "pending", "ready", "preparing"):
            order, _ = await transitions.update_status(db_session, ref, status, Actor.employee())
            assert order.status == OrderStatus(status)

    @pytest.mark.asyncio
    async def test_delivered_leaves_cleared_mapping_alone(self, db_session, transitions, seated_order):
        mapping, _ = seated_order
        await transitions.clear_mapping(db_session, "1001")

        _, linked = await transitions.update_status(
            db_session, OrderRef("1001", mapping_id=mapping.id), "delivered", Actor.admin()
        )

        assert linked.status == MappingStatus.CLEARED
        assert linked.delivered_at is None

    @pytest.mark.asyncio
    async def test_standalone_order_status(self, db_session, transitions, guard):
        await guard.add_standalone_order(db_session, "7007")

        order, mapping = await transitions.update_status(
            db_session, OrderRef("7007"), "ready", Actor.admin()
        )
        assert order.status == OrderStatus.READY
        assert mapping is None

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session, transitions, seated_order):
        with pytest.raises(ValidationError) as exc_info:
            await transitions.update_status(db_session, OrderRef("1001"), "cooking", Actor.admin())
        assert exc_info.value.errors == {"status": ["The selected status is invalid."]}

    @pytest.mark.asyncio
    async def test_unknown_order(self, db_session, transitions):
        with pytest.raises(NotFoundError) as exc_info:
            await transitions.update_status(db_session, OrderRef("9999"), "ready", Actor.admin())
        assert exc_info.value.message == "Order not found for the specified criteria"


# ============================================================================
# Deliveries
# ============================================================================

class TestMarkDelivered:

    @pytest.mark.asyncio
    async def test_marks_order_and_mapping(self, db_session, transitions, seated_order):
        mapping, _ = seated_order

        order, linked = await transitions.mark_delivered(
            db_session, OrderRef("1001", mapping_id=mapping.id), Actor.employee("Kim"), delivered_by="Runner 2"
        )

        assert order.status == OrderStatus.DELIVERED
        assert linked.status == MappingStatus.DELIVERED
        assert linked.delivered_by == "Runner 2"
        assert linked.delivery_time_minutes == 0

    @pytest.mark.asyncio
    async def test_defaults_to_actor_name(self, db_session, transitions, seated_order):
        _, linked = await transitions.mark_delivered(db_session, OrderRef("1001"), Actor.employee())
        assert linked.delivered_by == "Employee"

    @pytest.mark.asyncio
    async def test_standalone_order_has_no_mapping(self, db_session, transitions, guard):
        await guard.add_standalone_order(db_session, "7008")

        with pytest.raises(MappingNotFoundError) as exc_info:
            await transitions.mark_delivered(db_session, OrderRef("7008"), Actor.admin())
        assert exc_info.value.message == "Table mapping not found for this order"
        assert exc_info.value.status_code == 404


# ============================================================================
# Deletes, clears and resolution
# ============================================================================

class TestDeleteAndClear:

    @pytest.mark.asyncio
    async def test_delete_clears_mapping(self, db_session, transitions, seated_order):
        mapping, _ = seated_order
        mapping_id = mapping.id

        cleared = await transitions.delete_order(db_session, OrderRef("1001", mapping_id=mapping_id))

        assert cleared.status == MappingStatus.CLEARED
        assert cleared.clear_reason == "order_deleted"
        assert cleared.cleared_at is not None
        assert await db_session.scalar(select(TableOrder).where(TableOrder.order_number == "1001")) is None
        assert (await db_session.get(TableMapping, mapping_id)) is not None

    @pytest.mark.asyncio
    async def test_delete_standalone(self, db_session, transitions, guard):
        await guard.add_standalone_order(db_session, "7009")
        assert await transitions.delete_order(db_session, OrderRef("7009")) is None

    @pytest.mark.asyncio
    async def test_delete_unknown(self, db_session, transitions):
        with pytest.raises(NotFoundError):
            await transitions.delete_order(db_session, OrderRef("1", table_number="P1"))

    @pytest.mark.asyncio
    async def test_order_number_reusable_after_delete(self, db_session, transitions, guard, seated_order):
        await transitions.delete_order(db_session, OrderRef("1001", table_number="P3"))

        mapping, order = await guard.submit(db_session, "B1", "1001")

        found = await resolve_order(db_session, OrderRef("1001", mapping_id=mapping.id))
        assert found.id == order.id
        found = await resolve_order(db_session, OrderRef("1001", table_number="b1"))
        assert found.id == order.id

    @pytest.mark.asyncio
    async def test_clear_mapping(self, db_session, transitions, seated_order):
        _, order = seated_order

        cleared = await transitions.clear_mapping(db_session, "1001", reason="guest left")

        assert cleared.status == MappingStatus.CLEARED
        assert cleared.clear_reason == "guest left"
        assert order.status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_clear_mapping_default_reason(self, db_session, transitions, seated_order):
        cleared = await transitions.clear_mapping(db_session, "1001")
        assert cleared.clear_reason == "manual_clear"

    @pytest.mark.asyncio
    async def test_clear_requires_active_mapping(self, db_session, transitions, seated_order):
        await transitions.mark_delivered(db_session, OrderRef("1001"), Actor.admin())

        with pytest.raises(NotFoundError) as exc_info:
            await transitions.clear_mapping(db_session, "1001")
        assert exc_info.value.message == "Active mapping not found for this order"

    @pytest.mark.asyncio
    async def test_resolver_precedence(self, db_session, guard, seated_order):
        mapping, order = seated_order
        other = await guard.add_standalone_order(db_session, "1002")

        # mapping_id wins over a mismatched table number
        found = await resolve_order(db_session, OrderRef("1002", mapping_id=mapping.id, table_number="9"))
        assert found.id == order.id
        assert (await resolve_order(db_session, OrderRef("1002"))).id == other.id
        assert await resolve_order(db_session, OrderRef("1001", table_number="P4")) is None
        assert OrderRef("1002").is_legacy
        assert not OrderRef("1002", table_number="P3").is_legacy
