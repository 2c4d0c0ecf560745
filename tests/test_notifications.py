"""Tests for notification composing, dispatch, push sinks and the inbox."""

import pytest
from sqlalchemy import func, select

from tabletrack.core.exceptions import NotFoundError, NotificationDispatchError
from tabletrack.models import (
    MappingSource,
    MappingStatus,
    NotificationPriority,
    NotificationType,
    OrderStatus,
    RecipientType,
    TableArea,
    TableMapping,
    TableNotification,
    TableOrder,
    utcnow,
)
from tabletrack.services.notifications import (
    BasePushSink,
    MockPushSink,
    NotificationDispatcher,
    NotificationInbox,
    PushResult,
)
from tabletrack.services.notifications.composer import (
    compose_delivery,
    compose_status_update,
    compose_submission,
)


def make_pair(source=MappingSource.CUSTOMER, table="B4", number="8008"):
    mapping = TableMapping(
        order_number=number,
        table_number=table,
        area=TableArea.BAR,
        source=source,
        submitted_at=utcnow(),
    )
    order = TableOrder(order_number=number, customer_name="Walk-in Customer", status=OrderStatus.PENDING)
    return mapping, order


class RaisingSink(BasePushSink):
    """Sink whose transport is down."""

    def __init__(self):
        self.calls = 0

    @property
    def provider_name(self) -> str:
        return "raising"

    async def push(self, payload: dict) -> PushResult:
        self.calls += 1
        raise RuntimeError("connection refused")

    async def health_check(self) -> bool:
        return False


# ============================================================================
# Composer
# ============================================================================

class TestComposer:

    def test_customer_submission_wording(self):
        mapping, order = make_pair()
        admin, employee = compose_submission(mapping, order)

        assert admin.recipient_type == RecipientType.ADMIN
        assert admin.title == "New Table Assignment"
        assert admin.message == "Customer at Table B4 submitted Order #8008"
        assert admin.data["source"] == "customer"
        assert employee.recipient_type == RecipientType.EMPLOYEE
        assert employee.message == "Customer seated at Table B4 with Order #8008"
        assert employee.data["area"] == "bar"

    def test_admin_submission_wording(self):
        mapping, order = make_pair(source=MappingSource.ADMIN)
        notifications = compose_submission(mapping, order, actor_name="Dana")

        assert {n.recipient_type for n in notifications} == {RecipientType.ADMIN, RecipientType.EMPLOYEE}
        for n in notifications:
            assert n.message == "Order #8008 has been assigned to Table B4"
            assert n.priority == NotificationPriority.HIGH
            assert n.data["assigned_by"] == "Dana"

    @pytest.mark.parametrize("status, priority", [
        (OrderStatus.PENDING, NotificationPriority.MEDIUM),
        (OrderStatus.PREPARING, NotificationPriority.MEDIUM),
        (OrderStatus.READY, NotificationPriority.HIGH),
        (OrderStatus.COMPLETED, NotificationPriority.MEDIUM),
    ])
    def test_status_update_priority(self, status, priority):
        mapping, order = make_pair()
        [notification] = compose_status_update(order, mapping, OrderStatus.PENDING, status, "Kim")

        assert notification.type == NotificationType.ORDER_UPDATED
        assert notification.priority == priority
        assert notification.recipient_type == RecipientType.EMPLOYEE

    def test_status_update_without_table(self):
        _, order = make_pair()
        [notification] = compose_status_update(order, None, OrderStatus.PENDING, OrderStatus.COMPLETED, "Kim")

        assert notification.message == "Order #8008: Order completed"
        assert notification.table_number is None

    def test_delivery(self):
        mapping, order = make_pair()
        mapping.delivered_at = utcnow()
        [notification] = compose_delivery(order, mapping, "Runner 1", old_status=OrderStatus.READY)

        assert notification.type == NotificationType.ORDER_DELIVERED
        assert notification.priority == NotificationPriority.LOW
        assert notification.title == "Order Delivered"
        assert notification.message == "Order #8008 successfully delivered to Table B4"
        assert notification.data["old_status"] == "ready"
        assert notification.data["new_status"] == "delivered"
        assert notification.data["delivery_time"] == mapping.delivered_at.isoformat()


# ============================================================================
# Dispatcher and sinks
# ============================================================================

class TestDispatcher:

    @pytest.mark.asyncio
    async def test_stores_then_pushes_in_order(self, db_session, dispatcher, push_sink):
        mapping, order = make_pair()
        stored = await dispatcher.dispatch(db_session, compose_submission(mapping, order))

        assert all(n.id is not None for n in stored)
        assert [p["id"] for p in push_sink.sent] == [n.id for n in stored]
        assert push_sink.sent[0]["message"].startswith("Customer at Table B4")

    @pytest.mark.asyncio
    async def test_sink_errors_are_swallowed(self, db_session):
        sink = RaisingSink()
        dispatcher = NotificationDispatcher(sink=sink)
        mapping, order = make_pair()

        stored = await dispatcher.dispatch(db_session, compose_submission(mapping, order))

        assert sink.calls == 2
        assert len(stored) == 2
        count = await db_session.scalar(select(func.count()).select_from(TableNotification))
        assert count == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, db_session, dispatcher, push_sink):
        assert await dispatcher.dispatch(db_session, []) == []
        assert push_sink.sent == []

    @pytest.mark.asyncio
    async def test_failed_store_leaves_caller_session_alone(self, db_session, dispatcher, push_sink, seated_order):
        mapping, order = seated_order
        push_sink.clear()
        notifications = compose_submission(mapping, order)
        for notification in notifications:
            notification.type = None

        with pytest.raises(NotificationDispatchError):
            await dispatcher.dispatch(db_session, notifications)

        # Already committed entities stay loaded and usable
        assert mapping.status == MappingStatus.ACTIVE
        assert order.mapping_id == mapping.id
        assert push_sink.sent == []
        count = await db_session.scalar(select(func.count()).select_from(TableNotification))
        assert count == 2

    @pytest.mark.asyncio
    async def test_mock_sink_failure_rate(self):
        sink = MockPushSink(failure_rate=1.0)
        result = await sink.push({"recipient_type": "admin", "message": "hi"})

        assert not result.success
        assert result.channel == "table-notifications:admin"
        assert sink.sent == []

    @pytest.mark.asyncio
    async def test_mock_sink_success(self):
        sink = MockPushSink()
        result = await sink.push({"recipient_type": "employee", "message": "hi"})

        assert result.success
        assert result.provider == "mock"
        assert result.message_id.startswith("push_mock_")
        assert await sink.health_check()


# ============================================================================
# Inbox
# ============================================================================

class TestInbox:

    @pytest.mark.asyncio
    async def test_feeds_are_per_audience(self, db_session, guard, transitions, seated_order):
        from tabletrack.services.tracking import Actor, OrderRef

        await transitions.update_status(db_session, OrderRef("1001"), "ready", Actor.employee())
        inbox = NotificationInbox()

        admin_feed = await inbox.latest(db_session, RecipientType.ADMIN)
        employee_feed = await inbox.latest(db_session, RecipientType.EMPLOYEE)

        assert [n.type for n in admin_feed] == [NotificationType.NEW_ORDER]
        assert [n.type for n in employee_feed] == [NotificationType.ORDER_UPDATED, NotificationType.NEW_ORDER]

    @pytest.mark.asyncio
    async def test_feed_limit(self, db_session, dispatcher):
        for number in range(5):
            mapping, order = make_pair(number=str(number))
            await dispatcher.dispatch(db_session, compose_submission(mapping, order))

        assert len(await NotificationInbox(feed_limit=3).latest(db_session, RecipientType.ADMIN)) == 3
        assert len(await NotificationInbox().latest(db_session, RecipientType.ADMIN, limit=4)) == 4

    @pytest.mark.asyncio
    async def test_mark_read_and_delete(self, db_session, dispatcher):
        mapping, order = make_pair()
        admin, employee = await dispatcher.dispatch(db_session, compose_submission(mapping, order))
        inbox = NotificationInbox()

        read = await inbox.mark_read(db_session, RecipientType.ADMIN, admin.id)
        assert read.is_read
        assert read.read_at is not None

        # An employee cannot touch the admin feed
        with pytest.raises(NotFoundError) as exc_info:
            await inbox.delete(db_session, RecipientType.EMPLOYEE, admin.id)
        assert exc_info.value.message == "Notification not found"

        await inbox.delete(db_session, RecipientType.ADMIN, admin.id)
        assert await inbox.latest(db_session, RecipientType.ADMIN) == []

    @pytest.mark.asyncio
    async def test_mark_all_read(self, db_session, dispatcher):
        for number in ("1", "2"):
            mapping, order = make_pair(number=number)
            await dispatcher.dispatch(db_session, compose_submission(mapping, order))
        inbox = NotificationInbox()

        assert await inbox.mark_all_read(db_session, RecipientType.EMPLOYEE) == 2
        assert await inbox.mark_all_read(db_session, RecipientType.EMPLOYEE) == 0

        db_session.expire_all()
        employee_feed = await inbox.latest(db_session, RecipientType.EMPLOYEE)
        admin_feed = await inbox.latest(db_session, RecipientType.ADMIN)
        assert all(n.is_read for n in employee_feed)
        assert not any(n.is_read for n in admin_feed)
