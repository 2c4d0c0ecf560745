"""
Notification Composer

Pure functions turning a lifecycle event into unsaved TableNotification
records. Nothing here touches the database or the push sink.

Events and audiences:
    - submission (customer or admin) -> ADMIN + EMPLOYEE, HIGH
    - status update                  -> EMPLOYEE, HIGH for ready else MEDIUM
    - delivery                       -> EMPLOYEE, LOW
"""

from typing import Optional

from tabletrack.models import (
    MappingSource,
    NotificationPriority,
    NotificationType,
    OrderStatus,
    RecipientType,
    TableMapping,
    TableNotification,
    TableOrder,
    utcnow,
)

NEW_ORDER_TITLE = "New Table Assignment"
STATUS_UPDATED_TITLE = "Order Status Updated"
DELIVERED_TITLE = "Order Delivered"

STATUS_MESSAGES = {
    OrderStatus.PENDING: "Order is pending",
    OrderStatus.PREPARING: "Order is being prepared",
    OrderStatus.READY: "Order is ready for delivery",
    OrderStatus.DELIVERED: "Order has been delivered",
    OrderStatus.COMPLETED: "Order completed",
}


def _record(
    notification_type: NotificationType,
    title: str,
    message: str,
    order: TableOrder,
    table_number: Optional[str],
    priority: NotificationPriority,
    recipient: RecipientType,
    data: dict,
) -> TableNotification:
    return TableNotification(
        type=notification_type,
        title=title,
        message=message,
        order_number=order.order_number,
        table_number=table_number,
        customer_name=order.customer_name,
        priority=priority,
        recipient_type=recipient,
        data=data,
        is_read=False,
        created_at=utcnow(),
    )


def compose_submission(
    mapping: TableMapping,
    order: TableOrder,
    actor_name: Optional[str] = None,
) -> list[TableNotification]:
    """NEW_ORDER for both audiences, worded by the mapping's source."""
    table, number = mapping.table_number, order.order_number
    area = mapping.area.value

    if mapping.source == MappingSource.ADMIN:
        message = f"Order #{number} has been assigned to Table {table}"
        data = {"source": MappingSource.ADMIN.value, "area": area, "assigned_by": actor_name or "Admin"}
        return [
            _record(NotificationType.NEW_ORDER, NEW_ORDER_TITLE, message, order, table,
                    NotificationPriority.HIGH, recipient, dict(data))
            for recipient in (RecipientType.ADMIN, RecipientType.EMPLOYEE)
        ]

    return [
        _record(
            NotificationType.NEW_ORDER,
            NEW_ORDER_TITLE,
            f"Customer at Table {table} submitted Order #{number}",
            order,
            table,
            NotificationPriority.HIGH,
            RecipientType.ADMIN,
            {"source": mapping.source.value, "area": area, "customer_name": order.customer_name},
        ),
        _record(
            NotificationType.NEW_ORDER,
            NEW_ORDER_TITLE,
            f"Customer seated at Table {table} with Order #{number}",
            order,
            table,
            NotificationPriority.HIGH,
            RecipientType.EMPLOYEE,
            {"area": area, "submit_time": utcnow().isoformat()},
        ),
    ]


def compose_status_update(
    order: TableOrder,
    mapping: Optional[TableMapping],
    old_status: OrderStatus,
    new_status: OrderStatus,
    updated_by: str,
) -> list[TableNotification]:
    """ORDER_UPDATED for employees. Deliveries go through compose_delivery."""
    table = mapping.table_number if mapping else None
    where = f" at Table {table}" if table else ""
    priority = (
        NotificationPriority.HIGH if new_status == OrderStatus.READY
        else NotificationPriority.MEDIUM
    )
    return [
        _record(
            NotificationType.ORDER_UPDATED,
            STATUS_UPDATED_TITLE,
            f"Order #{order.order_number}{where}: {STATUS_MESSAGES[new_status]}",
            order,
            table,
            priority,
            RecipientType.EMPLOYEE,
            {
                "old_status": old_status.value,
                "new_status": new_status.value,
                "updated_by": updated_by,
            },
        )
    ]


def compose_delivery(
    order: TableOrder,
    mapping: Optional[TableMapping],
    delivered_by: str,
    old_status: Optional[OrderStatus] = None,
) -> list[TableNotification]:
    """ORDER_DELIVERED for employees, LOW priority."""
    if mapping is not None:
        message = f"Order #{order.order_number} successfully delivered to Table {mapping.table_number}"
        table = mapping.table_number
    else:
        message = f"Order #{order.order_number}: {STATUS_MESSAGES[OrderStatus.DELIVERED]}"
        table = None

    delivered_at = mapping.delivered_at if mapping is not None and mapping.delivered_at else utcnow()
    data = {
        "delivered_by": delivered_by,
        "delivery_time": delivered_at.isoformat(),
    }
    if old_status is not None:
        data["old_status"] = old_status.value
        data["new_status"] = OrderStatus.DELIVERED.value

    return [
        _record(
            NotificationType.ORDER_DELIVERED,
            DELIVERED_TITLE,
            message,
            order,
            table,
            NotificationPriority.LOW,
            RecipientType.EMPLOYEE,
            data,
        )
    ]
