"""
SQLAlchemy Database Models

Table-to-order tracking:
- TableMapping: append-only log of table/order submissions
- TableOrder: one fulfillment record per mapping (or standalone)
- TableNotification: admin and employee notification feed
"""

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    Enum,
    Boolean,
    ForeignKey,
    Index,
    JSON,
)
from sqlalchemy.orm import relationship

from tabletrack.database import Base


def utcnow() -> datetime:
    """Timezone-aware current time. Every timestamp the service writes uses it."""
    return datetime.now(timezone.utc)


def _values(enum_cls):
    # Store lowercase enum values rather than member names
    return [member.value for member in enum_cls]


class OrderStatus(str, enum.Enum):
    """Order fulfillment status. Any status may follow any other."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    COMPLETED = "completed"


class MappingStatus(str, enum.Enum):
    """Mapping lifecycle: ACTIVE -> DELIVERED -> CLEARED, or ACTIVE -> CLEARED."""
    ACTIVE = "active"
    DELIVERED = "delivered"
    CLEARED = "cleared"


class MappingSource(str, enum.Enum):
    """Who created the mapping."""
    CUSTOMER = "customer"
    ADMIN = "admin"


class TableArea(str, enum.Enum):
    """Restaurant zone derived from the table number prefix."""
    DINING = "dining"
    PATIO = "patio"
    BAR = "bar"


class NotificationType(str, enum.Enum):
    NEW_ORDER = "new_order"
    ORDER_UPDATED = "order_updated"
    ORDER_READY = "order_ready"
    ORDER_DELIVERED = "order_delivered"
    TABLE_CHANGED = "table_changed"


class NotificationPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecipientType(str, enum.Enum):
    """Notification audience. Delivery is a broadcast within the audience."""
    ADMIN = "admin"
    EMPLOYEE = "employee"


class TableMapping(Base):
    """
    One table/order submission.

    Rows are never edited to change their table or order; a new
    submission is always a new row. Only the lifecycle columns
    (status, delivered_*, cleared_*) change after creation.
    """
    __tablename__ = "table_mappings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # =========================================================================
    # IDENTITY
    # =========================================================================
    order_number = Column(String(50), nullable=False, index=True)
    submission_id = Column(String(191), nullable=False, unique=True)
    table_number = Column(String(10), nullable=False, index=True)
    area = Column(
        Enum(TableArea, values_callable=_values, name="table_area"),
        nullable=False,
        default=TableArea.DINING,
        index=True,
    )
    source = Column(
        Enum(MappingSource, values_callable=_values, name="mapping_source"),
        nullable=False,
        default=MappingSource.CUSTOMER,
    )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        Enum(MappingStatus, values_callable=_values, name="mapping_status"),
        nullable=False,
        default=MappingStatus.ACTIVE,
        index=True,
    )
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    delivered_at = Column(DateTime(timezone=True), nullable=True, index=True)
    delivered_by = Column(String(255), nullable=True)
    cleared_at = Column(DateTime(timezone=True), nullable=True)
    clear_reason = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    update_count = Column(Integer, nullable=False, default=0)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    order = relationship("TableOrder", back_populates="mapping", uselist=False)

    __table_args__ = (
        # Backs the duplicate-submission throttle lookup
        Index("ix_table_mappings_order_table_time", "order_number", "table_number", "created_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == MappingStatus.ACTIVE

    @property
    def delivery_time_minutes(self) -> Optional[int]:
        """Whole minutes from submission to delivery, None until delivered."""
        if not self.delivered_at or not self.submitted_at:
            return None
        start, end = self.submitted_at, self.delivered_at
        # SQLite hands back naive values for rows that were reloaded
        if (start.tzinfo is None) != (end.tzinfo is None):
            start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
        return int((end - start).total_seconds() // 60)

    def __repr__(self):
        return f"<TableMapping #{self.id} - Order {self.order_number} @ {self.table_number} - {self.status.value}>"


class TableOrder(Base):
    """
    Fulfillment record for a single submission.

    order_number is unique across all live orders; the constraint backs
    the explicit existence check done at submission time.
    """
    __tablename__ = "table_orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    order_number = Column(String(50), nullable=False, unique=True)
    unique_identifier = Column(String(191), nullable=False, index=True)
    mapping_id = Column(
        Integer,
        ForeignKey("table_mappings.id"),
        nullable=True,
        unique=True,
    )

    # Denormalized from the mapping at creation time
    table_number = Column(String(10), nullable=True)
    area = Column(Enum(TableArea, values_callable=_values, name="table_area"), nullable=True)

    customer_name = Column(String(255), nullable=False, default="Walk-in Customer")
    status = Column(
        Enum(OrderStatus, values_callable=_values, name="table_order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    mapping = relationship("TableMapping", back_populates="order")

    @property
    def is_active(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY)

    @property
    def is_completed(self) -> bool:
        return self.status in (OrderStatus.DELIVERED, OrderStatus.COMPLETED)

    def __repr__(self):
        return f"<TableOrder #{self.id} - Order {self.order_number} - {self.status.value}>"


class TableNotification(Base):
    """
    Notification broadcast to every admin or every employee.
    """
    __tablename__ = "table_notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    type = Column(
        Enum(NotificationType, values_callable=_values, name="table_notification_type"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)

    order_number = Column(String(50), nullable=False, index=True)
    table_number = Column(String(10), nullable=True)
    customer_name = Column(String(255), nullable=True)

    priority = Column(
        Enum(NotificationPriority, values_callable=_values, name="table_notification_priority"),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    recipient_type = Column(
        Enum(RecipientType, values_callable=_values, name="table_notification_recipient"),
        nullable=False,
        index=True,
    )
    data = Column(JSON, nullable=True)

    is_read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_payload(self) -> dict:
        """Plain dict used by the push sinks."""
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "order_number": self.order_number,
            "table_number": self.table_number,
            "customer_name": self.customer_name,
            "priority": self.priority.value,
            "recipient_type": self.recipient_type.value,
            "data": self.data,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<TableNotification #{self.id} - {self.type.value} -> {self.recipient_type.value}>"
