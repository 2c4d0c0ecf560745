"""
Pydantic Schemas for Request/Response Validation

Request bodies for the table tracking endpoints and the response shapes
of mappings, orders and notifications.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from tabletrack.models import (
    MappingSource,
    MappingStatus,
    NotificationPriority,
    NotificationType,
    OrderStatus,
    RecipientType,
    TableArea,
)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class TableSubmission(BaseModel):
    """Customer QR submission or admin manual mapping."""
    table_number: str = Field(..., min_length=1, examples=["P3"])
    order_number: str = Field(..., min_length=1, max_length=50, examples=["1001"])


class StandaloneOrderCreate(BaseModel):
    """Admin-added order with no table."""
    order_number: str = Field(..., min_length=1, max_length=50, examples=["2040"])
    customer_name: Optional[str] = Field(None, max_length=255)
    status: Optional[OrderStatus] = None


class StatusUpdateRequest(BaseModel):
    """New status plus optional keys to pick the exact order."""
    status: OrderStatus
    mapping_id: Optional[int] = None
    table_number: Optional[str] = None


class MarkDeliveredRequest(BaseModel):
    delivered_by: Optional[str] = Field(None, max_length=255)
    mapping_id: Optional[int] = None
    table_number: Optional[str] = None


class ClearMappingRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MappingResponse(BaseModel):
    """A table mapping as stored."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    submission_id: str
    table_number: str
    area: TableArea
    status: MappingStatus
    source: MappingSource
    submitted_at: datetime
    delivered_at: Optional[datetime] = None
    delivered_by: Optional[str] = None
    cleared_at: Optional[datetime] = None
    clear_reason: Optional[str] = None
    update_count: int
    is_active: bool
    delivery_time_minutes: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderResponse(BaseModel):
    """A table order as stored."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    unique_identifier: str
    mapping_id: Optional[int] = None
    table_number: Optional[str] = None
    area: Optional[TableArea] = None
    customer_name: str
    status: OrderStatus
    is_active: bool
    is_completed: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderWithMappingResponse(OrderResponse):
    mapping: Optional[MappingResponse] = None


class MappingWithOrderResponse(MappingResponse):
    order: Optional[OrderResponse] = None


class NotificationResponse(BaseModel):
    """A notification in an admin or employee feed."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: NotificationType
    title: str
    message: str
    order_number: str
    table_number: Optional[str] = None
    customer_name: Optional[str] = None
    priority: NotificationPriority
    recipient_type: RecipientType
    data: Optional[dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    message: str
    error: Optional[str] = None
    errors: Optional[dict[str, list[str]]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    push_sink: str
    timestamp: datetime
