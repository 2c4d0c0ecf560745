"""
FastAPI Application Entry Point

Table Tracking Service - links restaurant tables to kitchen orders.

Endpoints:
    - POST /api/table-tracking/submit: Customer QR submission (public)
    - GET  /api/table-tracking/settings: Table number rules (public)
    - /api/admin/table-tracking/*: Orders, mappings, analytics, notifications
    - /api/employee/table-tracking/*: Orders, mappings, status, notifications
    - GET /health: System health check

Authentication is handled upstream; the caller's display name arrives in
the X-Actor-Name header.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional

import redis
from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletrack.core.config import get_settings, setup_logging
from tabletrack.core.exceptions import TrackingError
from tabletrack.database import engine, get_db, init_db
from tabletrack.models import MappingSource, RecipientType
from tabletrack.schemas import (
    ClearMappingRequest,
    ErrorResponse,
    HealthResponse,
    MappingResponse,
    MappingWithOrderResponse,
    MarkDeliveredRequest,
    NotificationResponse,
    OrderResponse,
    OrderWithMappingResponse,
    StandaloneOrderCreate,
    StatusUpdateRequest,
    TableSubmission,
)
from tabletrack.services.notifications import NotificationInbox, get_push_sink
from tabletrack.services.tracking import (
    Actor,
    OrderRef,
    StatusTransitionEngine,
    SubmissionGuard,
    queries,
)
from tabletrack.services.tracking.tables import table_settings

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")

    logger.info(f"Push Sink: {get_push_sink().provider_name}")
    logger.info(f"Submission throttle: {settings.submission_throttle_seconds}s")

    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"Missing production config: {missing}")

    logger.info("Application ready")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Table-to-order tracking for restaurant staff. Customers link their "
        "order to a table by QR code; admins and employees follow each order "
        "through the kitchen to the table."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # QR page is served from a different origin
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES & HELPERS
# =============================================================================

@lru_cache()
def get_submission_guard() -> SubmissionGuard:
    return SubmissionGuard()


@lru_cache()
def get_transition_engine() -> StatusTransitionEngine:
    return StatusTransitionEngine()


@lru_cache()
def get_inbox() -> NotificationInbox:
    return NotificationInbox()


async def admin_actor(
    x_actor_name: Optional[str] = Header(None, alias="x-actor-name"),
) -> Actor:
    return Actor.admin(x_actor_name)


async def employee_actor(
    x_actor_name: Optional[str] = Header(None, alias="x-actor-name"),
) -> Actor:
    return Actor.employee(x_actor_name)


def ok(message: str, **data: Any) -> dict[str, Any]:
    """Standard success envelope."""
    body: dict[str, Any] = {"success": True, "message": message}
    if data:
        body["data"] = data
    return body


def server_error(message: str, exc: Exception) -> JSONResponse:
    """Log an unexpected failure and hide its details outside debug mode."""
    logger.exception(f"{message}: {exc}")
    content: dict[str, Any] = {"success": False, "message": message}
    if settings.debug:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def _order_with_mapping(order) -> OrderWithMappingResponse:
    return OrderWithMappingResponse.model_validate(order)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
        "settings": "/api/table-tracking/settings",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    sink_status = "healthy" if await get_push_sink().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, sink_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        push_sink=sink_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# PUBLIC ENDPOINTS (no auth)
# =============================================================================

public = APIRouter(prefix="/api/table-tracking", tags=["Table Tracking (Public)"])


@public.post("/submit", responses=ERROR_RESPONSES, summary="Customer Table Submission")
async def submit_table_mapping(
    submission: TableSubmission,
    db: AsyncSession = Depends(get_db),
    guard: SubmissionGuard = Depends(get_submission_guard),
):
    """
    Link an order to the table the customer is sitting at.

    Called by the QR code page; the same table/order pair is refused for
    30 seconds after a successful submission.
    """
    try:
        mapping, order = await guard.submit(
            db,
            table_number=submission.table_number,
            order_number=submission.order_number,
            source=MappingSource.CUSTOMER,
        )
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to submit table mapping", e)

    return ok(
        "Table mapping submitted successfully",
        mapping=MappingResponse.model_validate(mapping),
        order=OrderResponse.model_validate(order),
    )


@public.get("/settings", summary="Table Number Rules")
async def get_table_settings():
    """Area rules and validation patterns. Static, no database access."""
    return ok("Table settings retrieved successfully", settings=table_settings())


# =============================================================================
# SHARED STAFF HANDLERS
# =============================================================================

async def _list_orders(db: AsyncSession, message: str):
    try:
        orders = await queries.list_orders(db)
    except Exception as e:
        return server_error("Failed to retrieve orders", e)
    return ok(message, orders=[_order_with_mapping(o) for o in orders])


async def _list_mappings(db: AsyncSession, message: str):
    try:
        mappings = await queries.list_mappings(db)
    except Exception as e:
        return server_error("Failed to retrieve mappings", e)
    return ok(message, mappings=[MappingWithOrderResponse.model_validate(m) for m in mappings])


async def _update_status(
    db: AsyncSession,
    engine_: StatusTransitionEngine,
    order_number: str,
    body: StatusUpdateRequest,
    actor: Actor,
):
    ref = OrderRef(order_number, mapping_id=body.mapping_id, table_number=body.table_number)
    try:
        order, mapping = await engine_.update_status(db, ref, body.status, actor)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to update order status", e)

    return ok(
        "Order status updated successfully",
        order=OrderResponse.model_validate(order),
        mapping=MappingResponse.model_validate(mapping) if mapping else None,
    )


async def _mark_delivered(
    db: AsyncSession,
    engine_: StatusTransitionEngine,
    order_number: str,
    body: MarkDeliveredRequest,
    actor: Actor,
):
    ref = OrderRef(order_number, mapping_id=body.mapping_id, table_number=body.table_number)
    try:
        order, mapping = await engine_.mark_delivered(db, ref, actor, delivered_by=body.delivered_by)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to mark order as delivered", e)

    return ok(
        "Order marked as delivered successfully",
        order=OrderResponse.model_validate(order),
        mapping=MappingResponse.model_validate(mapping),
    )


async def _list_notifications(db: AsyncSession, inbox: NotificationInbox, recipient: RecipientType):
    try:
        notifications = await inbox.latest(db, recipient)
    except Exception as e:
        return server_error(f"Failed to retrieve {recipient.value} notifications", e)
    return ok(
        f"{recipient.value.capitalize()} notifications retrieved successfully",
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
    )


async def _mark_notification_read(
    db: AsyncSession,
    inbox: NotificationInbox,
    recipient: RecipientType,
    notification_id: int,
):
    try:
        await inbox.mark_read(db, recipient, notification_id)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to mark notification as read", e)
    return ok("Notification marked as read successfully")


async def _delete_notification(
    db: AsyncSession,
    inbox: NotificationInbox,
    recipient: RecipientType,
    notification_id: int,
):
    try:
        await inbox.delete(db, recipient, notification_id)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to delete notification", e)
    return ok("Notification deleted successfully")


# =============================================================================
# ADMIN ENDPOINTS
# =============================================================================

admin = APIRouter(prefix="/api/admin/table-tracking", tags=["Table Tracking (Admin)"])


@admin.get("/orders")
async def admin_list_orders(db: AsyncSession = Depends(get_db)):
    return await _list_orders(db, "Orders retrieved successfully")


@admin.post("/orders", responses=ERROR_RESPONSES, summary="Add Standalone Order")
async def admin_add_order(
    body: StandaloneOrderCreate,
    db: AsyncSession = Depends(get_db),
    guard: SubmissionGuard = Depends(get_submission_guard),
):
    """Add an order that is not linked to a table."""
    try:
        order = await guard.add_standalone_order(
            db,
            order_number=body.order_number,
            customer_name=body.customer_name,
            status=body.status,
        )
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to add order", e)
    return ok("Order added successfully", order=OrderResponse.model_validate(order))


@admin.put("/orders/{order_number}/status", responses=ERROR_RESPONSES)
async def admin_update_order_status(
    order_number: str,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(admin_actor),
):
    return await _update_status(db, engine_, order_number, body, actor)


@admin.put("/orders/{order_number}/delivered", responses=ERROR_RESPONSES)
async def admin_mark_delivered(
    order_number: str,
    body: Optional[MarkDeliveredRequest] = None,
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(admin_actor),
):
    return await _mark_delivered(db, engine_, order_number, body or MarkDeliveredRequest(), actor)


@admin.delete("/orders/{order_number}", responses=ERROR_RESPONSES)
async def admin_delete_order(
    order_number: str,
    mapping_id: Optional[int] = Query(None),
    table_number: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
):
    """Delete an order; its mapping is cleared with reason order_deleted."""
    ref = OrderRef(order_number, mapping_id=mapping_id, table_number=table_number)
    try:
        await engine_.delete_order(db, ref)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to delete order", e)
    return ok("Order deleted successfully")


@admin.get("/mappings")
async def admin_list_mappings(db: AsyncSession = Depends(get_db)):
    return await _list_mappings(db, "Mappings retrieved successfully")


@admin.post("/manual-mapping", responses=ERROR_RESPONSES, summary="Admin Manual Mapping")
async def admin_submit_manual_mapping(
    submission: TableSubmission,
    db: AsyncSession = Depends(get_db),
    guard: SubmissionGuard = Depends(get_submission_guard),
    actor: Actor = Depends(admin_actor),
):
    """Same checks as the customer submission, recorded with source=admin."""
    try:
        mapping, order = await guard.submit(
            db,
            table_number=submission.table_number,
            order_number=submission.order_number,
            source=MappingSource.ADMIN,
            actor=actor,
        )
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to submit manual mapping", e)

    return ok(
        "Manual table mapping submitted successfully",
        mapping=MappingResponse.model_validate(mapping),
        order=OrderResponse.model_validate(order),
    )


@admin.put("/mappings/{order_number}/clear", responses=ERROR_RESPONSES)
async def admin_clear_mapping(
    order_number: str,
    body: Optional[ClearMappingRequest] = None,
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
):
    """Clear the active mapping of an order number without touching the order."""
    try:
        mapping = await engine_.clear_mapping(db, order_number, reason=body.reason if body else None)
    except TrackingError:
        raise
    except Exception as e:
        return server_error("Failed to clear mapping", e)
    return ok("Mapping cleared successfully", mapping=MappingResponse.model_validate(mapping))


@admin.get("/analytics")
async def admin_analytics(db: AsyncSession = Depends(get_db)):
    try:
        snapshot = await queries.analytics(db)
    except Exception as e:
        return server_error("Failed to retrieve analytics", e)
    return ok("Analytics retrieved successfully", analytics=snapshot)


@admin.get("/notifications")
async def admin_notifications(
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _list_notifications(db, inbox, RecipientType.ADMIN)


@admin.put("/notifications/{notification_id}/read", responses=ERROR_RESPONSES)
async def admin_mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _mark_notification_read(db, inbox, RecipientType.ADMIN, notification_id)


@admin.delete("/notifications/{notification_id}", responses=ERROR_RESPONSES)
async def admin_delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _delete_notification(db, inbox, RecipientType.ADMIN, notification_id)


# =============================================================================
# EMPLOYEE ENDPOINTS
# =============================================================================

employee = APIRouter(prefix="/api/employee/table-tracking", tags=["Table Tracking (Employee)"])


@employee.get("/orders")
async def employee_list_orders(db: AsyncSession = Depends(get_db)):
    return await _list_orders(db, "Employee orders retrieved successfully")


@employee.get("/mappings")
async def employee_list_mappings(db: AsyncSession = Depends(get_db)):
    return await _list_mappings(db, "Employee mappings retrieved successfully")


@employee.put("/orders/{order_number}/status", responses=ERROR_RESPONSES)
async def employee_update_order_status(
    order_number: str,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(employee_actor),
):
    return await _update_status(db, engine_, order_number, body, actor)


@employee.put("/orders/{order_number}/delivered", responses=ERROR_RESPONSES)
async def employee_mark_delivered(
    order_number: str,
    body: Optional[MarkDeliveredRequest] = None,
    db: AsyncSession = Depends(get_db),
    engine_: StatusTransitionEngine = Depends(get_transition_engine),
    actor: Actor = Depends(employee_actor),
):
    return await _mark_delivered(db, engine_, order_number, body or MarkDeliveredRequest(), actor)


@employee.get("/notifications")
async def employee_notifications(
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _list_notifications(db, inbox, RecipientType.EMPLOYEE)


@employee.put("/notifications/mark-all-read")
async def employee_mark_all_read(
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    try:
        count = await inbox.mark_all_read(db, RecipientType.EMPLOYEE)
    except Exception as e:
        return server_error("Failed to mark all notifications as read", e)
    return ok("All notifications marked as read successfully", marked_count=count)


@employee.put("/notifications/{notification_id}/read", responses=ERROR_RESPONSES)
async def employee_mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _mark_notification_read(db, inbox, RecipientType.EMPLOYEE, notification_id)


@employee.delete("/notifications/{notification_id}", responses=ERROR_RESPONSES)
async def employee_delete_notification(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    inbox: NotificationInbox = Depends(get_inbox),
):
    return await _delete_notification(db, inbox, RecipientType.EMPLOYEE, notification_id)


app.include_router(public)
app.include_router(admin)
app.include_router(employee)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(TrackingError)
async def tracking_error_handler(request: Request, exc: TrackingError) -> JSONResponse:
    """Expected failures: validation, duplicates, throttling, not found."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI's validation errors into the standard failure payload."""
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path"))
        errors.setdefault(field or "body", []).append(error["msg"])
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal Server Error",
            "error": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tabletrack.main:app", host=settings.api_host, port=settings.api_port)
