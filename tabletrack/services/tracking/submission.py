"""
Submission Guard

Entry point for every new table/order pairing, whether it comes from a
customer scanning the table QR code or from an admin entering it by hand.

Checks, in order:
    1. shape of the order number and table number
    2. duplicate-submission throttle on the (order, table) pair
    3. live uniqueness of the order number
then creates the mapping and its order in one transaction and notifies
admins and employees.

Check 2 intentionally precedes check 3, so an immediate repeat of the same
pair reports DUPLICATE_SUBMISSION (429) rather than DUPLICATE_ORDER_NUMBER.
Keep this order when reworking the checks.

The unique constraint on table_orders.order_number backs check 3 when two
submissions race; the losing commit is reported as a ConflictError.
"""

import logging
from datetime import timedelta
from typing import Optional, Union

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tabletrack.core.config import get_settings
from tabletrack.core.exceptions import (
    ConflictError,
    InvalidTableError,
    RateLimitError,
    ValidationError,
)
from tabletrack.models import (
    MappingSource,
    MappingStatus,
    OrderStatus,
    TableArea,
    TableMapping,
    TableOrder,
    utcnow,
)
from tabletrack.services.notifications.composer import compose_submission
from tabletrack.services.notifications.dispatcher import NotificationDispatcher
from tabletrack.services.tracking.actor import Actor
from tabletrack.services.tracking.tables import (
    derive_area,
    is_valid_order_number,
    new_submission_id,
    new_unique_identifier,
    normalize_table_number,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_FORMAT_ERROR = "The order number field format is invalid."
ADMIN_INVALID_TABLE_MESSAGE = "Invalid table number. Please check the table number and try again."


class SubmissionGuard:
    """
    Validates and records table/order submissions.

    Attributes:
        dispatcher: Notification dispatcher used after each commit
        throttle_seconds: Window for the duplicate-submission check
        default_customer_name: Placeholder for unknown customers
    """

    def __init__(
        self,
        dispatcher: Optional[NotificationDispatcher] = None,
        throttle_seconds: Optional[int] = None,
    ):
        settings = get_settings()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.throttle_seconds = throttle_seconds or settings.submission_throttle_seconds
        self.default_customer_name = settings.default_customer_name

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def _validate_order_number(order_number: Optional[str]) -> str:
        if not is_valid_order_number(order_number):
            raise ValidationError(errors={"order_number": [ORDER_NUMBER_FORMAT_ERROR]})
        return str(order_number).strip()

    @staticmethod
    def _validate_table_number(table_number: Optional[str], source: MappingSource) -> tuple[str, TableArea]:
        normalized = normalize_table_number(table_number)
        try:
            return normalized, derive_area(normalized)
        except InvalidTableError:
            if source == MappingSource.ADMIN:
                raise InvalidTableError(ADMIN_INVALID_TABLE_MESSAGE)
            raise

    async def _order_number_exists(self, db: AsyncSession, order_number: str) -> bool:
        result = await db.execute(
            select(exists().where(TableOrder.order_number == order_number))
        )
        return bool(result.scalar())

    async def _recently_submitted(self, db: AsyncSession, order_number: str, table_number: str) -> bool:
        cutoff = utcnow() - timedelta(seconds=self.throttle_seconds)
        result = await db.execute(
            select(
                exists().where(
                    TableMapping.order_number == order_number,
                    TableMapping.table_number == table_number,
                    TableMapping.created_at >= cutoff,
                )
            )
        )
        return bool(result.scalar())

    # =========================================================================
    # WRITES
    # =========================================================================

    def _build_mapping(
        self,
        order_number: str,
        table_number: str,
        area: TableArea,
        source: MappingSource,
    ) -> TableMapping:
        now = utcnow()
        return TableMapping(
            order_number=order_number,
            submission_id=new_submission_id(order_number, table_number, source),
            table_number=table_number,
            area=area,
            status=MappingStatus.ACTIVE,
            source=source,
            submitted_at=now,
            created_at=now,
            update_count=0,
        )

    async def _create_order(self, db: AsyncSession, mapping: TableMapping) -> TableOrder:
        order = TableOrder(
            order_number=mapping.order_number,
            unique_identifier=new_unique_identifier(
                mapping.order_number, mapping.table_number, mapping.source
            ),
            mapping_id=mapping.id,
            table_number=mapping.table_number,
            area=mapping.area,
            customer_name=self.default_customer_name,
            status=OrderStatus.PENDING,
            created_at=utcnow(),
        )
        db.add(order)
        await db.flush()
        return order

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def submit(
        self,
        db: AsyncSession,
        table_number: Optional[str],
        order_number: Optional[str],
        source: Union[MappingSource, str] = MappingSource.CUSTOMER,
        actor: Optional[Actor] = None,
    ) -> tuple[TableMapping, TableOrder]:
        """
        Record a new table/order pairing.

        Args:
            db: Database session
            table_number: Table as entered (case-insensitive)
            order_number: Digits only
            source: CUSTOMER for QR submissions, ADMIN for manual entry
            actor: Admin performing a manual entry

        Returns:
            The new (mapping, order) pair

        Raises:
            ValidationError: malformed order number
            InvalidTableError: malformed table number
            RateLimitError: same pair submitted within the throttle window
            ConflictError: order number already in use
        """
        source = MappingSource(source)
        order_number = self._validate_order_number(order_number)
        table_number, area = self._validate_table_number(table_number, source)

        try:
            if await self._recently_submitted(db, order_number, table_number):
                logger.warning(f"Throttled repeat submission of Order #{order_number} at Table {table_number}")
                raise RateLimitError()

            if await self._order_number_exists(db, order_number):
                logger.warning(f"Rejected duplicate Order #{order_number} ({source.value})")
                raise ConflictError()

            mapping = self._build_mapping(order_number, table_number, area, source)
            db.add(mapping)
            await db.flush()

            order = await self._create_order(db, mapping)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Order #{order_number} lost a concurrent submission race: {e.orig}")
            raise ConflictError() from e
        except Exception:
            await db.rollback()
            raise

        logger.info(
            f"Order #{order.order_number} mapped to Table {mapping.table_number} "
            f"({mapping.area.value}, {source.value}) as mapping #{mapping.id}"
        )

        await self.dispatcher.dispatch_safely(
            db,
            compose_submission(mapping, order, actor.name if actor else None),
        )
        return mapping, order

    async def add_standalone_order(
        self,
        db: AsyncSession,
        order_number: Optional[str],
        customer_name: Optional[str] = None,
        status: Union[OrderStatus, str, None] = None,
    ) -> TableOrder:
        """
        Create an admin-entered order that is not tied to any table.

        Raises:
            ValidationError: malformed order number or unknown status
            ConflictError: order number already in use
        """
        order_number = self._validate_order_number(order_number)
        try:
            status = OrderStatus(status) if status else OrderStatus.PENDING
        except ValueError:
            raise ValidationError(errors={"status": ["The selected status is invalid."]})

        try:
            if await self._order_number_exists(db, order_number):
                logger.warning(f"Rejected duplicate standalone Order #{order_number}")
                raise ConflictError()

            order = TableOrder(
                order_number=order_number,
                unique_identifier=new_unique_identifier(order_number, None, None),
                mapping_id=None,
                customer_name=customer_name or self.default_customer_name,
                status=status,
                created_at=utcnow(),
            )
            db.add(order)
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.warning(f"Standalone Order #{order_number} lost a concurrent race: {e.orig}")
            raise ConflictError() from e
        except Exception:
            await db.rollback()
            raise

        logger.info(f"Standalone Order #{order.order_number} added ({order.status.value})")
        return order
