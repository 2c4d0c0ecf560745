"""
Order resolution.

Callers identify an order by one of three keys, most specific first:

    1. mapping_id
    2. order_number + table_number
    3. order_number alone (legacy)

The bare order_number lookup is deprecated: after a delete frees a number,
more than one historical order may have carried it, and the first one
found wins.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tabletrack.models import TableOrder
from tabletrack.services.tracking.tables import normalize_table_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderRef:
    """Caller-supplied keys identifying one order."""
    order_number: str
    mapping_id: Optional[int] = None
    table_number: Optional[str] = None

    @property
    def is_legacy(self) -> bool:
        return not self.mapping_id and not self.table_number


async def resolve_order(db: AsyncSession, ref: OrderRef) -> Optional[TableOrder]:
    """Return the order matching the most specific key in ``ref``, or None."""
    if ref.mapping_id:
        query = select(TableOrder).where(TableOrder.mapping_id == ref.mapping_id)
    elif ref.table_number:
        query = select(TableOrder).where(
            TableOrder.order_number == ref.order_number,
            TableOrder.table_number == normalize_table_number(ref.table_number),
        )
    else:
        # TODO: drop the bare order_number fallback once both staff UIs send mapping_id
        logger.warning(
            f"Resolving order #{ref.order_number} by bare order number "
            f"(legacy lookup, send mapping_id instead)"
        )
        query = select(TableOrder).where(TableOrder.order_number == ref.order_number)

    result = await db.execute(query.order_by(TableOrder.id).limit(1))
    return result.scalar_one_or_none()
