"""
Read-only projections for the admin and employee screens.

Nothing is cached; every call reads the current state of the store.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tabletrack.models import MappingStatus, TableMapping, TableOrder, utcnow


async def list_orders(db: AsyncSession) -> list[TableOrder]:
    """All orders, newest first, with their mapping loaded."""
    result = await db.execute(
        select(TableOrder)
        .options(selectinload(TableOrder.mapping))
        .order_by(TableOrder.created_at.desc(), TableOrder.id.desc())
    )
    return list(result.scalars().all())


async def list_mappings(db: AsyncSession) -> list[TableMapping]:
    """All mappings, newest first, with their order loaded."""
    result = await db.execute(
        select(TableMapping)
        .options(selectinload(TableMapping.order))
        .order_by(TableMapping.created_at.desc(), TableMapping.id.desc())
    )
    return list(result.scalars().all())


async def _count(db: AsyncSession, *conditions) -> int:
    result = await db.execute(select(func.count(TableMapping.id)).where(*conditions))
    return result.scalar() or 0


def _day_bounds(now: datetime) -> tuple[datetime, datetime]:
    start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


async def analytics(db: AsyncSession, now: Optional[datetime] = None) -> dict[str, Any]:
    """
    Aggregate counts for the admin dashboard.

    "Today" is the current UTC day. averageDeliveryTime is in minutes,
    over mappings delivered today, and None when there were none.
    """
    day_start, day_end = _day_bounds(now or utcnow())

    def today(column):
        return (column >= day_start, column < day_end)

    total = await _count(db)
    successful = await _count(db, TableMapping.status != MappingStatus.CLEARED)
    active = await _count(db, TableMapping.status == MappingStatus.ACTIVE)
    today_submissions = await _count(db, *today(TableMapping.created_at))

    delivered_result = await db.execute(
        select(TableMapping).where(
            TableMapping.status == MappingStatus.DELIVERED,
            TableMapping.delivered_at.is_not(None),
            *today(TableMapping.delivered_at),
        )
    )
    delivered_today = list(delivered_result.scalars().all())
    durations = [
        m.delivery_time_minutes for m in delivered_today
        if m.delivery_time_minutes is not None
    ]
    average = round(sum(durations) / len(durations), 2) if durations else None

    return {
        "totalSubmissions": total,
        "successfulSubmissions": successful,
        "todaySubmissions": today_submissions,
        "todayDeliveries": len(delivered_today),
        "activeMappings": active,
        "averageDeliveryTime": average,
        "dailyStats": {
            day_start.date().isoformat(): {
                "submissions": today_submissions,
                "deliveries": len(delivered_today),
                "averageDeliveryTime": average or 0,
            }
        },
    }
