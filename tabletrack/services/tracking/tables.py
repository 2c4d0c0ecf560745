"""
Table number rules.

Table numbers come in three shapes, each mapped to an area:

    7, 12, 123  -> dining
    P1, P12     -> patio
    B1, B12     -> bar

Table numbers are at most ten characters once normalised.
Order numbers are plain digit strings.
"""

import re
import time
import uuid
from typing import Any, Optional

from tabletrack.core.exceptions import InvalidTableError
from tabletrack.models import MappingSource, TableArea

TABLE_NUMBER_PATTERN = r"^([0-9]+|P[0-9]+|B[0-9]+)$"
ORDER_NUMBER_PATTERN = r"^[0-9]+$"
TABLE_NUMBER_MAX_LENGTH = 10

_AREA_RULES = (
    (re.compile(r"^[0-9]+$"), TableArea.DINING),
    (re.compile(r"^P[0-9]+$"), TableArea.PATIO),
    (re.compile(r"^B[0-9]+$"), TableArea.BAR),
)
_TABLE_NUMBER_RE = re.compile(TABLE_NUMBER_PATTERN)
_ORDER_NUMBER_RE = re.compile(ORDER_NUMBER_PATTERN)


def normalize_table_number(table_number: Optional[str]) -> str:
    return (table_number or "").strip().upper()


def is_valid_table_number(table_number: Optional[str]) -> bool:
    normalized = normalize_table_number(table_number)
    if len(normalized) > TABLE_NUMBER_MAX_LENGTH:
        return False
    return bool(_TABLE_NUMBER_RE.match(normalized))


def is_valid_order_number(order_number: Optional[str]) -> bool:
    if order_number is None:
        return False
    return bool(_ORDER_NUMBER_RE.match(str(order_number).strip()))


def derive_area(table_number: str) -> TableArea:
    """
    Map a table number to its area.

    Raises:
        InvalidTableError: the number is too long or matches none of the
            known shapes
    """
    normalized = normalize_table_number(table_number)
    if len(normalized) > TABLE_NUMBER_MAX_LENGTH:
        raise InvalidTableError()
    for pattern, area in _AREA_RULES:
        if pattern.match(normalized):
            return area
    raise InvalidTableError()


def _marker(source: Optional[MappingSource]) -> str:
    if source is None:
        return "standalone"
    return "manual" if source == MappingSource.ADMIN else ""


def new_submission_id(order_number: str, table_number: str, source: MappingSource) -> str:
    """order + table + unix time + random, with a marker for admin entries."""
    parts = [order_number, table_number, str(int(time.time()))]
    marker = _marker(source)
    if marker:
        parts.append(marker)
    parts.append(uuid.uuid4().hex[:13])
    return "_".join(parts)


def new_unique_identifier(
    order_number: str,
    table_number: Optional[str],
    source: Optional[MappingSource],
) -> str:
    """Audit identifier of an order. Standalone orders have no table."""
    parts = ["order", order_number]
    if table_number:
        parts.append(table_number)
    marker = _marker(source)
    if marker:
        parts.append(marker)
    parts.append(uuid.uuid4().hex[:13])
    return "_".join(parts)


def table_settings() -> dict[str, Any]:
    """Static metadata served to the customer QR page."""
    return {
        "validTableNumbers": [],  # any number of the right shape is accepted
        "areas": {
            TableArea.DINING.value: "Any numeric table (e.g., 1, 2, 123)",
            TableArea.PATIO.value: "P + numbers (e.g., P1, P2, P123)",
            TableArea.BAR.value: "B + numbers (e.g., B1, B2, B123)",
        },
        "validation": {
            "tableNumber": "Must be numeric, P+numeric, or B+numeric",
            "orderNumber": "Must be unique numeric value",
        },
        "patterns": {
            "tableNumber": TABLE_NUMBER_PATTERN,
            "orderNumber": ORDER_NUMBER_PATTERN,
        },
    }
