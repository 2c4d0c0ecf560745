"""
Who performed an operation.

Authentication happens upstream; the service only needs a display name
for audit columns (delivered_by) and notification payloads.
"""

from dataclasses import dataclass
from typing import Optional

from tabletrack.models import RecipientType


@dataclass(frozen=True)
class Actor:
    role: RecipientType
    name: str

    @classmethod
    def admin(cls, name: Optional[str] = None) -> "Actor":
        return cls(role=RecipientType.ADMIN, name=name or "Admin")

    @classmethod
    def employee(cls, name: Optional[str] = None) -> "Actor":
        return cls(role=RecipientType.EMPLOYEE, name=name or "Employee")
