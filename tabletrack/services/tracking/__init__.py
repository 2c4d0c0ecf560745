"""
Table tracking services.

    - tables: table/order number rules and area derivation
    - resolver: order lookup by mapping_id / table / order number
    - submission: SubmissionGuard (new pairings)
    - transitions: StatusTransitionEngine (status, delivery, delete, clear)
    - queries: read-only listings and analytics
"""

from tabletrack.services.tracking.actor import Actor
from tabletrack.services.tracking.resolver import OrderRef, resolve_order
from tabletrack.services.tracking.submission import SubmissionGuard
from tabletrack.services.tracking.transitions import StatusTransitionEngine
from tabletrack.services.tracking import queries

__all__ = [
    "Actor",
    "OrderRef",
    "resolve_order",
    "SubmissionGuard",
    "StatusTransitionEngine",
    "queries",
]
