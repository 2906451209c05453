"""
Orders domain package.

Public API:
- Domain models: Order, StatusHistoryEntry, DistanceCategory
- Engine-produced statuses: RIDER_ASSIGNED, PENDING_RIDER_ASSIGNMENT, RIDER_REQUESTED

Should not contain business logic.
"""
from .models import (
    PENDING_RIDER_ASSIGNMENT,
    RIDER_ASSIGNED,
    RIDER_REQUESTED,
    DistanceCategory,
    Order,
    StatusHistoryEntry,
)

__all__ = ["Order",
           "StatusHistoryEntry",
           "DistanceCategory",
           "RIDER_ASSIGNED",
           "PENDING_RIDER_ASSIGNMENT",
           "RIDER_REQUESTED",
           ]
