"""
Purpose: Domain models for the Orders capability (delivery-relevant fields only).
What it does:
- Defines Order (id, pickup coords, distance category, assignment, status, history)
- Defines StatusHistoryEntry (append-only audit trail)

Defines enums/constants:
- DistanceCategory = local | intercity | longDistance
- Engine-produced status strings (RIDER_ASSIGNED, PENDING_RIDER_ASSIGNMENT, RIDER_REQUESTED)

Rule: No search or assignment logic. Models only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Set, Tuple

LatLon = Tuple[float, float]

RIDER_ASSIGNED = "Rider Assigned"
PENDING_RIDER_ASSIGNMENT = "Pending Rider Assignment"
# Order is back on offer after the assigned rider declined it
RIDER_REQUESTED = "rider_requested"


class DistanceCategory(str, Enum):
    LOCAL = "local"
    INTERCITY = "intercity"
    LONG_DISTANCE = "longDistance"

    @property
    def is_intercity(self) -> bool:
        return self in (DistanceCategory.INTERCITY, DistanceCategory.LONG_DISTANCE)


@dataclass(frozen=True)
class StatusHistoryEntry:
    status: str
    timestamp: datetime
    note: str = ""


@dataclass
class Order:
    """
    The slice of an order the dispatch engine reads and writes.
    Stores hand out copies; changes go through OrderStore.update().
    """

    id: str
    pickup_location: Optional[LatLon] = None
    distance_category: DistanceCategory = DistanceCategory.LOCAL
    parcel_weight_kg: Optional[float] = None

    assigned_rider_id: Optional[str] = None
    status: str = PENDING_RIDER_ASSIGNMENT
    status_history: List[StatusHistoryEntry] = field(default_factory=list)
    declined_by: Set[str] = field(default_factory=set)
    needs_manual_assignment: bool = False

    expected_pickup_time: Optional[datetime] = None
    expected_delivery_time: Optional[datetime] = None

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_intercity(self) -> bool:
        return DistanceCategory(self.distance_category).is_intercity

    @staticmethod
    def new(
        order_id: str,
        pickup_lat: Optional[float],
        pickup_lon: Optional[float],
        distance_category: str | DistanceCategory = DistanceCategory.LOCAL,
        parcel_weight_kg: Optional[float] = None,
    ) -> Order:
        pickup = None
        if pickup_lat is not None and pickup_lon is not None:
            pickup = (pickup_lat, pickup_lon)
        return Order(
            id=order_id,
            pickup_location=pickup,
            distance_category=DistanceCategory(distance_category),
            parcel_weight_kg=parcel_weight_kg,
        )
