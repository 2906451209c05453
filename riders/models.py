"""
Purpose: Core data models for the riders domain.
What it does:
Defines the structure of a Rider, its location, capacity and status without
relying on Django ORM constraints. Stores hand out frozen snapshots; a state
change is a store write, never an in-place mutation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

from geo.distance import is_valid_coordinate

LatLon = Tuple[float, float]


class RiderStatus(str, Enum):
    """
    The only three states the engine knows about.
    BUSY means the rider holds exactly one active order assignment.
    """
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float
    updated_at: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return is_valid_coordinate(self.lat, self.lon)

    def as_tuple(self) -> LatLon:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class Capacity:
    """
    Upper bound on the order size a rider can handle.
    """
    max_weight_kg: float = 0.0
    # (length, width, height) in cm, unknown for most riders
    max_dimensions_cm: Optional[Tuple[float, float, float]] = None


@dataclass(frozen=True)
class Rider:
    """
    A rider at a specific point in time.

    rating and completed_deliveries are quality signals for filtering and
    scoring only; the engine never writes them.
    """
    id: str
    name: str
    status: RiderStatus
    location: Optional[Location] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    service_areas: FrozenSet[str] = field(default_factory=frozenset)
    rating: float = 0.0
    completed_deliveries: int = 0
    capacity: Capacity = field(default_factory=Capacity)

    @classmethod
    def new(
        cls,
        rider_id: str,
        name: str,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
        status: str | RiderStatus = RiderStatus.AVAILABLE,
        *,
        email: Optional[str] = None,
        rating: float = 0.0,
        completed_deliveries: int = 0,
        max_weight_kg: float = 0.0,
        service_areas: Iterable[str] = (),
        located_at: Optional[datetime] = None,
    ) -> Rider:
        if isinstance(status, str):
            status = RiderStatus(status)

        location = None
        if lat is not None and lon is not None:
            location = Location(lat=lat, lon=lon, updated_at=located_at or datetime.now(timezone.utc))

        return cls(
            id=rider_id,
            name=name,
            status=status,
            location=location,
            email=email,
            service_areas=frozenset(service_areas),
            rating=rating,
            completed_deliveries=completed_deliveries,
            capacity=Capacity(max_weight_kg=max_weight_kg),
        )


@dataclass(frozen=True)
class NearbyRider:
    """
    Output of a nearby search: the rider plus its distance to the search center.
    """
    rider: Rider
    distance_km: float

    @property
    def id(self) -> str:
        return self.rider.id


@dataclass(frozen=True)
class RiderFilters:
    """
    Quality gates applied by the nearby search. Zero means "no gate".
    """
    min_completed_deliveries: int = 0
    min_rating: float = 0.0
    min_weight_capacity: float = 0.0

    def accepts(self, rider: Rider) -> bool:
        if (rider.completed_deliveries or 0) < self.min_completed_deliveries:
            return False
        if (rider.rating or 0.0) < self.min_rating:
            return False
        if (rider.capacity.max_weight_kg or 0.0) < self.min_weight_capacity:
            return False
        return True
