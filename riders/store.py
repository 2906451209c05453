"""
Purpose: Rider record store contract + in-memory implementation.
What it does:
- RiderStore: the interface the engine reads/writes riders through.
- InMemoryRiderStore: thread-safe dict-backed store used by tests, scripts and
  single-process deployments. The Django-backed store lives in the backend.

update_status(expected=...) is the compare-and-set the engine relies on:
two assignment attempts racing for one rider cannot both win.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from dispatch.exceptions import NotFoundError
from .models import Location, Rider, RiderStatus


class RiderStore(Protocol):
    def get_by_id(self, rider_id: str) -> Optional[Rider]: ...

    def get_by_email(self, email: str) -> Optional[Rider]: ...

    def get_all(self) -> List[Rider]: ...

    def update_status(
        self,
        rider_id: str,
        status: RiderStatus,
        *,
        expected: Optional[RiderStatus] = None,
    ) -> bool:
        """
        Write status. With `expected`, only if the stored status still equals it.
        Returns False when the compare fails; raises NotFoundError for unknown ids.
        """
        ...

    def update_location(self, rider_id: str, lat: float, lon: float) -> Rider: ...


class InMemoryRiderStore:
    """
    Riders by id behind a single lock. Snapshots are frozen, so handing them out is safe.
    """

    def __init__(self, riders: Iterable[Rider] = ()):
        self._riders: Dict[str, Rider] = {}
        self._lock = threading.Lock()
        for rider in riders:
            self._riders[rider.id] = rider

    def add(self, rider: Rider) -> Rider:
        with self._lock:
            self._riders[rider.id] = rider
        return rider

    def get_by_id(self, rider_id: str) -> Optional[Rider]:
        with self._lock:
            return self._riders.get(rider_id)

    def get_by_email(self, email: str) -> Optional[Rider]:
        if not email:
            return None
        with self._lock:
            for rider in self._riders.values():
                if rider.email and rider.email.lower() == email.lower():
                    return rider
        return None

    def get_all(self) -> List[Rider]:
        with self._lock:
            return list(self._riders.values())

    def update_status(
        self,
        rider_id: str,
        status: RiderStatus,
        *,
        expected: Optional[RiderStatus] = None,
    ) -> bool:
        status = RiderStatus(status)
        with self._lock:
            rider = self._riders.get(rider_id)
            if rider is None:
                raise NotFoundError(f"Rider {rider_id} not found")
            if expected is not None and rider.status != RiderStatus(expected):
                return False
            self._riders[rider_id] = replace(rider, status=status)
            return True

    def update_location(self, rider_id: str, lat: float, lon: float) -> Rider:
        with self._lock:
            rider = self._riders.get(rider_id)
            if rider is None:
                raise NotFoundError(f"Rider {rider_id} not found")
            updated = replace(rider, location=Location(lat=lat, lon=lon, updated_at=datetime.now(timezone.utc)))
            self._riders[rider_id] = updated
            return updated
