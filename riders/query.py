"""
Purpose: Nearby-rider search (the "who is close enough" layer).
What it does:
Accepts a center point and radius, pulls candidate riders from the grid index,
applies availability and quality gates, and returns riders sorted by exact
haversine distance.

Fallback:
If the index has never been built, the center maps to no cells, the cells hold
no riders, or the index breaks, the same search re-runs as a full linear scan
over the rider store. Slower, functionally identical, and it never raises.

Also owns rider location updates, since those are what feed the index.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, List, Optional, Tuple

from dispatch.exceptions import TransientIndexError, ValidationError
from geo.distance import haversine_km, is_valid_coordinate
from geo.spatial_index import SpatialIndex
from .models import Location, NearbyRider, Rider, RiderFilters, RiderStatus
from .policy import DispatchPolicy, default_dispatch_policy
from .store import RiderStore

logger = logging.getLogger(__name__)


def parse_point(point: Any) -> Tuple[float, float]:
    """
    Accepts (lat, lon), a Location-like object or a {"lat", "lon"} mapping.
    Numeric strings are accepted (query parameters arrive as text).

    Raises ValidationError when coordinates are missing or not numbers.
    Range is not checked here.
    """
    if point is None:
        raise ValidationError("Location coordinates are required")

    if isinstance(point, dict):
        lat, lon = point.get("lat"), point.get("lon")
    elif hasattr(point, "lat") and hasattr(point, "lon"):
        lat, lon = point.lat, point.lon
    else:
        try:
            lat, lon = point
        except (TypeError, ValueError):
            raise ValidationError(f"Unrecognised location: {point!r}")

    if lat is None or lon is None or isinstance(lat, bool) or isinstance(lon, bool):
        raise ValidationError("Location coordinates are required")

    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid coordinates: {lat!r}, {lon!r}")

    if math.isnan(lat) or math.isnan(lon):
        raise ValidationError(f"Invalid coordinates: {lat!r}, {lon!r}")

    return lat, lon


class RiderQuery:
    """
    Nearby search over one shared SpatialIndex and one RiderStore.
    """

    def __init__(
        self,
        rider_store: RiderStore,
        index: Optional[SpatialIndex] = None,
        policy: Optional[DispatchPolicy] = None,
    ):
        self.policy = policy or default_dispatch_policy()
        self.rider_store = rider_store
        self.index = index or SpatialIndex.from_policy(self.policy)

    # --- Public API ---

    def find_nearby(
        self,
        center: Any,
        radius_km: Optional[float] = None,
        available_only: bool = True,
        filters: Optional[RiderFilters] = None,
    ) -> List[NearbyRider]:
        """
        Riders within radius_km of center, nearest first.

        Raises ValidationError only for a missing/non-numeric center.
        An out-of-range center finds nobody.
        """
        lat, lon = parse_point(center)
        radius_km = self.clamp_radius(radius_km)
        filters = filters or RiderFilters()

        try:
            candidates = self._candidates_from_index(lat, lon, radius_km)
        except TransientIndexError as error:
            logger.warning("Error in geospatial search, falling back to linear scan: %s", error)
            candidates = []

        if not candidates:
            return self._linear_scan(lat, lon, radius_km, available_only, filters)

        return self._rank(candidates, lat, lon, radius_km, available_only, filters)

    def update_location(self, rider_id: str, lat: Any, lon: Any) -> Rider:
        """
        Persist a rider's new position and give the index a chance to refresh.
        """
        lat, lon = parse_point((lat, lon))
        if not is_valid_coordinate(lat, lon):
            raise ValidationError(f"Coordinates out of range: {lat}, {lon}")

        rider = self.rider_store.update_location(rider_id, lat, lon)

        try:
            self.index.rebuild(self.rider_store.get_all)
        except Exception:
            logger.exception("Error updating spatial index after location update for rider %s", rider_id)

        return rider

    def clamp_radius(self, radius_km: Any) -> float:
        if radius_km is None:
            return self.policy.default_radius_km
        try:
            radius = float(radius_km)
        except (TypeError, ValueError):
            radius = math.nan

        if not math.isfinite(radius) or radius <= 0:
            logger.warning("Invalid radius: %s, using default of %skm", radius_km, self.policy.default_radius_km)
            return self.policy.default_radius_km

        if radius > self.policy.max_radius_km:
            logger.warning("Radius %skm exceeds maximum of %skm, capping", radius, self.policy.max_radius_km)
            return self.policy.max_radius_km

        return radius

    # --- Internal helpers ---

    def _candidates_from_index(self, lat: float, lon: float, radius_km: float) -> List[Rider]:
        try:
            self.index.rebuild(self.rider_store.get_all)
        except Exception as error:
            # keep serving the previous snapshot if there is one
            logger.warning("Spatial index rebuild failed: %s", error)

        try:
            snapshot = self.index.snapshot
            if not snapshot.is_built:
                logger.warning("Spatial index not available, falling back to linear scan")
                return []

            if snapshot.covers_all_longitudes(lat, lon, radius_km):
                logger.info("Search circle at %s, %s spans every longitude, using linear scan", lat, lon)
                return []

            cells = snapshot.cells_within(lat, lon, radius_km)
            if not cells:
                logger.warning("No cells found in radius, falling back to linear scan")
                return []

            candidates = snapshot.collect(cells)
        except Exception as error:
            raise TransientIndexError(str(error)) from error

        if not candidates:
            logger.debug("No riders found in %d cells, falling back to linear scan", len(cells))
        return candidates

    def _linear_scan(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        available_only: bool,
        filters: RiderFilters,
    ) -> List[NearbyRider]:
        try:
            riders = self.rider_store.get_all()
        except Exception:
            logger.exception("Linear rider scan failed, returning no candidates")
            return []
        return self._rank(riders, lat, lon, radius_km, available_only, filters)

    def _rank(
        self,
        riders: Iterable[Rider],
        lat: float,
        lon: float,
        radius_km: float,
        available_only: bool,
        filters: RiderFilters,
    ) -> List[NearbyRider]:
        # gates run in a fixed order: availability, deliveries, rating, capacity
        candidates = list(riders)
        if available_only:
            candidates = [r for r in candidates if r.status == RiderStatus.AVAILABLE]
        if filters.min_completed_deliveries:
            candidates = [r for r in candidates if (r.completed_deliveries or 0) >= filters.min_completed_deliveries]
        if filters.min_rating:
            candidates = [r for r in candidates if (r.rating or 0.0) >= filters.min_rating]
        if filters.min_weight_capacity:
            candidates = [r for r in candidates if (r.capacity.max_weight_kg or 0.0) >= filters.min_weight_capacity]

        nearby: List[NearbyRider] = []
        for rider in candidates:
            location: Optional[Location] = rider.location
            if location is None:
                continue
            distance = haversine_km(lat, lon, location.lat, location.lon)
            if distance <= radius_km:
                nearby.append(NearbyRider(rider=rider, distance_km=distance))

        nearby.sort(key=lambda candidate: (candidate.distance_km, candidate.rider.id))
        return nearby
