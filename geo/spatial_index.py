"""
Purpose: Grid-bucket spatial index over rider positions.
What it does:
- Buckets riders into fixed-size (lat, lon) cells keyed by integer cell indices.
- Duplicates riders that sit close to a cell edge into the neighbouring cell(s)
  so a search never misses them because of bucketing error.
- Works out which cells a search circle touches (longitude wraps at +-180).

Rebuild policy:
An index is an immutable GridSnapshot. SpatialIndex builds a fresh snapshot off
to the side and publishes it with a single reference assignment, so a query that
grabbed the old snapshot keeps reading a complete index. Rebuilds happen at most
once per refresh interval; a request inside the interval is a no-op.

Rule: No store access and no filtering here. Riders are duck-typed objects with
`.id` and `.location` (`.lat`, `.lon`) so the index stays a pure geo structure.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .distance import is_valid_coordinate

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int]

# kilometers per degree of latitude (and of longitude at the equator)
KM_PER_DEGREE = 111.0


# -------------------------
# Cell math
# -------------------------

def cell_index(value: float, precision: float) -> int:
    # round() absorbs float noise such as 12.34 / 0.01 == 1233.9999999999998
    return math.floor(round(value / precision, 9))


def lon_cell_count(precision: float) -> int:
    return int(round(360.0 / precision))


def wrap_lon_cell(index: int, precision: float) -> int:
    """
    Normalize a longitude cell index into [-180, 180) degrees worth of cells.
    """
    total = lon_cell_count(precision)
    half = total // 2
    return ((index + half) % total) - half


def cell_key(lat: float, lon: float, precision: float) -> CellKey:
    return cell_index(lat, precision), wrap_lon_cell(cell_index(lon, precision), precision)


def cell_size_km(precision: float) -> float:
    return precision * KM_PER_DEGREE


def _edge_offsets(value: float, precision: float, edge_epsilon: float) -> List[int]:
    """
    Which neighbouring cells (-1 / +1) a coordinate is close enough to.
    Always starts with 0 (the home cell).
    """
    home = cell_index(value, precision)
    position = round(value / precision, 9) - home  # fraction of the cell, in [0, 1)
    offsets = [0]
    if position * precision <= edge_epsilon:
        offsets.append(-1)
    if (1.0 - position) * precision <= edge_epsilon:
        offsets.append(1)
    return offsets


def boundary_cells(lat: float, lon: float, precision: float, edge_epsilon: float) -> List[CellKey]:
    """
    Home cell first, then every adjacent cell the point is within edge_epsilon of
    (the diagonal one too when it is near both a lat and a lon edge).
    """
    lat_home = cell_index(lat, precision)
    lon_home = cell_index(lon, precision)

    keys: Dict[CellKey, None] = {}
    for lat_offset in _edge_offsets(lat, precision, edge_epsilon):
        for lon_offset in _edge_offsets(lon, precision, edge_epsilon):
            keys[(lat_home + lat_offset, wrap_lon_cell(lon_home + lon_offset, precision))] = None
    return list(keys)


def _spans(lat: float, radius_km: float, precision: float) -> Tuple[int, Optional[int]]:
    """
    (lat_span, lon_span) in cells. lon_span is None when the circle reaches
    every longitude (near a pole, or a radius wider than the band allows).
    """
    size_km = cell_size_km(precision)
    lat_span = math.ceil(radius_km / size_km)

    # narrowest longitude cell inside the search band decides the span
    widest_lat = min(90.0, abs(lat) + lat_span * precision)
    cos_lat = math.cos(math.radians(widest_lat))
    if cos_lat < 1e-6:
        return lat_span, None
    lon_span = math.ceil(radius_km / (size_km * cos_lat))
    if lon_span >= lon_cell_count(precision) // 2:
        return lat_span, None
    return lat_span, lon_span


def _valid_search(lat: float, lon: float, radius_km: float) -> bool:
    if not is_valid_coordinate(lat, lon):
        logger.warning("Invalid coordinates for cell lookup: %s, %s", lat, lon)
        return False
    return isinstance(radius_km, (int, float)) and math.isfinite(radius_km) and radius_km > 0


def covers_all_longitudes(lat: float, lon: float, radius_km: float, precision: float) -> bool:
    """True when a cell lookup would have to list every longitude cell of the band."""
    if not _valid_search(lat, lon, radius_km):
        return False
    return _spans(lat, radius_km, precision)[1] is None


def cells_within(lat: float, lon: float, radius_km: float, precision: float) -> List[CellKey]:
    """
    Cells whose area may intersect the circle of radius_km around (lat, lon).

    Latitude uses ceil(radius / cell size) cells each way. Longitude cells shrink
    with cos(latitude), so the longitude span is widened accordingly. An invalid
    center or radius gives no cells, and so does a circle that wraps every
    longitude (see covers_all_longitudes). Callers fall back to a linear scan.
    """
    if not _valid_search(lat, lon, radius_km):
        return []

    lat_span, lon_span = _spans(lat, radius_km, precision)
    if lon_span is None:
        return []

    center_lat = cell_index(lat, precision)
    center_lon = cell_index(lon, precision)

    keys: Dict[CellKey, None] = {}
    for lat_offset in range(-lat_span, lat_span + 1):
        for lon_offset in range(-lon_span, lon_span + 1):
            keys[(center_lat + lat_offset, wrap_lon_cell(center_lon + lon_offset, precision))] = None
    return list(keys)


# -------------------------
# Snapshot
# -------------------------

@dataclass(frozen=True)
class GridSnapshot:
    """
    One immutable build of the index. Never mutated after publication.
    """
    precision: float
    cells: Mapping[CellKey, Tuple[Any, ...]] = field(default_factory=dict)
    built_at: Optional[float] = None
    rider_count: int = 0
    excluded_ids: Tuple[str, ...] = ()

    @property
    def is_built(self) -> bool:
        return self.built_at is not None

    def riders_in_cell(self, key: CellKey) -> List[Any]:
        return list(self.cells.get(key, ()))

    def cells_within(self, lat: float, lon: float, radius_km: float) -> List[CellKey]:
        return cells_within(lat, lon, radius_km, self.precision)

    def covers_all_longitudes(self, lat: float, lon: float, radius_km: float) -> bool:
        return covers_all_longitudes(lat, lon, radius_km, self.precision)

    def collect(self, keys: Iterable[CellKey]) -> List[Any]:
        """
        Union of the riders in the given cells, de-duplicated by rider id
        (boundary duplication puts some riders in several cells).
        """
        seen: Dict[str, Any] = {}
        for key in keys:
            for rider in self.cells.get(key, ()):
                if rider.id not in seen:
                    seen[rider.id] = rider
        return list(seen.values())


def build_snapshot(
    riders: Sequence[Any],
    *,
    precision: float,
    edge_epsilon: float,
    built_at: float,
) -> GridSnapshot:
    """
    Bucket riders into cells. Riders without a usable location are left out.
    """
    buckets: Dict[CellKey, List[Any]] = {}
    excluded: List[str] = []
    indexed = 0

    for rider in riders:
        location = getattr(rider, "location", None)
        lat = getattr(location, "lat", None)
        lon = getattr(location, "lon", None)

        if location is None or not is_valid_coordinate(lat, lon):
            excluded.append(rider.id)
            continue

        for key in boundary_cells(lat, lon, precision, edge_epsilon):
            buckets.setdefault(key, []).append(rider)
        indexed += 1

    if excluded:
        logger.warning("Spatial index skipped %d rider(s) without valid coordinates: %s", len(excluded), excluded)

    return GridSnapshot(
        precision=precision,
        cells={key: tuple(group) for key, group in buckets.items()},
        built_at=built_at,
        rider_count=indexed,
        excluded_ids=tuple(excluded),
    )


# -------------------------
# Published index
# -------------------------

class SpatialIndex:
    """
    Holder of the current GridSnapshot with interval-bounded rebuilds.

    Injectable: every engine/test builds its own instance.
    """

    def __init__(
        self,
        precision: float = 0.01,
        edge_epsilon: float = 0.001,
        refresh_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if precision <= 0:
            raise ValueError("precision must be > 0")
        if edge_epsilon < 0 or edge_epsilon >= precision / 2:
            raise ValueError("edge_epsilon must be >= 0 and smaller than half a cell")

        self.precision = precision
        self.edge_epsilon = edge_epsilon
        self.refresh_interval_seconds = refresh_interval_seconds
        self._clock = clock
        self._snapshot = GridSnapshot(precision=precision)
        self._rebuild_lock = threading.Lock()

    @classmethod
    def from_policy(cls, policy, clock: Callable[[], float] = time.monotonic) -> SpatialIndex:
        return cls(
            precision=policy.grid_precision_degrees,
            edge_epsilon=policy.grid_edge_epsilon_degrees,
            refresh_interval_seconds=policy.index_refresh_seconds,
            clock=clock,
        )

    @property
    def snapshot(self) -> GridSnapshot:
        return self._snapshot

    @property
    def cell_size_km(self) -> float:
        return cell_size_km(self.precision)

    def is_due(self) -> bool:
        snapshot = self._snapshot
        if not snapshot.is_built:
            return True
        return (self._clock() - snapshot.built_at) >= self.refresh_interval_seconds

    def rebuild(self, load_riders: Callable[[], Iterable[Any]], *, force: bool = False) -> bool:
        """
        Rebuild from the full rider set if the interval has passed (or force=True).

        Returns True when a new snapshot was published. Errors from load_riders
        propagate and leave the previous snapshot in place.
        """
        if not force and not self.is_due():
            return False

        with self._rebuild_lock:
            # another thread may have published while we waited
            if not force and not self.is_due():
                return False

            riders = list(load_riders())
            snapshot = build_snapshot(
                riders,
                precision=self.precision,
                edge_epsilon=self.edge_epsilon,
                built_at=self._clock(),
            )
            self._snapshot = snapshot

        logger.info("Spatial index rebuilt: %d riders in %d cells", snapshot.rider_count, len(snapshot.cells))
        return True
