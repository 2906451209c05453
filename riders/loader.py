"""
Purpose: CSV fixtures for riders.
What it does:
- generate_mock_riders: scatters a fleet around a city center and writes it to CSV.
- load_riders_csv: reads that CSV back into Rider snapshots.

Columns: rider_id, name, email, lat, lon, status, rating,
completed_deliveries, max_weight_kg, service_areas (";"-separated).
Empty lat/lon means the rider has never reported a position.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .models import Rider, RiderStatus

# Harare city center
DEFAULT_CENTER = (-17.824858, 31.053028)

RIDER_COLUMNS = [
    "rider_id",
    "name",
    "email",
    "lat",
    "lon",
    "status",
    "rating",
    "completed_deliveries",
    "max_weight_kg",
    "service_areas",
]


def generate_mock_riders(
    path: str = "mock_riders.csv",
    count: int = 100,
    center: Tuple[float, float] = DEFAULT_CENTER,
    seed: Optional[int] = None,
    spread_degrees: float = 0.15,
) -> pd.DataFrame:
    """
    Riders are scattered uniformly within +/- spread/2 degrees of center
    (0.15 is roughly +/- 8 km). 80% available, 15% busy, 5% offline.
    """
    rng = np.random.default_rng(seed)

    lats = center[0] + rng.uniform(-spread_degrees / 2, spread_degrees / 2, count)
    lons = center[1] + rng.uniform(-spread_degrees / 2, spread_degrees / 2, count)
    statuses = rng.choice(
        [RiderStatus.AVAILABLE.value, RiderStatus.BUSY.value, RiderStatus.OFFLINE.value],
        size=count,
        p=[0.8, 0.15, 0.05],
    )
    # Ratings cluster high, as they do on real marketplaces
    ratings = np.clip(rng.normal(4.4, 0.4, count), 1.0, 5.0)
    completed = rng.integers(0, 500, count)
    max_weights = rng.choice([5.0, 10.0, 20.0, 50.0], size=count, p=[0.4, 0.3, 0.2, 0.1])

    df = pd.DataFrame(
        {
            "rider_id": [f"RDR-{str(i + 1).zfill(4)}" for i in range(count)],
            "name": [f"Rider {i + 1}" for i in range(count)],
            "email": [f"rider{i + 1}@example.com" for i in range(count)],
            "lat": np.round(lats, 6),
            "lon": np.round(lons, 6),
            "status": statuses,
            "rating": np.round(ratings, 1),
            "completed_deliveries": completed,
            "max_weight_kg": max_weights,
            "service_areas": "harare",
        },
        columns=RIDER_COLUMNS,
    )
    df.to_csv(path, index=False)
    return df


def load_riders_csv(path: str) -> List[Rider]:
    df = pd.read_csv(path, dtype={"rider_id": str, "name": str, "email": str, "service_areas": str})

    missing = set(RIDER_COLUMNS[:6]) - set(df.columns)
    if missing:
        raise ValueError(f"{path} is missing columns: {sorted(missing)}")

    riders: List[Rider] = []
    for row in df.itertuples(index=False):
        lat = None if pd.isna(row.lat) else float(row.lat)
        lon = None if pd.isna(row.lon) else float(row.lon)

        areas = getattr(row, "service_areas", None)
        service_areas = [] if areas is None or pd.isna(areas) else [a for a in str(areas).split(";") if a]

        riders.append(
            Rider.new(
                str(row.rider_id),
                str(row.name),
                lat,
                lon,
                str(row.status),
                email=None if pd.isna(row.email) else str(row.email),
                rating=_number(row, "rating", 0.0),
                completed_deliveries=int(_number(row, "completed_deliveries", 0)),
                max_weight_kg=_number(row, "max_weight_kg", 0.0),
                service_areas=service_areas,
            )
        )
    return riders


def _number(row, column: str, default: float) -> float:
    value = getattr(row, column, None)
    if value is None or pd.isna(value):
        return default
    return float(value)
