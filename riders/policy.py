"""
Purpose: Central configuration for rider search, the fallback ladder and scoring.
What it does:

Stores all tunable thresholds/caps for finding and picking riders:

INITIAL_RADIUS_KM = 5
EXPANDED_RADII_KM = [10, 15, 20]
INTERCITY quality gates = 50 deliveries / 4.5 rating, relaxed to 20 / 4.0
SCORE = rating * 10 + completed_deliveries / 100 - distance_km * 0.5

These values are untuned heuristics. Override them per deployment via
DISPATCH_* environment variables (a .env file is honoured).

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv


@dataclass(frozen=True)
class DispatchPolicy:
    """
    Central configuration for the rider matching engine.
    """

    # --- Search radius ladder ---
    # First rung, then the expansion rungs tried in order until one is non-empty.
    initial_radius_km: float = 5.0
    expanded_radii_km: Tuple[float, ...] = (10.0, 15.0, 20.0)
    # Radius used by the relaxed-quality rung and by the any-status rung.
    relaxed_radius_km: float = 20.0
    any_status_radius_km: float = 20.0

    # --- Nearby search bounds ---
    # A radius that is not a positive number falls back to the default;
    # anything larger than the maximum is clamped to keep queries cheap.
    default_radius_km: float = 5.0
    max_radius_km: float = 50.0

    # --- Intercity quality gates ---
    intercity_min_completed_deliveries: int = 50
    intercity_min_rating: float = 4.5
    relaxed_min_completed_deliveries: int = 20
    relaxed_min_rating: float = 4.0
    # Used as the capacity gate when an intercity order has no parcel weight.
    default_parcel_weight_kg: float = 1.0

    # --- Intercity scoring weights ---
    rating_weight: float = 10.0
    deliveries_weight: float = 0.01
    distance_weight: float = 0.5

    # --- Spatial index ---
    # 0.01 degrees is roughly 1.1 km per grid cell.
    grid_precision_degrees: float = 0.01
    grid_edge_epsilon_degrees: float = 0.001
    index_refresh_seconds: float = 300.0

    # --- Assignment attempt ---
    assignment_deadline_seconds: float = 10.0

    # --- Intercity delivery windows ---
    intercity_pickup_window_hours: float = 1.0
    intercity_delivery_window_hours: float = 72.0
    long_distance_delivery_window_hours: float = 96.0

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        radii = (self.initial_radius_km,) + tuple(self.expanded_radii_km)
        if any(r <= 0 for r in radii):
            raise ValueError("search radii must be > 0")

        if list(radii) != sorted(radii):
            raise ValueError("search radii must be non-decreasing")

        if self.relaxed_radius_km <= 0 or self.any_status_radius_km <= 0:
            raise ValueError("relaxed and any-status radii must be > 0")

        if self.default_radius_km <= 0 or self.max_radius_km <= 0:
            raise ValueError("default_radius_km and max_radius_km must be > 0")

        if max(radii + (self.relaxed_radius_km, self.any_status_radius_km)) > self.max_radius_km:
            raise ValueError("ladder radii cannot exceed max_radius_km")

        if self.intercity_min_rating < 0 or self.relaxed_min_rating < 0:
            raise ValueError("rating thresholds must be >= 0")

        if self.intercity_min_completed_deliveries < 0 or self.relaxed_min_completed_deliveries < 0:
            raise ValueError("delivery thresholds must be >= 0")

        if self.grid_precision_degrees <= 0:
            raise ValueError("grid_precision_degrees must be > 0")

        if not 0 <= self.grid_edge_epsilon_degrees < self.grid_precision_degrees / 2:
            raise ValueError("grid_edge_epsilon_degrees must be smaller than half a cell")

        if self.index_refresh_seconds < 0:
            raise ValueError("index_refresh_seconds must be >= 0")

        if self.assignment_deadline_seconds <= 0:
            raise ValueError("assignment_deadline_seconds must be > 0")

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> DispatchPolicy:
        """
        Build a policy from DISPATCH_<FIELD_NAME> variables, e.g.
        DISPATCH_INITIAL_RADIUS_KM=3 or DISPATCH_EXPANDED_RADII_KM=8,12,20.
        Unset variables keep their defaults.
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        overrides = {}
        for f in fields(cls):
            raw = env.get(f"DISPATCH_{f.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            overrides[f.name] = _parse_setting(f.name, raw)

        policy = cls(**overrides)
        policy.validate()
        return policy


def _parse_setting(name: str, raw: str):
    default = getattr(DispatchPolicy, name, None)
    if name == "expanded_radii_km":
        return tuple(float(part) for part in raw.split(",") if part.strip())
    if isinstance(default, int) and not isinstance(default, bool):
        return int(raw)
    return float(raw)


def default_dispatch_policy() -> DispatchPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DispatchPolicy()
    p.validate()
    return p
