"""
Purpose: The fallback ladder (the "how hard do we look" layer).
What it does:
Turns an order's shape (local vs intercity, parcel weight) into an ordered list
of search rungs. The engine walks the rungs until one produces a rider it can
commit; running off the end means the order goes to the manual queue.

Default ladder:
1. initial_5km          available riders within 5 km
2. expand_10/15/20km    same filters, growing radius
3. relaxed_quality_20km intercity only: 20 deliveries / 4.0 rating
4. any_status_20km      status filter dropped, current filters kept
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from riders.models import RiderFilters
from riders.policy import DispatchPolicy, default_dispatch_policy


@dataclass(frozen=True)
class SearchStrategy:
    name: str
    radius_km: float
    filters: RiderFilters
    available_only: bool = True


def _radius_label(radius_km: float) -> str:
    return f"{radius_km:g}km"


def intercity_filters(policy: DispatchPolicy, parcel_weight_kg: Optional[float]) -> RiderFilters:
    weight = parcel_weight_kg if parcel_weight_kg else policy.default_parcel_weight_kg
    return RiderFilters(
        min_completed_deliveries=policy.intercity_min_completed_deliveries,
        min_rating=policy.intercity_min_rating,
        min_weight_capacity=weight,
    )


def build_strategy_ladder(
    policy: Optional[DispatchPolicy] = None,
    *,
    is_intercity: bool = False,
    parcel_weight_kg: Optional[float] = None,
) -> List[SearchStrategy]:
    policy = policy or default_dispatch_policy()

    filters = intercity_filters(policy, parcel_weight_kg) if is_intercity else RiderFilters()

    ladder = [SearchStrategy(f"initial_{_radius_label(policy.initial_radius_km)}", policy.initial_radius_km, filters)]

    for radius in policy.expanded_radii_km:
        ladder.append(SearchStrategy(f"expand_{_radius_label(radius)}", radius, filters))

    if is_intercity:
        # Weight gate stays; only the quality bar drops
        filters = RiderFilters(
            min_completed_deliveries=policy.relaxed_min_completed_deliveries,
            min_rating=policy.relaxed_min_rating,
            min_weight_capacity=filters.min_weight_capacity,
        )
        ladder.append(
            SearchStrategy(f"relaxed_quality_{_radius_label(policy.relaxed_radius_km)}", policy.relaxed_radius_km, filters)
        )

    ladder.append(
        SearchStrategy(
            f"any_status_{_radius_label(policy.any_status_radius_km)}",
            policy.any_status_radius_km,
            filters,
            available_only=False,
        )
    )
    return ladder
