#Purpose: Ranking/selection model (the "who is best" layer).
#Takes candidates (already filtered and within radius) and orders them for commit attempts.
#Local orders: nearest first (the search already returns them that way).
#Intercity orders: weighted score, highest first:
#score = rating * 10 + completed_deliveries / 100 - distance_km * 0.5
#Weights come from DispatchPolicy. Ties keep distance order (sort is stable).

from typing import List, Optional

from riders.models import NearbyRider
from riders.policy import DispatchPolicy, default_dispatch_policy


def intercity_score(candidate: NearbyRider, policy: Optional[DispatchPolicy] = None) -> float:
    policy = policy or default_dispatch_policy()
    rider = candidate.rider
    return (
        (rider.rating or 0.0) * policy.rating_weight
        + (rider.completed_deliveries or 0) * policy.deliveries_weight
        - candidate.distance_km * policy.distance_weight
    )


def rank_candidates(
    candidates: List[NearbyRider],
    *,
    is_intercity: bool = False,
    policy: Optional[DispatchPolicy] = None,
) -> List[NearbyRider]:
    if not is_intercity:
        return sorted(candidates, key=lambda c: (c.distance_km, c.rider.id))

    policy = policy or default_dispatch_policy()
    by_distance = sorted(candidates, key=lambda c: (c.distance_km, c.rider.id))
    return sorted(by_distance, key=lambda c: intercity_score(c, policy), reverse=True)
