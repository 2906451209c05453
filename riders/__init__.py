"""
Riders domain package.

Public API:
- Domain models: Rider, Location, Capacity, RiderStatus, NearbyRider, RiderFilters

Search, stores and policy are imported from their own modules
(riders.query, riders.store, riders.policy).
"""
from .models import Capacity, Location, NearbyRider, Rider, RiderFilters, RiderStatus

__all__ = ["Capacity",
           "Location",
           "NearbyRider",
           "Rider",
           "RiderFilters",
           "RiderStatus",
           ]
