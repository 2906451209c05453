import math
import threading
from datetime import datetime, timezone

import pytest

from dispatch.dispatcher import AssignmentEngine
from dispatch.notifications import InMemoryAnalyticsRecorder
from geo.distance import EARTH_RADIUS_KM
from orders.models import DistanceCategory, Order
from orders.store import InMemoryOrderStore
from riders.models import Rider, RiderStatus
from riders.policy import DispatchPolicy
from riders.query import RiderQuery
from riders.store import InMemoryRiderStore

# Harare city center
CENTER = (-17.824858, 31.053028)

KM_PER_DEGREE_LAT = EARTH_RADIUS_KM * math.pi / 180
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def offset(point, north_km=0.0, east_km=0.0):
    """Point north_km / east_km away from point (exact for pure north offsets)."""
    lat, lon = point
    new_lat = lat + north_km / KM_PER_DEGREE_LAT
    new_lon = lon + east_km / (KM_PER_DEGREE_LAT * math.cos(math.radians(lat)))
    return new_lat, new_lon


def make_rider(rider_id, north_km=0.0, east_km=0.0, status=RiderStatus.AVAILABLE, center=CENTER, **kwargs):
    lat, lon = offset(center, north_km, east_km)
    kwargs.setdefault("email", f"{rider_id}@example.com")
    return Rider.new(rider_id, rider_id.title(), lat, lon, status, **kwargs)


def make_order(order_id="ORD-1", center=CENTER, category=DistanceCategory.LOCAL, **kwargs):
    return Order(id=order_id, pickup_location=center, distance_category=category, **kwargs)


def run_together(count, target):
    """Start count threads at once; returns (results by index, raised errors)."""
    barrier = threading.Barrier(count)
    results = [None] * count
    errors = []

    def worker(i):
        barrier.wait()
        try:
            results[i] = target(i)
        except Exception as error:
            errors.append(error)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    return results, errors


class GatedOrderStore(InMemoryOrderStore):
    """The first `parties` reads wait for each other, so every caller sees the same snapshot."""

    def __init__(self, orders, parties):
        super().__init__(orders)
        self.gate = threading.Barrier(parties, timeout=5)
        self.pending = parties
        self._gate_lock = threading.Lock()

    def get_by_id(self, order_id):
        order = super().get_by_id(order_id)
        with self._gate_lock:
            wait = self.pending > 0
            self.pending -= 1
        if wait:
            self.gate.wait()
        return order


@pytest.fixture
def policy():
    # index rebuilt on every query so tests always see the latest store state
    return DispatchPolicy(index_refresh_seconds=0)


@pytest.fixture
def analytics():
    return InMemoryAnalyticsRecorder()


@pytest.fixture
def build_engine(policy, analytics):
    """
    build_engine(riders, orders, **overrides) -> (engine, rider_store, order_store)
    """
    def _build(riders=(), orders=(), rider_store=None, order_store=None, **overrides):
        rider_store = rider_store or InMemoryRiderStore(riders)
        order_store = order_store or InMemoryOrderStore(orders)
        engine_policy = overrides.pop("policy", policy)
        engine = AssignmentEngine(
            rider_store,
            order_store,
            query=overrides.pop("query", None) or RiderQuery(rider_store, policy=engine_policy),
            policy=engine_policy,
            analytics=overrides.pop("analytics", analytics),
            now=overrides.pop("now", lambda: FIXED_NOW),
            **overrides,
        )
        return engine, rider_store, order_store

    return _build
