"""
Wiring between the HTTP layer and the engine.

One SpatialIndex per process (rebuilt on its own interval); stores, query and
engine objects are cheap and built per request.
"""

import os
from functools import lru_cache

from dispatch.dispatcher import AssignmentEngine
from dispatch.notifications import (
    LoggingAnalyticsRecorder,
    LoggingNotificationDispatcher,
    WebhookNotificationDispatcher,
)
from dispatch.state_machines.order_state import OrderStatusMachine
from geo.spatial_index import SpatialIndex
from riders.policy import DispatchPolicy
from riders.query import RiderQuery

from .stores import DjangoOrderStore, DjangoRiderStore


@lru_cache(maxsize=None)
def get_policy() -> DispatchPolicy:
    return DispatchPolicy.from_env()


@lru_cache(maxsize=None)
def get_spatial_index() -> SpatialIndex:
    return SpatialIndex.from_policy(get_policy())


def get_notifier():
    if os.getenv("NOTIFICATION_WEBHOOK_URL"):
        return WebhookNotificationDispatcher()
    return LoggingNotificationDispatcher()


def get_rider_query() -> RiderQuery:
    return RiderQuery(DjangoRiderStore(), get_spatial_index(), get_policy())


def get_assignment_engine() -> AssignmentEngine:
    rider_store = DjangoRiderStore()
    return AssignmentEngine(
        rider_store,
        DjangoOrderStore(),
        query=RiderQuery(rider_store, get_spatial_index(), get_policy()),
        policy=get_policy(),
        notifier=get_notifier(),
        analytics=LoggingAnalyticsRecorder(),
    )


def get_status_machine() -> OrderStatusMachine:
    return OrderStatusMachine(DjangoRiderStore(), DjangoOrderStore(), notifier=get_notifier())
