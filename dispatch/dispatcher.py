"""
Purpose: Orchestrator / decision pipeline (the "glue").
What it does:
Accepts an order id, walks the fallback ladder (dispatch.strategies) through the
nearby search, ranks each rung's candidates (dispatch.scoring) and commits the
first rider it can lock. When the ladder runs dry, or the attempt's deadline
passes, the order is flagged for manual assignment instead.

Commit protocol, per candidate:
1. Re-read the rider; skip it if it moved out of the rung radius since indexing.
2. Compare-and-set the rider status to busy. Losing the race means "next candidate".
3. Write the assignment onto the order, on condition that it is still unassigned.
   If another attempt got there first the rider is set back and
   InvalidTransition is raised. Any other write failure sets the rider back and
   raises CommitError, so no rider is left busy without an order.
4. Notify the rider and record analytics. Failures here are logged only.

Also handles a rider declining an order (release + remember the decline).
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from geo.distance import haversine_km, is_valid_coordinate
from orders.models import (
    PENDING_RIDER_ASSIGNMENT,
    RIDER_ASSIGNED,
    RIDER_REQUESTED,
    DistanceCategory,
    Order,
    StatusHistoryEntry,
)
from orders.store import OrderStore
from riders.models import NearbyRider, Rider, RiderStatus
from riders.policy import DispatchPolicy, default_dispatch_policy
from riders.query import RiderQuery, parse_point
from riders.store import RiderStore

from .exceptions import (
    CommitError,
    InvalidTransition,
    NotFoundError,
    RiderNotAssignedError,
    StaleOrderError,
    ValidationError,
)
from .notifications import (
    AnalyticsRecorder,
    LoggingAnalyticsRecorder,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    safe_notify_assignment,
    safe_track,
)
from .scoring import rank_candidates
from .strategies import SearchStrategy, build_strategy_ladder

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AssignmentResult:
    """
    Outcome of one assignment attempt. rider is None when the order was queued
    for manual assignment; that is a normal outcome, not an error.
    """
    order_id: str
    rider: Optional[Rider]
    distance_km: Optional[float]
    strategy: Optional[str]
    needs_manual_assignment: bool
    order: Optional[Order] = None

    @property
    def assigned(self) -> bool:
        return self.rider is not None


class AssignmentEngine:
    """
    Coordinates the transaction of an Order to a Rider using the fallback ladder.
    """

    def __init__(
        self,
        rider_store: RiderStore,
        order_store: OrderStore,
        query: Optional[RiderQuery] = None,
        policy: Optional[DispatchPolicy] = None,
        notifier: Optional[NotificationDispatcher] = None,
        analytics: Optional[AnalyticsRecorder] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.policy = policy or default_dispatch_policy()
        self.rider_store = rider_store
        self.order_store = order_store
        self.query = query or RiderQuery(rider_store, policy=self.policy)
        self.notifier = notifier if notifier is not None else LoggingNotificationDispatcher()
        self.analytics = analytics if analytics is not None else LoggingAnalyticsRecorder()
        self.clock = clock
        self.now = now

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(self, order_id: str, pickup=None) -> AssignmentResult:
        """
        Find and lock the best rider for an order.

        Raises ValidationError / NotFoundError before anything is mutated,
        InvalidTransition if the order is (or concurrently becomes) assigned, and
        CommitError if the order write fails after a rider was locked.
        """
        deadline = self.clock() + self.policy.assignment_deadline_seconds

        order = self.order_store.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        if order.assigned_rider_id:
            raise InvalidTransition(order.status, RIDER_ASSIGNED)

        lat, lon = parse_point(pickup if pickup is not None else order.pickup_location)
        if not is_valid_coordinate(lat, lon):
            raise ValidationError(f"Invalid pickup coordinates: {lat}, {lon}")

        is_intercity = order.is_intercity
        ladder = build_strategy_ladder(
            self.policy,
            is_intercity=is_intercity,
            parcel_weight_kg=order.parcel_weight_kg,
        )
        declined = set(order.declined_by)

        for strategy in ladder:
            if self.clock() >= deadline:
                logger.warning("Assignment deadline passed for order %s before rung %s", order_id, strategy.name)
                return self._queue_for_manual(order, "Assignment deadline exceeded")

            try:
                candidates = self.query.find_nearby(
                    (lat, lon),
                    radius_km=strategy.radius_km,
                    available_only=strategy.available_only,
                    filters=strategy.filters,
                )
            except Exception:
                logger.exception("Rung %s failed for order %s, treating as no candidates", strategy.name, order_id)
                continue

            candidates = [c for c in candidates if c.id not in declined]
            if not candidates:
                logger.info("No riders for order %s at rung %s, expanding", order_id, strategy.name)
                continue

            ranked = rank_candidates(candidates, is_intercity=is_intercity, policy=self.policy)
            for candidate in ranked:
                if self.clock() >= deadline:
                    logger.warning("Assignment deadline passed for order %s mid-commit", order_id)
                    return self._queue_for_manual(order, "Assignment deadline exceeded")

                result = self._try_commit(order, candidate, strategy, (lat, lon))
                if result is not None:
                    return result

            logger.info("All %d candidates at rung %s were taken, continuing", len(ranked), strategy.name)

        return self._queue_for_manual(order, "No riders available")

    def _try_commit(
        self,
        order: Order,
        candidate: NearbyRider,
        strategy: SearchStrategy,
        pickup: Tuple[float, float],
    ) -> Optional[AssignmentResult]:
        try:
            rider = self.rider_store.get_by_id(candidate.id)
        except Exception as error:
            raise CommitError(f"Could not re-read rider {candidate.id}", order_id=order.id, rider_id=candidate.id) from error

        if rider is None:
            logger.info("Rider %s vanished before commit", candidate.id)
            return None

        # A busy rider already holds an active order
        if rider.status == RiderStatus.BUSY:
            return None
        if strategy.available_only and rider.status != RiderStatus.AVAILABLE:
            return None

        if rider.location is None:
            return None
        distance = haversine_km(pickup[0], pickup[1], rider.location.lat, rider.location.lon)
        if distance > strategy.radius_km:
            logger.info("Rider %s moved out of range (%.2fkm), skipping", rider.id, distance)
            return None

        previous = rider.status
        try:
            won = self.rider_store.update_status(rider.id, RiderStatus.BUSY, expected=previous)
        except NotFoundError:
            return None
        except Exception as error:
            raise CommitError(f"Could not lock rider {rider.id}", order_id=order.id, rider_id=rider.id) from error

        if not won:
            logger.info("Lost race for rider %s on order %s", rider.id, order.id)
            return None

        now = self.now()
        fields = {
            "assigned_rider_id": rider.id,
            "status": RIDER_ASSIGNED,
            "needs_manual_assignment": False,
        }
        if order.is_intercity:
            window = self.policy.intercity_delivery_window_hours
            if DistanceCategory(order.distance_category) == DistanceCategory.LONG_DISTANCE:
                window = self.policy.long_distance_delivery_window_hours
            fields["expected_pickup_time"] = now + timedelta(hours=self.policy.intercity_pickup_window_hours)
            fields["expected_delivery_time"] = now + timedelta(hours=window)

        history = StatusHistoryEntry(
            status=RIDER_ASSIGNED,
            timestamp=now,
            note=f"Rider {rider.name} assigned to delivery ({distance:.2f}km away)",
        )

        try:
            updated = self.order_store.update(
                order.id, fields, history=history, expected={"assigned_rider_id": None}
            )
        except StaleOrderError as error:
            logger.warning("Order %s was assigned concurrently, releasing rider %s", order.id, rider.id)
            self._revert_rider(rider.id, previous)
            raise InvalidTransition(error.status, RIDER_ASSIGNED) from error
        except Exception as error:
            self._revert_rider(rider.id, previous)
            raise CommitError(f"Could not assign order {order.id}", order_id=order.id, rider_id=rider.id) from error

        logger.info("Order %s assigned to rider %s at rung %s (%.2fkm)", order.id, rider.id, strategy.name, distance)

        safe_notify_assignment(self.notifier, rider, order.id, pickup)
        safe_track(
            self.analytics,
            "rider_assigned",
            {
                "orderId": order.id,
                "riderId": rider.id,
                "distance": distance,
                "isIntercity": order.is_intercity,
            },
        )

        return AssignmentResult(
            order_id=order.id,
            rider=rider,
            distance_km=distance,
            strategy=strategy.name,
            needs_manual_assignment=False,
            order=updated,
        )

    def _revert_rider(self, rider_id: str, previous: RiderStatus, current: RiderStatus = RiderStatus.BUSY) -> None:
        try:
            if not self.rider_store.update_status(rider_id, previous, expected=current):
                logger.error("Rider %s changed status before it could be reverted to %s", rider_id, previous.value)
        except Exception:
            logger.exception("Failed to revert rider %s to %s", rider_id, previous.value)

    def _queue_for_manual(self, order: Order, reason: str) -> AssignmentResult:
        history = StatusHistoryEntry(
            status=PENDING_RIDER_ASSIGNMENT,
            timestamp=self.now(),
            note=f"{reason}; queued for manual assignment",
        )
        try:
            updated = self.order_store.update(
                order.id,
                {"status": PENDING_RIDER_ASSIGNMENT, "needs_manual_assignment": True},
                history=history,
                expected={"assigned_rider_id": None},
            )
        except StaleOrderError as error:
            # a concurrent attempt assigned the order; leave it alone
            raise InvalidTransition(error.status, PENDING_RIDER_ASSIGNMENT) from error
        except Exception:
            logger.exception("Failed to flag order %s for manual assignment", order.id)
            updated = order

        logger.warning("Order %s queued for manual assignment: %s", order.id, reason)
        safe_track(self.analytics, "order_queued_for_manual_assignment", {"orderId": order.id, "reason": reason})

        return AssignmentResult(
            order_id=order.id,
            rider=None,
            distance_km=None,
            strategy=None,
            needs_manual_assignment=True,
            order=updated,
        )

    # ------------------------------------------------------------------
    # Decline
    # ------------------------------------------------------------------

    def decline(self, order_id: str, rider_id: str, reason: str = "") -> Order:
        """
        Record that a rider declined an order. If the rider held the assignment
        it is released and the order goes back on offer (status rider_requested).
        The rider is never offered this order again.
        """
        order = self.order_store.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        rider = self.rider_store.get_by_id(rider_id)
        if rider is None:
            raise NotFoundError(f"Rider {rider_id} not found")

        if order.assigned_rider_id and order.assigned_rider_id != rider_id:
            raise RiderNotAssignedError(f"Order {order_id} is assigned to another rider")

        holds_assignment = order.assigned_rider_id == rider_id
        if holds_assignment and order.status != RIDER_ASSIGNED:
            raise InvalidTransition(order.status, RIDER_REQUESTED)

        fields = {"declined_by": set(order.declined_by) | {rider_id}}
        history = None
        released = False

        if holds_assignment:
            try:
                released = self.rider_store.update_status(rider_id, RiderStatus.AVAILABLE, expected=RiderStatus.BUSY)
            except Exception as error:
                raise CommitError(f"Could not release rider {rider_id}", order_id=order_id, rider_id=rider_id) from error
            if not released:
                logger.warning("Rider %s was not busy while holding order %s", rider_id, order_id)

            note = f"Rider {rider.name} declined the order"
            if reason:
                note = f"{note}: {reason}"
            fields.update(assigned_rider_id=None, status=RIDER_REQUESTED)
            history = StatusHistoryEntry(status=RIDER_REQUESTED, timestamp=self.now(), note=note)

        expected = {
            "assigned_rider_id": order.assigned_rider_id,
            "status": order.status,
            "declined_by": order.declined_by,
        }
        try:
            updated = self.order_store.update(order_id, fields, history=history, expected=expected)
        except StaleOrderError as error:
            if released:
                self._revert_rider(rider_id, RiderStatus.BUSY, current=RiderStatus.AVAILABLE)
            raise InvalidTransition(error.status, RIDER_REQUESTED) from error
        except Exception as error:
            if released:
                self._revert_rider(rider_id, RiderStatus.BUSY, current=RiderStatus.AVAILABLE)
            raise CommitError(f"Could not record decline on order {order_id}", order_id=order_id, rider_id=rider_id) from error

        logger.info("Rider %s declined order %s", rider_id, order_id)
        safe_track(
            self.analytics,
            "order_declined_by_rider",
            {"orderId": order_id, "riderId": rider_id, "reason": reason},
        )
        return updated

    def decline_and_reassign(self, order_id: str, rider_id: str, reason: str = "") -> Tuple[Order, AssignmentResult]:
        declined = self.decline(order_id, rider_id, reason)
        return declined, self.assign(order_id)
