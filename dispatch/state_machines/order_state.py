"""
Post-assignment order states, as reported by the rider.

accepted -> picked_up -> in_transit -> out_for_delivery -> delivered | failed_delivery
cancelled is reachable from every non-terminal state.
An order still carrying an engine status (e.g. "Rider Assigned") can only move to accepted.
The write only lands if the order still has the status the transition was
checked against, so two concurrent reports cannot both leave the same state.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

from orders.models import Order, StatusHistoryEntry
from orders.store import OrderStore
from riders.models import RiderStatus
from riders.store import RiderStore

from ..exceptions import InvalidTransition, NotFoundError, RiderNotAssignedError, StaleOrderError, ValidationError
from ..notifications import NotificationDispatcher, safe_notify_status

logger = logging.getLogger(__name__)


class RiderOrderStatus(str, Enum):
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY = "failed_delivery"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: Dict[RiderOrderStatus, FrozenSet[RiderOrderStatus]] = {
    RiderOrderStatus.ACCEPTED: frozenset({RiderOrderStatus.PICKED_UP, RiderOrderStatus.CANCELLED}),
    RiderOrderStatus.PICKED_UP: frozenset({RiderOrderStatus.IN_TRANSIT, RiderOrderStatus.CANCELLED}),
    RiderOrderStatus.IN_TRANSIT: frozenset({RiderOrderStatus.OUT_FOR_DELIVERY, RiderOrderStatus.CANCELLED}),
    RiderOrderStatus.OUT_FOR_DELIVERY: frozenset(
        {RiderOrderStatus.DELIVERED, RiderOrderStatus.FAILED_DELIVERY, RiderOrderStatus.CANCELLED}
    ),
    RiderOrderStatus.DELIVERED: frozenset(),
    RiderOrderStatus.FAILED_DELIVERY: frozenset(),
    RiderOrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, allowed in VALID_TRANSITIONS.items() if not allowed)


def parse_status(value) -> RiderOrderStatus:
    try:
        return RiderOrderStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown order status: {value!r}")


def validate_transition(current: str, requested: RiderOrderStatus) -> None:
    """
    Raises InvalidTransition unless current -> requested is allowed.
    """
    try:
        current_status = RiderOrderStatus(current)
    except ValueError:
        # Legacy / engine-produced status
        if requested != RiderOrderStatus.ACCEPTED:
            raise InvalidTransition(current, requested.value)
        return

    if requested not in VALID_TRANSITIONS[current_status]:
        raise InvalidTransition(current_status.value, requested.value)


class OrderStatusMachine:
    def __init__(
        self,
        rider_store: RiderStore,
        order_store: OrderStore,
        notifier: Optional[NotificationDispatcher] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.rider_store = rider_store
        self.order_store = order_store
        self.notifier = notifier
        self.now = now

    def update_status(self, order_id: str, rider_id: str, status, notes: str = "") -> Order:
        requested = parse_status(status)

        order = self.order_store.get_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        if order.assigned_rider_id != rider_id:
            raise RiderNotAssignedError(f"Order {order_id} is not assigned to rider {rider_id}")

        validate_transition(order.status, requested)

        history = StatusHistoryEntry(status=requested.value, timestamp=self.now(), note=notes or "")
        try:
            updated = self.order_store.update(
                order_id,
                {"status": requested.value},
                history=history,
                expected={"status": order.status, "assigned_rider_id": rider_id},
            )
        except StaleOrderError as error:
            logger.warning("Order %s changed while rider %s reported %s", order_id, rider_id, requested.value)
            raise InvalidTransition(error.status, requested.value) from error

        if requested in TERMINAL_STATUSES:
            # The status update stands even if freeing the rider fails
            try:
                self.rider_store.update_status(rider_id, RiderStatus.AVAILABLE)
            except Exception:
                logger.exception("Failed to make rider %s available after order %s ended", rider_id, order_id)

        safe_notify_status(self.notifier, updated, requested.value, notes)
        return updated

    def update_status_by_email(self, email: str, order_id: str, status, notes: str = "") -> Order:
        """Same as update_status, with the rider resolved from the authenticated user's e-mail."""
        rider = self.rider_store.get_by_email(email)
        if rider is None:
            raise NotFoundError(f"No rider registered for {email}")
        return self.update_status(order_id, rider.id, status, notes)
