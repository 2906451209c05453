"""
Purpose: Order record store contract + in-memory implementation.

update() is the only write path: it applies a set of field changes and
optionally appends one history entry, atomically per order. Passing expected=
makes the write conditional: if any listed field no longer holds the value the
caller read, StaleOrderError is raised and nothing is written.
"""

from __future__ import annotations

import copy
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from dispatch.exceptions import NotFoundError, StaleOrderError, ValidationError
from .models import Order, StatusHistoryEntry

UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "assigned_rider_id",
        "needs_manual_assignment",
        "declined_by",
        "expected_pickup_time",
        "expected_delivery_time",
    }
)


class OrderStore(Protocol):
    def get_by_id(self, order_id: str) -> Optional[Order]: ...

    def update(
        self,
        order_id: str,
        fields: Mapping[str, Any],
        *,
        history: Optional[StatusHistoryEntry] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Order: ...


def check_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Order fields cannot be updated: {sorted(unknown)}")


def check_expected(order_id: str, current: Mapping[str, Any], expected: Optional[Mapping[str, Any]]) -> None:
    """
    Compare the stored values against what the caller read earlier.
    Must run under the same lock (or row lock) as the write it guards.
    """
    if not expected:
        return
    check_fields(expected)
    for name, value in expected.items():
        actual = current[name]
        if name == "declined_by":
            actual, value = set(actual or ()), set(value or ())
        if actual != value:
            raise StaleOrderError(order_id, name, value, actual, status=current["status"])


class InMemoryOrderStore:
    def __init__(self, orders: Iterable[Order] = ()):
        self._orders: Dict[str, Order] = {}
        self._lock = threading.Lock()
        for order in orders:
            self._orders[order.id] = copy.deepcopy(order)

    def add(self, order: Order) -> Order:
        with self._lock:
            self._orders[order.id] = copy.deepcopy(order)
        return order

    def get_by_id(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order is not None else None

    def get_all(self) -> List[Order]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._orders.values()]

    def update(
        self,
        order_id: str,
        fields: Mapping[str, Any],
        *,
        history: Optional[StatusHistoryEntry] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Order:
        check_fields(fields)
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            check_expected(order_id, vars(order), expected)
            for name, value in fields.items():
                if name == "declined_by":
                    value = set(value)
                setattr(order, name, value)
            if history is not None:
                order.status_history.append(history)
            return copy.deepcopy(order)
