import pytest

from dispatch.exceptions import InvalidTransition, StaleOrderError
from orders.models import RIDER_ASSIGNED, StatusHistoryEntry
from orders.store import InMemoryOrderStore
from riders.models import RiderStatus
from riders.store import InMemoryRiderStore

from conftest import FIXED_NOW, GatedOrderStore, make_order, make_rider, run_together


class AssignedBehindYourBackStore(InMemoryOrderStore):
    """Hands out the unassigned order, then lets another dispatcher assign it."""

    def get_by_id(self, order_id):
        order = super().get_by_id(order_id)
        if order is not None and order.assigned_rider_id is None:
            super().update(
                order_id,
                {"assigned_rider_id": "other", "status": RIDER_ASSIGNED},
                history=StatusHistoryEntry(status=RIDER_ASSIGNED, timestamp=FIXED_NOW, note="assigned elsewhere"),
            )
        return order


def test_two_orders_racing_for_one_rider(build_engine):
    engine, riders, orders = build_engine(
        [make_rider("only", north_km=1)],
        [make_order("ORD-1"), make_order("ORD-2")],
    )

    results, errors = run_together(2, lambda i: engine.assign(f"ORD-{i + 1}"))

    assert errors == []
    winners = [r for r in results if r.assigned]
    losers = [r for r in results if not r.assigned]
    assert len(winners) == 1
    assert len(losers) == 1
    assert winners[0].rider.id == "only"
    assert losers[0].needs_manual_assignment

    assigned = [o for o in orders.get_all() if o.assigned_rider_id == "only"]
    assert len(assigned) == 1
    assert riders.get_by_id("only").status == RiderStatus.BUSY


def test_two_assignments_racing_for_one_order(build_engine):
    engine, riders, orders = build_engine(
        [make_rider("a", north_km=1), make_rider("b", north_km=2)],
        order_store=GatedOrderStore([make_order("ORD-1")], parties=2),
    )

    results, errors = run_together(2, lambda i: engine.assign("ORD-1"))

    assert len(errors) == 1
    assert isinstance(errors[0], InvalidTransition)
    winner = next(r for r in results if r is not None)

    busy = [r.id for r in riders.get_all() if r.status == RiderStatus.BUSY]
    assert busy == [winner.rider.id]

    order = orders.get_by_id("ORD-1")
    assert order.assigned_rider_id == winner.rider.id
    assert [h.status for h in order.status_history] == [RIDER_ASSIGNED]


def test_commit_on_an_order_assigned_elsewhere_releases_the_rider(build_engine):
    engine, riders, orders = build_engine(
        [make_rider("near", north_km=1)],
        order_store=AssignedBehindYourBackStore([make_order()]),
    )

    with pytest.raises(InvalidTransition) as excinfo:
        engine.assign("ORD-1")

    assert isinstance(excinfo.value.__cause__, StaleOrderError)
    assert riders.get_by_id("near").status == RiderStatus.AVAILABLE
    assert orders.get_by_id("ORD-1").assigned_rider_id == "other"


def test_manual_queue_never_overwrites_a_concurrent_assignment(build_engine, analytics):
    engine, _, orders = build_engine(order_store=AssignedBehindYourBackStore([make_order()]))

    with pytest.raises(InvalidTransition):
        engine.assign("ORD-1")

    order = orders.get_by_id("ORD-1")
    assert order.assigned_rider_id == "other"
    assert order.status == RIDER_ASSIGNED
    assert not order.needs_manual_assignment
    assert analytics.named("order_queued_for_manual_assignment") == []


def test_conditional_order_write_has_a_single_winner():
    store = InMemoryOrderStore([make_order()])

    results, errors = run_together(
        20,
        lambda i: store.update(
            "ORD-1",
            {"assigned_rider_id": f"r{i}", "status": RIDER_ASSIGNED},
            expected={"assigned_rider_id": None},
        ),
    )

    assert len([r for r in results if r is not None]) == 1
    assert len(errors) == 19
    assert all(isinstance(e, StaleOrderError) for e in errors)


def test_many_orders_never_share_a_rider(build_engine):
    engine, riders, orders = build_engine(
        [make_rider(f"r{i}", north_km=0.5 + i * 0.3) for i in range(5)],
        [make_order(f"ORD-{i}") for i in range(10)],
    )

    results, errors = run_together(10, lambda i: engine.assign(f"ORD-{i}"))

    assert errors == []
    assigned_riders = [r.rider.id for r in results if r.assigned]
    assert len(assigned_riders) == 5
    assert len(set(assigned_riders)) == 5
    assert sum(1 for r in results if r.needs_manual_assignment) == 5
    assert all(r.status == RiderStatus.BUSY for r in riders.get_all())


def test_compare_and_set_has_a_single_winner():
    store = InMemoryRiderStore([make_rider("r1")])

    results, errors = run_together(
        20,
        lambda i: store.update_status("r1", RiderStatus.BUSY, expected=RiderStatus.AVAILABLE),
    )

    assert errors == []
    assert results.count(True) == 1
    assert results.count(False) == 19
