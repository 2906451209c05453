"""
End-to-end assignment simulation against the in-memory stores.

Loads (or generates) a rider fleet, creates random pickup orders around the
same center and runs every order through the AssignmentEngine. A share of the
assigned riders decline, to exercise the release and re-offer path.
Results are written to assignment_results.csv.
"""

import argparse
import logging
import os
import time

import numpy as np
import pandas as pd

from dispatch.dispatcher import AssignmentEngine
from dispatch.notifications import InMemoryAnalyticsRecorder, LoggingNotificationDispatcher
from orders.models import DistanceCategory, Order
from orders.store import InMemoryOrderStore
from riders.loader import DEFAULT_CENTER, generate_mock_riders, load_riders_csv
from riders.policy import DispatchPolicy
from riders.query import RiderQuery
from riders.store import InMemoryRiderStore


def build_orders(count, center, rng):
    categories = rng.choice(
        [DistanceCategory.LOCAL.value, DistanceCategory.INTERCITY.value, DistanceCategory.LONG_DISTANCE.value],
        size=count,
        p=[0.8, 0.15, 0.05],
    )
    orders = []
    for i in range(count):
        orders.append(
            Order.new(
                f"ORD-{str(i + 1).zfill(5)}",
                float(center[0] + rng.uniform(-0.08, 0.08)),
                float(center[1] + rng.uniform(-0.08, 0.08)),
                categories[i],
                parcel_weight_kg=float(np.round(rng.uniform(0.5, 15.0), 1)),
            )
        )
    return orders


def run_simulation(riders_csv=None, order_count=50, decline_rate=0.1, seed=7):
    print("=== STARTING END-TO-END ASSIGNMENT SIMULATION ===")
    rng = np.random.default_rng(seed)
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

    if riders_csv is None:
        riders_csv = os.path.join(base_dir, "mock_riders.csv")
        generate_mock_riders(riders_csv, count=150, center=DEFAULT_CENTER, seed=seed)

    riders = load_riders_csv(riders_csv)
    orders = build_orders(order_count, DEFAULT_CENTER, rng)
    print(f"Loaded {len(riders)} Riders and {len(orders)} Orders.\n")

    policy = DispatchPolicy.from_env()
    rider_store = InMemoryRiderStore(riders)
    order_store = InMemoryOrderStore(orders)
    analytics = InMemoryAnalyticsRecorder()
    engine = AssignmentEngine(
        rider_store,
        order_store,
        query=RiderQuery(rider_store, policy=policy),
        policy=policy,
        notifier=LoggingNotificationDispatcher(),
        analytics=analytics,
    )

    rows = []
    start_time = time.time()
    for order in orders:
        result = engine.assign(order.id)

        if result.assigned and rng.random() < decline_rate:
            print(f"[DECLINE] {result.rider.id} declined {order.id}, re-offering")
            _, result = engine.decline_and_reassign(order.id, result.rider.id, "simulated decline")

        rows.append({
            "order_id": order.id,
            "category": order.distance_category.value,
            "rider_id": result.rider.id if result.assigned else "MANUAL",
            "strategy": result.strategy or "exhausted",
            "distance_km": round(result.distance_km, 2) if result.distance_km is not None else None,
        })
        if result.assigned:
            print(f"[SUCCESS] {order.id} -> {result.rider.id} via {result.strategy} ({result.distance_km:.2f}km)")
        else:
            print(f"[MANUAL] {order.id} -> no rider found, queued for manual assignment")

    elapsed = time.time() - start_time
    df = pd.DataFrame(rows)
    output_path = os.path.join(base_dir, "assignment_results.csv")
    df.to_csv(output_path, index=False)

    assigned = int((df["rider_id"] != "MANUAL").sum())
    print("\n=== SIMULATION COMPLETE ===")
    print(f"Orders assigned: {assigned} / {len(df)} in {elapsed:.2f}s")
    print("Assignments per rung:")
    for strategy, count in df["strategy"].value_counts().items():
        print(f"  {strategy}: {count}")
    print(f"Declines recorded: {len(analytics.named('order_declined_by_rider'))}")
    print(f"Results written to '{output_path}'.")
    return df


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the rider assignment simulation.")
    parser.add_argument("--riders", default=None, help="rider CSV; generated when omitted")
    parser.add_argument("--orders", type=int, default=50)
    parser.add_argument("--decline-rate", type=float, default=0.1)
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    run_simulation(args.riders, args.orders, args.decline_rate, args.seed)
