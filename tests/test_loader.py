import pandas as pd

from riders.loader import DEFAULT_CENTER, RIDER_COLUMNS, generate_mock_riders, load_riders_csv
from riders.models import RiderStatus


def test_generated_fleet_round_trips_through_csv(tmp_path):
    path = tmp_path / "riders.csv"

    df = generate_mock_riders(str(path), count=40, seed=3)
    riders = load_riders_csv(str(path))

    assert list(df.columns) == RIDER_COLUMNS
    assert len(riders) == 40
    assert len({r.id for r in riders}) == 40
    for rider in riders:
        assert rider.status in set(RiderStatus)
        assert abs(rider.location.lat - DEFAULT_CENTER[0]) <= 0.0751
        assert abs(rider.location.lon - DEFAULT_CENTER[1]) <= 0.0751
        assert 1.0 <= rider.rating <= 5.0
        assert rider.service_areas == frozenset({"harare"})


def test_same_seed_same_fleet(tmp_path):
    a = generate_mock_riders(str(tmp_path / "a.csv"), count=10, seed=11)
    b = generate_mock_riders(str(tmp_path / "b.csv"), count=10, seed=11)
    pd.testing.assert_frame_equal(a, b)


def test_blank_coordinates_mean_no_location(tmp_path):
    path = tmp_path / "riders.csv"
    pd.DataFrame(
        [
            {"rider_id": "R1", "name": "Tendai", "email": "t@example.com", "lat": -17.8, "lon": 31.0,
             "status": "available", "rating": 4.6, "completed_deliveries": 120, "max_weight_kg": 10,
             "service_areas": "harare;chitungwiza"},
            {"rider_id": "R2", "name": "Rudo", "email": None, "lat": None, "lon": None,
             "status": "offline", "rating": None, "completed_deliveries": None, "max_weight_kg": None,
             "service_areas": None},
        ]
    ).to_csv(path, index=False)

    first, second = load_riders_csv(str(path))

    assert first.location.as_tuple() == (-17.8, 31.0)
    assert first.completed_deliveries == 120
    assert first.capacity.max_weight_kg == 10.0
    assert first.service_areas == frozenset({"harare", "chitungwiza"})

    assert second.location is None
    assert second.status == RiderStatus.OFFLINE
    assert second.email is None
    assert second.rating == 0.0
    assert second.service_areas == frozenset()
