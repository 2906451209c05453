import threading
import time

import pytest

from geo.spatial_index import (
    SpatialIndex,
    boundary_cells,
    build_snapshot,
    cell_key,
    cells_within,
    covers_all_longitudes,
    wrap_lon_cell,
)
from riders.models import Rider, RiderStatus


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def rider_at(rider_id, lat, lon):
    return Rider.new(rider_id, rider_id, lat, lon, RiderStatus.AVAILABLE)


def test_cell_key_uses_integer_indices():
    assert cell_key(12.34, 56.78, 0.01) == (1234, 5678)
    assert cell_key(-0.005, -0.005, 0.01) == (-1, -1)


def test_longitude_cells_wrap_at_antimeridian():
    assert wrap_lon_cell(18000, 0.01) == -18000
    assert cell_key(0.0, 180.0, 0.01) == cell_key(0.0, -180.0, 0.01)


def test_rider_near_lat_edge_is_duplicated_into_neighbour():
    # 0.0005 degrees above the 10.00 edge
    keys = boundary_cells(10.0005, 20.005, 0.01, 0.001)
    assert keys[0] == (1000, 2000)
    assert set(keys) == {(1000, 2000), (999, 2000)}


def test_rider_near_corner_is_duplicated_diagonally():
    keys = boundary_cells(10.0005, 20.0095, 0.01, 0.001)
    assert set(keys) == {(1000, 2000), (1000, 2001), (999, 2000), (999, 2001)}


def test_rider_in_middle_of_cell_is_not_duplicated():
    assert boundary_cells(10.005, 20.005, 0.01, 0.001) == [(1000, 2000)]


def test_boundary_rider_found_from_neighbouring_cell():
    rider = rider_at("edge", 10.0005, 20.005)
    snapshot = build_snapshot([rider], precision=0.01, edge_epsilon=0.001, built_at=0.0)

    # a search centered just below the edge lives in cell 999
    assert cell_key(9.9995, 20.005, 0.01) == (999, 2000)
    assert [r.id for r in snapshot.riders_in_cell((999, 2000))] == ["edge"]
    assert [r.id for r in snapshot.collect([(999, 2000), (1000, 2000)])] == ["edge"]


def test_cells_within_small_radius_at_equator():
    keys = cells_within(0.005, 0.005, 1.0, 0.01)
    assert len(keys) == 9
    assert (0, 0) in keys


def test_cells_within_widens_longitude_away_from_equator():
    keys = cells_within(60.0, 10.0, 5.0, 0.01)
    lat_cells = {k[0] for k in keys}
    lon_cells = {k[1] for k in keys}
    assert len(lon_cells) > len(lat_cells)


def test_cells_within_near_pole_lists_no_cells():
    assert covers_all_longitudes(89.5, 0.0, 50.0, 0.01)
    assert cells_within(89.5, 0.0, 50.0, 0.01) == []

    assert not covers_all_longitudes(60.0, 10.0, 5.0, 0.01)
    assert not covers_all_longitudes(95.0, 0.0, 5.0, 0.01)


def test_cells_within_invalid_input_gives_no_cells():
    assert cells_within(95.0, 0.0, 5.0, 0.01) == []
    assert cells_within(None, 0.0, 5.0, 0.01) == []
    assert cells_within(0.0, 0.0, 0.0, 0.01) == []


def test_snapshot_excludes_riders_without_valid_location():
    riders = [
        rider_at("ok", -17.82, 31.05),
        Rider.new("no_location", "No Location"),
        rider_at("bad_lat", 95.0, 31.05),
    ]
    snapshot = build_snapshot(riders, precision=0.01, edge_epsilon=0.001, built_at=0.0)
    assert snapshot.rider_count == 1
    assert set(snapshot.excluded_ids) == {"no_location", "bad_lat"}


def test_rebuild_is_bounded_by_interval():
    clock = FakeClock()
    index = SpatialIndex(refresh_interval_seconds=300, clock=clock)
    loads = []

    def load():
        loads.append(1)
        return [rider_at("r1", -17.82, 31.05)]

    assert not index.snapshot.is_built
    assert index.rebuild(load) is True
    assert index.rebuild(load) is False
    assert len(loads) == 1

    clock.advance(299)
    assert index.rebuild(load) is False
    clock.advance(1)
    assert index.rebuild(load) is True
    assert index.rebuild(load, force=True) is True
    assert len(loads) == 3


def test_rebuild_publishes_new_snapshot_without_touching_old_one():
    clock = FakeClock()
    index = SpatialIndex(refresh_interval_seconds=0, clock=clock)
    index.rebuild(lambda: [rider_at("r1", -17.82, 31.05)])
    old = index.snapshot

    index.rebuild(lambda: [rider_at("r1", -17.82, 31.05), rider_at("r2", -17.83, 31.06)])

    assert old.rider_count == 1
    assert index.snapshot.rider_count == 2
    assert index.snapshot is not old


def test_failed_rebuild_keeps_previous_snapshot():
    index = SpatialIndex(refresh_interval_seconds=0, clock=FakeClock())
    index.rebuild(lambda: [rider_at("r1", -17.82, 31.05)])
    previous = index.snapshot

    def broken():
        raise RuntimeError("store down")

    with pytest.raises(RuntimeError):
        index.rebuild(broken)
    assert index.snapshot is previous


def test_concurrent_rebuild_requests_run_one_builder():
    index = SpatialIndex(refresh_interval_seconds=300)
    loads = []
    lock = threading.Lock()

    def slow_load():
        with lock:
            loads.append(1)
        time.sleep(0.05)
        return [rider_at("r1", -17.82, 31.05)]

    threads = [threading.Thread(target=index.rebuild, args=(slow_load,)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(loads) == 1
    assert index.snapshot.rider_count == 1


def test_invalid_index_settings_are_rejected():
    with pytest.raises(ValueError):
        SpatialIndex(precision=0)
    with pytest.raises(ValueError):
        SpatialIndex(precision=0.01, edge_epsilon=0.006)
