import math

import pytest

from geo.distance import haversine_km, is_valid_coordinate


def test_distance_to_self_is_zero():
    assert haversine_km(-17.824858, 31.053028, -17.824858, 31.053028) == 0.0


def test_distance_is_symmetric():
    harare = (-17.824858, 31.053028)
    bulawayo = (-20.15, 28.58)
    there = haversine_km(*harare, *bulawayo)
    back = haversine_km(*bulawayo, *harare)
    assert there == pytest.approx(back)
    # roughly 365 km by great circle
    assert 350 < there < 380


def test_one_degree_of_latitude():
    assert haversine_km(0, 0, 1, 0) == pytest.approx(111.195, abs=0.01)


def test_antipodal_points_do_not_blow_up():
    assert haversine_km(0, 0, 0, 180) == pytest.approx(math.pi * 6371.0)


@pytest.mark.parametrize(
    "coords",
    [
        (None, 31.0, -17.0, 31.0),
        ("abc", 31.0, -17.0, 31.0),
        (float("nan"), 31.0, -17.0, 31.0),
        (-17.0, float("inf"), -17.0, 31.0),
        (91.0, 31.0, -17.0, 31.0),
        (-17.0, 181.0, -17.0, 31.0),
        (True, 31.0, -17.0, 31.0),
    ],
)
def test_invalid_input_is_infinitely_far(coords):
    assert haversine_km(*coords) == math.inf


def test_is_valid_coordinate_bounds():
    assert is_valid_coordinate(90, 180)
    assert is_valid_coordinate(-90, -180)
    assert not is_valid_coordinate(90.0001, 0)
    assert not is_valid_coordinate("1", "2")
    assert not is_valid_coordinate(None, 0)
