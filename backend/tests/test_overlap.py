"""
Route overlap tests.
"""

import pytest

from backend.app.domain.matching.geo import Coordinates
from backend.app.domain.matching.overlap import OverlapScorer, directed_overlap
from backend.tests.fakes import SCENARIO_DROP_OFF, SCENARIO_PICKUP, encode, interpolate


@pytest.fixture
def scorer():
    return OverlapScorer(threshold_meters=200.0, polyline_precision=6)


def test_identical_routes_overlap_fully(scorer):
    route = encode(interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF))
    assert scorer.overlap_percentage(route, route) == pytest.approx(100.0)


def test_disjoint_routes_do_not_overlap(scorer):
    manhattan = encode(interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF))
    bangalore = encode(interpolate(Coordinates(12.9716, 77.5946), Coordinates(12.9352, 77.6245)))
    assert scorer.overlap_percentage(manhattan, bangalore) == 0.0


def test_overlap_is_symmetric(scorer):
    full = encode(interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF, steps=40))
    half_points = interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF, steps=40)[:21]
    half = encode(half_points)

    forward = scorer.overlap_percentage(full, half)
    backward = scorer.overlap_percentage(half, full)
    assert forward == pytest.approx(backward)
    assert 0 < forward < 100


def test_partial_overlap_is_mean_of_directions(scorer):
    points = interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF, steps=40)
    full, half = points, points[:21]

    expected = (directed_overlap(full, half, 200.0) + directed_overlap(half, full, 200.0)) / 2
    assert scorer.overlap_percentage(encode(full), encode(half)) == pytest.approx(expected)
    # Every point of the half route lies on the full one
    assert directed_overlap(half, full, 200.0) == pytest.approx(100.0)


def test_cursor_never_moves_backwards():
    points = interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF, steps=10)
    reversed_points = list(reversed(points))

    # Only the first source point can match before the cursor reaches the end
    overlap = directed_overlap(points, reversed_points, 200.0)
    assert overlap < 100.0 / len(points) * 2


def test_empty_polyline_scores_zero(scorer):
    route = encode(interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF))
    assert scorer.overlap_percentage("", route) == 0.0
    assert scorer.overlap_percentage(route, None) == 0.0


def test_undecodable_polyline_scores_zero(scorer):
    route = encode(interpolate(SCENARIO_PICKUP, SCENARIO_DROP_OFF))
    assert scorer.overlap_percentage("_____", route) == 0.0


def test_directed_overlap_empty_inputs():
    assert directed_overlap([], [Coordinates(0, 0)], 200.0) == 0.0
    assert directed_overlap([Coordinates(0, 0)], [], 200.0) == 0.0
