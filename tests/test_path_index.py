"""Tests for the cumulative-distance path index."""

from __future__ import annotations

import math

import numpy as np
import pytest

from route_tracker.checkpoints import CheckpointTracker
from route_tracker.config import NEAREST_POINT_EARLY_EXIT_TOLERANCE
from route_tracker.errors import EmptyPathError, NonFiniteSampleError
from route_tracker.geometry import DistanceMetric, PathIndex
from route_tracker.models import CheckpointDescriptor


def test_scenario_a_distances_and_interpolation() -> None:
    index = PathIndex.build([(0, 0), (0, 100), (0, 300)])

    assert index.metric is DistanceMetric.EUCLIDEAN
    assert index.total_distance() == pytest.approx(300.0)
    assert index.point_at_distance(150) == pytest.approx((0.0, 150.0))
    assert index.index_at_distance(300) == 2


def test_index_at_distance_edges_and_ties() -> None:
    index = PathIndex.build([(0, 0), (0, 100), (0, 300)])

    assert index.index_at_distance(-5) == 0
    assert index.index_at_distance(0) == 0
    assert index.index_at_distance(100) == 1
    assert index.index_at_distance(100.5) == 2
    assert index.index_at_distance(10_000) == 2


def test_distance_and_progress_at_index_clamp() -> None:
    index = PathIndex.build([(0, 0), (0, 100), (0, 300)])

    assert index.distance_at_index(-3) == 0.0
    assert index.distance_at_index(99) == pytest.approx(300.0)
    assert index.progress_at_index(1) == pytest.approx(1 / 3)


def test_single_point_route_has_zero_progress() -> None:
    index = PathIndex.build([(500.0, 500.0)])

    assert index.total_distance() == 0.0
    assert index.progress_at_index(0) == 0.0
    assert index.point_at_distance(10) == (500.0, 500.0)


def test_empty_build_fails_without_touching_tracker(straight_index) -> None:
    tracker = CheckpointTracker(
        [CheckpointDescriptor(name="Mid", distance=1000.0)], straight_index
    )
    before = tracker.export_state()

    with pytest.raises(EmptyPathError):
        PathIndex.build([])

    assert tracker.export_state() == before
    assert tracker.path_index is straight_index


def test_non_finite_points_rejected() -> None:
    with pytest.raises(ValueError):
        PathIndex.build([(0, 0), (math.nan, 5)])


def test_cumulative_distance_monotonic() -> None:
    rng = np.random.default_rng(7)
    steps = rng.normal(scale=50.0, size=(500, 2))
    points = np.cumsum(steps, axis=0) + 1000.0
    index = PathIndex.build(points.tolist())

    assert index.cumulative[0] == 0.0
    assert np.all(np.diff(index.cumulative) >= 0.0)


def test_distance_index_round_trip_within_one_segment() -> None:
    rng = np.random.default_rng(11)
    points = np.cumsum(rng.uniform(1.0, 80.0, size=(200, 2)), axis=0) + 500.0
    index = PathIndex.build(points.tolist())
    longest = float(np.max(np.diff(index.cumulative)))

    for d in np.linspace(0.0, index.total_distance(), 97):
        recovered = index.distance_at_index(index.index_at_distance(float(d)))
        assert abs(recovered - d) <= longest + 1e-9


def test_arrays_are_read_only(straight_index) -> None:
    with pytest.raises(ValueError):
        straight_index.cumulative[1] = 5.0
    with pytest.raises(ValueError):
        straight_index.points[0, 0] = 1.0


def test_third_component_ignored_for_distance() -> None:
    index = PathIndex.build([(0, 0, 5.0), (0, 300, 90.0)])
    assert index.total_distance() == pytest.approx(300.0)


def test_geographic_route_uses_great_circle() -> None:
    index = PathIndex.build([(51.5, -0.10), (51.5, -0.09)])

    assert index.metric is DistanceMetric.GREAT_CIRCLE
    assert index.total_distance() == pytest.approx(692.2, rel=5e-3)


def test_explicit_metric_bypasses_classification() -> None:
    index = PathIndex.build([(0, 0), (0, 100)], DistanceMetric.EUCLIDEAN)
    assert index.total_distance() == pytest.approx(100.0)


def test_nearest_point_ties_resolve_to_lowest_index() -> None:
    index = PathIndex.build([(0, 0), (10, 0), (0, 0)], DistanceMetric.EUCLIDEAN)

    exhaustive = index.nearest_point((5, 0), exhaustive=True)
    assert exhaustive.index == 0
    assert exhaustive.distance == pytest.approx(5.0)


def test_early_exit_versus_exhaustive_on_loop() -> None:
    # Loop route whose last vertex sits next to the start.
    index = PathIndex.build(
        [(0, 0), (500, 0), (500, 500), (0, 500), (0, 0.3)], DistanceMetric.EUCLIDEAN
    )
    query = (0.0, 0.2)

    early = index.nearest_point(query)
    exhaustive = index.nearest_point(query, exhaustive=True)

    assert early.index == 0
    assert exhaustive.index == 4
    assert early.distance <= NEAREST_POINT_EARLY_EXIT_TOLERANCE
    assert early.distance - exhaustive.distance <= NEAREST_POINT_EARLY_EXIT_TOLERANCE


def test_zero_search_budget_matches_exhaustive() -> None:
    index = PathIndex.build(
        [(0, 0), (500, 0), (500, 500), (0, 500), (0, 0.3)], DistanceMetric.EUCLIDEAN
    )

    result = index.nearest_point((0.0, 0.2), search_budget=0.0)
    assert result.index == 4


def test_nearest_point_across_scan_chunks() -> None:
    index = PathIndex.build([(0.0, float(y)) for y in range(0, 10_000, 10)])

    result = index.nearest_point((3.0, 7000.0), exhaustive=True)
    assert result.index == 700
    assert result.distance == pytest.approx(3.0)
    assert result.point == (0.0, 7000.0)
    assert result.progress == pytest.approx(7000.0 / 9990.0)


def test_nearest_point_on_empty_index() -> None:
    empty = PathIndex(np.empty((0, 2)), np.empty(0), DistanceMetric.EUCLIDEAN)

    result = empty.nearest_point((1.0, 2.0))
    assert result.index == -1
    assert math.isinf(result.distance)
    assert result.point is None


def test_nearest_point_rejects_non_finite_query(straight_index) -> None:
    with pytest.raises(NonFiniteSampleError):
        straight_index.nearest_point((math.inf, 0.0))


def test_locate_projects_between_vertices() -> None:
    index = PathIndex.build([(0, 0), (0, 1000)], DistanceMetric.EUCLIDEAN)

    location = index.locate((30.0, 250.0))
    assert location.distance_along == pytest.approx(250.0)
    assert location.offset == pytest.approx(30.0)
    assert location.segment_index == 0
    assert location.progress == pytest.approx(0.25)


def test_locate_beyond_end_clamps_to_finish(straight_index) -> None:
    location = straight_index.locate((0.0, 2100.0))
    assert location.distance_along == pytest.approx(2000.0)
    assert location.progress == pytest.approx(1.0)


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_distance_lookups_reject_non_finite(straight_index, bad: float) -> None:
    with pytest.raises(NonFiniteSampleError):
        straight_index.index_at_distance(bad)
    with pytest.raises(NonFiniteSampleError):
        straight_index.point_at_distance(bad)
    with pytest.raises(NonFiniteSampleError):
        straight_index.progress_at_distance(bad)
    with pytest.raises(NonFiniteSampleError):
        straight_index.distance_at_progress(bad)
