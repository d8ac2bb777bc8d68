"""Smoke test for the nearest-point benchmark script."""

from __future__ import annotations

import pytest

from benchmarks.nearest_point_benchmark import run_benchmark
from route_tracker.config import NEAREST_POINT_EARLY_EXIT_TOLERANCE


@pytest.mark.benchmark
def test_small_benchmark_reports_bounded_early_exit_error() -> None:
    summary = run_benchmark(point_count=2_000, query_count=20, iterations=1)

    assert summary.point_count == 2_000
    assert summary.mean_exhaustive_ms >= 0.0
    assert 0.0 <= summary.max_early_exit_error <= NEAREST_POINT_EARLY_EXIT_TOLERANCE


def test_benchmark_validates_arguments() -> None:
    with pytest.raises(ValueError):
        run_benchmark(point_count=1, query_count=1, iterations=1)
    with pytest.raises(ValueError):
        run_benchmark(point_count=100, query_count=0, iterations=1)
