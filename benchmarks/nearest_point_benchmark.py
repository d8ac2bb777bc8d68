"""Benchmark nearest-point search on large synthetic routes."""

from __future__ import annotations

import argparse
import logging
import statistics
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import numpy as np

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Late imports rely on the adjusted sys.path above.
from route_tracker.config import NEAREST_POINT_EARLY_EXIT_TOLERANCE  # noqa: E402
from route_tracker.geometry import DistanceMetric, PathIndex  # noqa: E402


@dataclass(slots=True)
class QueryDurations:
    """Timing measurements (in seconds) for one batch of queries."""

    build: float
    early_exit: float
    exhaustive: float
    locate: float


@dataclass(slots=True)
class BenchmarkSummary:
    """Aggregated statistics for multiple benchmark iterations."""

    point_count: int
    query_count: int
    iterations: int
    mean_build_ms: float
    mean_early_exit_ms: float
    mean_exhaustive_ms: float
    mean_locate_ms: float
    max_early_exit_error: float


def _build_route(point_count: int) -> np.ndarray:
    """Generate a winding planar route with roughly 5 m between points."""

    t = np.linspace(0.0, 40.0 * np.pi, point_count)
    x = 1000.0 + 5.0 * np.arange(point_count)
    y = 1000.0 + 300.0 * np.sin(t)
    return np.column_stack((x, y))


def _build_queries(route: np.ndarray, query_count: int, seed: int) -> np.ndarray:
    """Pick route vertices at random and jitter them slightly off the line."""

    rng = np.random.default_rng(seed)
    picks = rng.integers(0, route.shape[0], size=query_count)
    return route[picks] + rng.normal(scale=3.0, size=(query_count, 2))


def _run_iteration(route: np.ndarray, queries: np.ndarray) -> tuple[QueryDurations, float]:
    """Execute one benchmark iteration and capture per-stage timings."""

    start = time.perf_counter()
    index = PathIndex.build(route.tolist(), DistanceMetric.EUCLIDEAN)
    build = time.perf_counter() - start

    start = time.perf_counter()
    early = [index.nearest_point(q) for q in queries]
    early_exit = time.perf_counter() - start

    start = time.perf_counter()
    exact = [index.nearest_point(q, exhaustive=True) for q in queries]
    exhaustive = time.perf_counter() - start

    start = time.perf_counter()
    for q in queries:
        index.locate(q)
    locate = time.perf_counter() - start

    worst_error = max(a.distance - b.distance for a, b in zip(early, exact))
    return QueryDurations(build, early_exit, exhaustive, locate), worst_error


def run_benchmark(
    point_count: int,
    query_count: int,
    iterations: int,
    seed: int = 7,
) -> BenchmarkSummary:
    """Benchmark nearest-point search and return aggregated timings."""

    if point_count < 2:
        raise ValueError("point_count must be at least 2")
    if query_count <= 0 or iterations <= 0:
        raise ValueError("query_count and iterations must be positive")

    route = _build_route(point_count)
    queries = _build_queries(route, query_count, seed)

    durations: List[QueryDurations] = []
    worst_error = 0.0
    for _ in range(iterations):
        measured, error = _run_iteration(route, queries)
        durations.append(measured)
        worst_error = max(worst_error, error)

    return BenchmarkSummary(
        point_count=point_count,
        query_count=query_count,
        iterations=iterations,
        mean_build_ms=statistics.fmean(item.build for item in durations) * 1000.0,
        mean_early_exit_ms=statistics.fmean(item.early_exit for item in durations) * 1000.0,
        mean_exhaustive_ms=statistics.fmean(item.exhaustive for item in durations) * 1000.0,
        mean_locate_ms=statistics.fmean(item.locate for item in durations) * 1000.0,
        max_early_exit_error=worst_error,
    )


def _format_summary(summary: BenchmarkSummary) -> Dict[str, float]:
    """Return a JSON-friendly representation of the benchmark summary."""

    return {
        "point_count": summary.point_count,
        "query_count": summary.query_count,
        "iterations": summary.iterations,
        "mean_build_ms": summary.mean_build_ms,
        "mean_early_exit_ms": summary.mean_early_exit_ms,
        "mean_exhaustive_ms": summary.mean_exhaustive_ms,
        "mean_locate_ms": summary.mean_locate_ms,
        "max_early_exit_error": summary.max_early_exit_error,
        "early_exit_tolerance": NEAREST_POINT_EARLY_EXIT_TOLERANCE,
    }


def _parse_args() -> argparse.Namespace:
    """Parse command-line arguments for the benchmark utility."""

    parser = argparse.ArgumentParser(
        description="Benchmark nearest-point search on large synthetic routes",
    )
    parser.add_argument(
        "--points",
        type=int,
        default=100_000,
        help="Number of vertices in the synthetic route",
    )
    parser.add_argument(
        "--queries",
        type=int,
        default=200,
        help="Number of live positions to look up per iteration",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=5,
        help="Number of repetitions for averaging",
    )
    return parser.parse_args()


def main() -> None:
    """Entry point when running the module as a script."""

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = _parse_args()
    summary = run_benchmark(args.points, args.queries, args.iterations)
    formatted = _format_summary(summary)
    for key, value in formatted.items():
        if key in {"point_count", "query_count", "iterations"}:
            print(f"{key}: {value}")
        else:
            print(f"{key}: {value:.3f}")


if __name__ == "__main__":
    main()
