"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable route and recording fixtures
so individual test modules do not rebuild the same geometry.
"""
from __future__ import annotations

import os
import sys
from typing import Iterator, List, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route_tracker.geometry import PATH_INDEX_CACHE, DistanceMetric, PathIndex
from route_tracker.replay import ReplayRecording, TimePoint, build_recording


# --- Factory helpers -------------------------------------------------
def make_straight_points(length: int = 2000, step: int = 10) -> List[Tuple[float, float]]:
    """Planar route running north from the origin."""
    return [(0.0, float(y)) for y in range(0, length + 1, step)]


def make_linear_recording(
    speed: float = 10.0,
    duration: int = 200,
    power: float = 200.0,
) -> ReplayRecording:
    """Recording travelling north along the straight route at constant speed."""
    points = [
        TimePoint(
            time=float(t),
            distance=speed * t,
            position=(0.0, speed * t),
            speed=speed,
            power=power if t % 2 == 0 else 0.0,
            heart_rate=140.0,
            cadence=90.0,
            altitude=10.0,
        )
        for t in range(duration + 1)
    ]
    return build_recording(points)


# --- Fixtures --------------------------------------------------------
@pytest.fixture(autouse=True)
def clear_path_index_cache() -> Iterator[None]:
    PATH_INDEX_CACHE.clear()
    yield
    PATH_INDEX_CACHE.clear()


@pytest.fixture
def straight_points() -> List[Tuple[float, float]]:
    return make_straight_points()


@pytest.fixture
def straight_index(straight_points) -> PathIndex:
    return PathIndex.build(straight_points, DistanceMetric.EUCLIDEAN)


@pytest.fixture
def linear_recording() -> ReplayRecording:
    return make_linear_recording()


@pytest.fixture
def recording_factory():
    return make_linear_recording
