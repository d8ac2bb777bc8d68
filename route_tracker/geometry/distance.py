"""Distance functions for planar and geographic coordinate domains.

The metric is chosen once per route by :func:`classify_coordinates` (or passed
explicitly) and then travels with the :class:`~route_tracker.geometry.path_index.PathIndex`
so every caller measures with the same function.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import EARTH_RADIUS_M, GEOGRAPHIC_LAT_LIMIT, GEOGRAPHIC_LON_LIMIT

MetricArray = NDArray[np.float64]


class DistanceMetric(str, Enum):
    """Distance function used for a route."""

    EUCLIDEAN = "euclidean"
    GREAT_CIRCLE = "great_circle"


def classify_coordinates(points: Iterable[Sequence[float]]) -> DistanceMetric:
    """Return GREAT_CIRCLE when every point is a plausible (lat, lon) pair.

    Any point outside ``|lat| <= 90`` and ``|lon| <= 180`` marks the whole set
    as planar. An empty collection classifies as EUCLIDEAN.
    """

    array = as_planar_array(points)
    if array.shape[0] == 0:
        return DistanceMetric.EUCLIDEAN
    lat_ok = np.abs(array[:, 0]) <= GEOGRAPHIC_LAT_LIMIT
    lon_ok = np.abs(array[:, 1]) <= GEOGRAPHIC_LON_LIMIT
    if bool(np.all(lat_ok & lon_ok)):
        return DistanceMetric.GREAT_CIRCLE
    return DistanceMetric.EUCLIDEAN


def as_planar_array(points: Iterable[Sequence[float]]) -> MetricArray:
    """Convert 2-D/3-D coordinates into an ``(n, 2)`` float64 array.

    A third (altitude) component is accepted and dropped; distances are
    measured in the horizontal plane only.
    """

    array = np.asarray(list(points), dtype=float)
    if array.size == 0:
        return np.empty((0, 2), dtype=float)
    if array.ndim != 2 or array.shape[1] not in (2, 3):
        raise ValueError("Expected a sequence of 2D or 3D coordinates")
    return np.ascontiguousarray(array[:, :2])


def distances_to(
    points: MetricArray,
    query: Sequence[float],
    metric: DistanceMetric,
) -> MetricArray:
    """Return the distance from every row of ``points`` to ``query``."""

    q = np.asarray(query, dtype=float)[:2]
    if metric is DistanceMetric.GREAT_CIRCLE:
        return _haversine(points[:, 0], points[:, 1], q[0], q[1])
    return np.linalg.norm(points - q, axis=1)


def pairwise_distance(
    a: Sequence[float],
    b: Sequence[float],
    metric: DistanceMetric,
) -> float:
    """Return the distance between two positions."""

    pa = np.asarray(a, dtype=float)[:2]
    pb = np.asarray(b, dtype=float)[:2]
    if metric is DistanceMetric.GREAT_CIRCLE:
        return float(_haversine(pa[0], pa[1], pb[0], pb[1]))
    return float(np.hypot(pa[0] - pb[0], pa[1] - pb[1]))


def segment_lengths(points: MetricArray, metric: DistanceMetric) -> MetricArray:
    """Return the length of each consecutive span of a polyline."""

    if points.shape[0] < 2:
        return np.zeros(0, dtype=float)
    if metric is DistanceMetric.GREAT_CIRCLE:
        return _haversine(points[:-1, 0], points[:-1, 1], points[1:, 0], points[1:, 1])
    return np.linalg.norm(np.diff(points, axis=0), axis=1)


def local_frame(points: MetricArray, origin: Sequence[float], metric: DistanceMetric) -> MetricArray:
    """Express ``points`` in a local planar frame around ``origin``.

    Planar routes are simply translated. Geographic routes use an
    equirectangular approximation in metres, accurate over the short spans it
    is used for (refining a projection between neighbouring vertices).
    """

    o = np.asarray(origin, dtype=float)[:2]
    if metric is DistanceMetric.GREAT_CIRCLE:
        lat0 = np.radians(o[0])
        dy = np.radians(points[:, 0] - o[0]) * EARTH_RADIUS_M
        dx = np.radians(points[:, 1] - o[1]) * EARTH_RADIUS_M * np.cos(lat0)
        return np.column_stack((dx, dy))
    return points - o


def _haversine(lat1, lon1, lat2, lon2):
    """Great-circle distance in metres between degree coordinates."""

    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    dphi = phi2 - phi1
    dlambda = np.radians(np.asarray(lon2) - np.asarray(lon1))
    a = np.sin(dphi / 2.0) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(dlambda / 2.0) ** 2
    a = np.clip(a, 0.0, 1.0)
    return 2.0 * EARTH_RADIUS_M * np.arcsin(np.sqrt(a))


__all__ = [
    "DistanceMetric",
    "MetricArray",
    "as_planar_array",
    "classify_coordinates",
    "distances_to",
    "local_frame",
    "pairwise_distance",
    "segment_lengths",
]
