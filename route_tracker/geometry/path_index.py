"""Immutable distance index over an ordered route polyline."""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Iterable, Optional, Sequence

import numpy as np

from ..config import NEAREST_POINT_EARLY_EXIT_TOLERANCE, NEAREST_POINT_SCAN_CHUNK
from ..errors import EmptyPathError, NonFiniteSampleError
from ..models import Position
from ..utils import require_finite
from .distance import (
    DistanceMetric,
    MetricArray,
    as_planar_array,
    classify_coordinates,
    distances_to,
    local_frame,
    segment_lengths,
)


@dataclass(frozen=True, slots=True)
class NearestPoint:
    """Closest route vertex to a query position."""

    distance: float
    index: int
    point: Optional[Position]
    progress: float


@dataclass(frozen=True, slots=True)
class PathLocation:
    """Continuous position of a query projected onto the route polyline."""

    distance_along: float
    offset: float
    segment_index: int
    progress: float


class PathIndex:
    """Cumulative-distance index over ``points[0..n)``.

    ``cumulative[0] == 0`` and ``cumulative[i] = cumulative[i-1] + dist(p[i-1], p[i])``
    under the route's :class:`DistanceMetric`. Both arrays are read-only; a
    different route means building a new index.
    """

    __slots__ = ("_points", "_cum", "_metric")

    def __init__(
        self,
        points: MetricArray,
        cumulative: MetricArray,
        metric: DistanceMetric,
    ) -> None:
        if points.shape[0] != cumulative.shape[0]:
            raise ValueError("Points and cumulative distances must align")
        self._points = points
        self._cum = cumulative
        self._metric = metric
        self._points.setflags(write=False)
        self._cum.setflags(write=False)

    @classmethod
    def build(
        cls,
        points: Iterable[Sequence[float]],
        metric: Optional[DistanceMetric] = None,
    ) -> "PathIndex":
        """Build an index from ordered positions.

        Args:
            points: Ordered 2-D or 3-D positions. Only the first two
                components take part in distance math.
            metric: Distance function to use. When omitted the coordinate
                domain is classified once here (see
                :func:`~route_tracker.geometry.distance.classify_coordinates`).

        Raises:
            EmptyPathError: If ``points`` is empty.
            ValueError: If points are ragged or contain non-finite values.
        """

        array = as_planar_array(points)
        if array.shape[0] == 0:
            raise EmptyPathError("Cannot build a path index from an empty point sequence")
        if not np.all(np.isfinite(array)):
            raise ValueError("Path points must contain finite values only")
        resolved = metric if metric is not None else classify_coordinates(array)
        lengths = segment_lengths(array, resolved)
        cumulative = np.concatenate(([0.0], np.cumsum(lengths)))
        return cls(array.copy(), cumulative, resolved)

    # ------------------------------------------------------------------
    # Basic accessors
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return int(self._points.shape[0])

    @property
    def metric(self) -> DistanceMetric:
        return self._metric

    @property
    def points(self) -> MetricArray:
        return self._points

    @property
    def cumulative(self) -> MetricArray:
        return self._cum

    def total_distance(self) -> float:
        if self._cum.shape[0] == 0:
            return 0.0
        return float(self._cum[-1])

    def distance_at_index(self, index: int) -> float:
        """Return the cumulative distance at ``index`` (clamped to the route)."""

        if len(self) == 0:
            return 0.0
        clamped = min(max(int(index), 0), len(self) - 1)
        return float(self._cum[clamped])

    def progress_at_index(self, index: int) -> float:
        total = self.total_distance()
        if total <= 0.0:
            return 0.0
        return self.distance_at_index(index) / total

    def progress_at_distance(self, distance: float) -> float:
        distance = require_finite(distance, "distance")
        total = self.total_distance()
        if total <= 0.0:
            return 0.0
        return min(max(distance / total, 0.0), 1.0)

    def distance_at_progress(self, progress: float) -> float:
        return min(max(require_finite(progress, "progress"), 0.0), 1.0) * self.total_distance()

    # ------------------------------------------------------------------
    # Distance lookups
    # ------------------------------------------------------------------

    def index_at_distance(self, distance: float) -> int:
        """Return the lowest index whose cumulative distance is >= ``distance``."""

        distance = require_finite(distance, "distance")
        n = len(self)
        if n == 0:
            return 0
        if distance <= 0.0:
            return 0
        if distance >= self.total_distance():
            return n - 1
        return int(np.searchsorted(self._cum, distance, side="left"))

    def point_at_distance(self, distance: float) -> Position:
        """Interpolate the route position ``distance`` units from the start."""

        distance = require_finite(distance, "distance")
        idx = self.index_at_distance(distance)
        if idx == 0:
            return _as_position(self._points[0])
        prev = idx - 1
        span = float(self._cum[idx] - self._cum[prev])
        if span <= 0.0:
            return _as_position(self._points[prev])
        target = min(max(distance, 0.0), self.total_distance())
        ratio = min(max((target - float(self._cum[prev])) / span, 0.0), 1.0)
        point = self._points[prev] + ratio * (self._points[idx] - self._points[prev])
        return _as_position(point)

    # ------------------------------------------------------------------
    # Nearest-point search
    # ------------------------------------------------------------------

    def nearest_point(
        self,
        query: Sequence[float],
        search_budget: Optional[float] = None,
        *,
        exhaustive: bool = False,
    ) -> NearestPoint:
        """Return the route vertex closest to ``query``.

        The scan walks the route in blocks of ``NEAREST_POINT_SCAN_CHUNK``
        vertices and stops at the first vertex within ``search_budget``
        (default ``NEAREST_POINT_EARLY_EXIT_TOLERANCE``). That vertex is close
        enough but not necessarily the global minimum, e.g. on routes that
        pass the same place twice. ``exhaustive=True`` always scans every
        vertex and returns the global minimum, ties resolved to the lowest
        index.
        """

        if len(self) == 0:
            return NearestPoint(math.inf, -1, None, 0.0)
        q = _validated_query(query)
        tolerance = (
            NEAREST_POINT_EARLY_EXIT_TOLERANCE if search_budget is None else float(search_budget)
        )
        best_index = -1
        best_distance = math.inf
        for start in range(0, len(self), NEAREST_POINT_SCAN_CHUNK):
            block = distances_to(
                self._points[start : start + NEAREST_POINT_SCAN_CHUNK], q, self._metric
            )
            if not exhaustive:
                hits = np.flatnonzero(block <= tolerance)
                if hits.size:
                    local = int(hits[0])
                    return self._nearest(start + local, float(block[local]))
            local = int(np.argmin(block))
            if block[local] < best_distance:
                best_distance = float(block[local])
                best_index = start + local
        return self._nearest(best_index, best_distance)

    def locate(
        self,
        query: Sequence[float],
        *,
        exhaustive: bool = False,
    ) -> PathLocation:
        """Project ``query`` onto the polyline around its nearest vertex.

        The nearest vertex is refined onto the spans either side of it, which
        gives a continuous along-route distance instead of snapping to
        vertices.
        """

        nearest = self.nearest_point(query, exhaustive=exhaustive)
        if nearest.index < 0:
            return PathLocation(0.0, math.inf, -1, 0.0)
        if len(self) == 1:
            return PathLocation(0.0, nearest.distance, 0, 0.0)

        vertex = nearest.index
        candidates = [i for i in (vertex - 1, vertex) if 0 <= i < len(self) - 1]
        q = _validated_query(query)
        best = (float(self._cum[vertex]), nearest.distance, min(vertex, len(self) - 2))
        for span_index in candidates:
            span_len = float(self._cum[span_index + 1] - self._cum[span_index])
            if span_len <= 0.0:
                continue
            local = local_frame(
                np.vstack((self._points[span_index], self._points[span_index + 1], q)),
                self._points[span_index],
                self._metric,
            )
            start, end, point = local[0], local[1], local[2]
            seg_vec = end - start
            seg_len_sq = float(np.dot(seg_vec, seg_vec))
            if seg_len_sq <= 0.0:
                continue
            t = float(np.dot(point - start, seg_vec) / seg_len_sq)
            t = min(max(t, 0.0), 1.0)
            offset = float(np.linalg.norm(point - (start + t * seg_vec)))
            if offset < best[1]:
                best = (float(self._cum[span_index]) + t * span_len, offset, span_index)
        distance_along, offset, span_index = best
        return PathLocation(
            distance_along=distance_along,
            offset=offset,
            segment_index=span_index,
            progress=self.progress_at_distance(distance_along),
        )

    def _nearest(self, index: int, distance: float) -> NearestPoint:
        return NearestPoint(
            distance=distance,
            index=index,
            point=_as_position(self._points[index]),
            progress=self.progress_at_index(index),
        )


def _validated_query(query: Sequence[float]) -> MetricArray:
    q = np.asarray(query, dtype=float)
    if q.ndim != 1 or q.shape[0] < 2:
        raise ValueError("Query position must have at least two components")
    if not np.all(np.isfinite(q[:2])):
        raise NonFiniteSampleError(f"Query position is not finite: {query!r}")
    return q[:2]


def _as_position(row: MetricArray) -> Position:
    return tuple(float(value) for value in row)


__all__ = ["NearestPoint", "PathIndex", "PathLocation"]
