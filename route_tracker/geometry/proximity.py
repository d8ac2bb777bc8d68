"""Arrival-radius checks under the route's distance metric."""

from __future__ import annotations

import math
from typing import Hashable, Iterable, Optional, Sequence, Tuple

from .distance import DistanceMetric, pairwise_distance
from .path_index import PathIndex


class ProximityDetector:
    """Measure distances the same way the route's :class:`PathIndex` does."""

    __slots__ = ("metric",)

    def __init__(self, metric: DistanceMetric = DistanceMetric.EUCLIDEAN) -> None:
        self.metric = metric

    @classmethod
    def for_path(cls, path_index: PathIndex) -> "ProximityDetector":
        return cls(path_index.metric)

    def distance(self, a: Sequence[float], b: Sequence[float]) -> float:
        return pairwise_distance(a, b, self.metric)

    def within(self, a: Sequence[float], b: Sequence[float], radius: float) -> bool:
        """Return True when ``a`` lies inside (or on) the circle around ``b``."""
        return self.distance(a, b) <= radius

    def nearest_of(
        self,
        query: Sequence[float],
        candidates: Iterable[Tuple[Hashable, Sequence[float]]],
    ) -> Tuple[Optional[Hashable], float]:
        """Return ``(id, distance)`` of the closest candidate.

        Ties resolve to the first candidate encountered; an empty iterable
        yields ``(None, inf)``.
        """

        best_id: Optional[Hashable] = None
        best_distance = math.inf
        for candidate_id, position in candidates:
            dist = self.distance(query, position)
            if dist < best_distance:
                best_id = candidate_id
                best_distance = dist
        return best_id, best_distance


__all__ = ["ProximityDetector"]
