"""In-memory LRU cache of built path indexes."""

from __future__ import annotations

import hashlib
import logging
from threading import RLock
from typing import Iterable, Optional, Sequence

from cachetools import LRUCache

from ..config import PATH_INDEX_CACHE_SIZE
from .distance import DistanceMetric, as_planar_array, classify_coordinates
from .path_index import PathIndex

LOGGER = logging.getLogger(__name__)


class PathIndexCache:
    """Reuse :class:`PathIndex` instances for routes that are loaded repeatedly.

    Entries are keyed by a digest of the planar point array and the metric, so
    two loads of the same route share one immutable index.
    """

    def __init__(self, max_entries: int = PATH_INDEX_CACHE_SIZE) -> None:
        self._cache: LRUCache[str, PathIndex] = LRUCache(maxsize=max(1, max_entries))
        self._lock = RLock()

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_or_build(
        self,
        points: Iterable[Sequence[float]],
        metric: Optional[DistanceMetric] = None,
    ) -> PathIndex:
        array = as_planar_array(points)
        resolved = metric if metric is not None else classify_coordinates(array)
        key = _cache_key(array.tobytes(), resolved)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                LOGGER.debug("Path index cache hit (%d points)", len(cached))
                return cached
        index = PathIndex.build(array, resolved)
        with self._lock:
            self._cache[key] = index
        return index

    def clear(self) -> None:
        """Empty the cache (primarily for testing)."""
        with self._lock:
            self._cache.clear()


def _cache_key(payload: bytes, metric: DistanceMetric) -> str:
    digest = hashlib.sha256(payload)
    digest.update(metric.value.encode("utf-8"))
    return digest.hexdigest()


PATH_INDEX_CACHE = PathIndexCache()

__all__ = ["PATH_INDEX_CACHE", "PathIndexCache"]
