"""Route geometry: distance metrics, the path index and proximity checks."""

from .cache import PATH_INDEX_CACHE, PathIndexCache
from .distance import (
    DistanceMetric,
    classify_coordinates,
    distances_to,
    pairwise_distance,
    segment_lengths,
)
from .path_index import NearestPoint, PathIndex, PathLocation
from .proximity import ProximityDetector

__all__ = [
    "PATH_INDEX_CACHE",
    "DistanceMetric",
    "NearestPoint",
    "PathIndex",
    "PathIndexCache",
    "PathLocation",
    "ProximityDetector",
    "classify_coordinates",
    "distances_to",
    "pairwise_distance",
    "segment_lengths",
]
