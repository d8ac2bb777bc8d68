"""Central error types used across the route tracker."""

from __future__ import annotations


class RouteTrackerError(RuntimeError):
    """Base error for route tracking failures."""


class EmptyPathError(RouteTrackerError):
    """Raised when a path index is built from an empty point sequence."""


class InvalidCheckpointError(RouteTrackerError):
    """Raised when a checkpoint target is missing, non-finite, or unprojectable."""


class InvalidSegmentError(RouteTrackerError):
    """Raised when a segment interval falls outside [0, 1] or is empty."""


class EmptyRecordingError(RouteTrackerError):
    """Raised when a recording has no usable time points after validation."""


class NonFiniteSampleError(RouteTrackerError):
    """Raised when a live position, progress, timestamp or tick contains NaN/inf."""


__all__ = [
    "RouteTrackerError",
    "EmptyPathError",
    "InvalidCheckpointError",
    "InvalidSegmentError",
    "EmptyRecordingError",
    "NonFiniteSampleError",
]
