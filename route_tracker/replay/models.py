"""Recording and playback state types for the replay engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from ..errors import EmptyRecordingError
from ..geometry.distance import MetricArray
from ..models import Position, ReplayFinished, ReplaySample
from ..utils import require_finite

_NUMERIC_FIELDS = ("distance", "speed", "power", "heart_rate", "cadence", "altitude")


@dataclass(frozen=True, slots=True)
class TimePoint:
    """One canonical telemetry sample of a recorded traversal.

    ``time`` is seconds from the first sample, ``distance`` metres from the
    route start. ``position`` may be missing for distance-only recordings.
    """

    time: float
    distance: float
    position: Optional[Position] = None
    speed: float = 0.0
    power: float = 0.0
    heart_rate: float = 0.0
    cadence: float = 0.0
    altitude: float = 0.0


@dataclass(slots=True, eq=False)
class ReplayRecording:
    """Validated, time-ordered recording.

    Build instances with :func:`route_tracker.replay.ingest.build_recording`,
    which sorts, deduplicates and rebases raw samples. The constructor only
    checks the resulting invariants: at least one point, strictly increasing
    time and non-decreasing distance.
    """

    points: Tuple[TimePoint, ...]
    is_synthesized_timing: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    times: MetricArray = field(init=False, repr=False)
    distances: MetricArray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.points = tuple(self.points)
        if not self.points:
            raise EmptyRecordingError("Recording contains no usable time points")
        self.times = np.array([p.time for p in self.points], dtype=float)
        self.distances = np.array([p.distance for p in self.points], dtype=float)
        if np.any(np.diff(self.times) <= 0.0):
            raise ValueError("Recording times must be strictly increasing")
        if np.any(np.diff(self.distances) < 0.0):
            raise ValueError("Recording distances must be non-decreasing")
        self.times.setflags(write=False)
        self.distances.setflags(write=False)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def total_duration(self) -> float:
        return float(self.times[-1])

    @property
    def total_distance(self) -> float:
        return float(self.distances[-1])

    def time_at_distance(self, distance: float) -> float:
        """Recorded time at which the traversal first reached ``distance``.

        Brackets ``distance`` between two samples and interpolates linearly;
        distances before the first or after the last sample clamp to the
        endpoint times.

        Raises:
            NonFiniteSampleError: If ``distance`` is NaN or infinite.
        """

        d = require_finite(distance, "distance")
        if d <= self.distances[0]:
            return float(self.times[0])
        if d > self.distances[-1]:
            return float(self.times[-1])
        hi = int(np.searchsorted(self.distances, d, side="left"))
        lo = hi - 1
        span = float(self.distances[hi] - self.distances[lo])
        if span <= 0.0:
            return float(self.times[hi])
        ratio = (d - float(self.distances[lo])) / span
        return float(self.times[lo] + ratio * (self.times[hi] - self.times[lo]))

    def distance_at_time(self, time: float) -> float:
        return float(np.interp(require_finite(time, "time"), self.times, self.distances))

    def fractional_index(self, time: float) -> float:
        """Position of ``time`` on the sample axis, e.g. 1.5 halfway between 1 and 2."""

        t = require_finite(time, "time")
        if len(self.points) == 1:
            return 0.0
        return float(np.interp(t, self.times, np.arange(len(self.points), dtype=float)))

    def sample_at(self, time: float) -> ReplaySample:
        """Interpolate every telemetry channel at ``time``.

        Times outside the recording clamp to the nearest endpoint sample. Non-finite
        times raise :class:`~route_tracker.errors.NonFiniteSampleError`.
        """

        t = min(max(require_finite(time, "time"), 0.0), self.total_duration)
        if t <= self.times[0] or len(self.points) == 1:
            return _sample_from(self.points[0], self.points[0], 0.0, t)
        if t >= self.times[-1]:
            return _sample_from(self.points[-1], self.points[-1], 0.0, t)
        hi = int(np.searchsorted(self.times, t, side="right"))
        lo = hi - 1
        span = float(self.times[hi] - self.times[lo])
        ratio = (t - float(self.times[lo])) / span
        return _sample_from(self.points[lo], self.points[hi], ratio, t)

    def finished_event(self) -> ReplayFinished:
        return ReplayFinished(total_time=self.total_duration, total_distance=self.total_distance)


@dataclass(frozen=True, slots=True)
class ReplayState:
    """Snapshot of the playback cursor."""

    virtual_time: float
    virtual_position: float
    speed_multiplier: float
    is_playing: bool


@dataclass(frozen=True, slots=True)
class ReplayTick:
    """Result of advancing the engine; both fields are None when nothing moved."""

    sample: Optional[ReplaySample] = None
    finished: Optional[ReplayFinished] = None


@dataclass(frozen=True, slots=True)
class ReplayStats:
    duration: float
    distance: float
    average_speed: float
    average_power: float
    max_speed: float
    max_power: float
    point_count: int
    is_synthesized_timing: bool


def _lerp(a: float, b: float, ratio: float) -> float:
    return a + (b - a) * ratio


def _lerp_position(
    a: Optional[Sequence[float]],
    b: Optional[Sequence[float]],
    ratio: float,
) -> Optional[Position]:
    if a is None and b is None:
        return None
    if a is None or b is None or len(a) != len(b):
        chosen = a if (a is not None and (ratio < 0.5 or b is None)) else b
        return tuple(float(v) for v in chosen) if chosen is not None else None
    return tuple(_lerp(float(x), float(y), ratio) for x, y in zip(a, b))


def _sample_from(lo: TimePoint, hi: TimePoint, ratio: float, time: float) -> ReplaySample:
    values = {name: _lerp(getattr(lo, name), getattr(hi, name), ratio) for name in _NUMERIC_FIELDS}
    return ReplaySample(
        position=_lerp_position(lo.position, hi.position, ratio),
        virtual_time=time,
        **values,
    )


__all__ = [
    "ReplayRecording",
    "ReplayState",
    "ReplayStats",
    "ReplayTick",
    "TimePoint",
]
