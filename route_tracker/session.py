"""Per-route tracking session tying the path index, trackers and ghost together."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .checkpoints import CheckpointTracker, CheckpointUpdate
from .config import LOG_REJECTED_SAMPLES
from .geometry.cache import PATH_INDEX_CACHE, PathIndexCache
from .geometry.distance import DistanceMetric
from .geometry.path_index import PathIndex, PathLocation
from .models import (
    CheckpointDescriptor,
    CheckpointStats,
    LiveSample,
    ReplayComparison,
    SegmentDescriptor,
    TimingInfo,
)
from .replay.engine import ReplayEngine
from .replay.models import ReplayRecording, ReplayTick
from .segments import SegmentEvent, SegmentTracker
from .utils import is_finite_position, json_dumps_sorted, to_jsonable

Listener = Callable[[Any], None]


@dataclass(slots=True)
class SessionUpdate:
    """Everything one live sample produced, in the order it was produced."""

    location: Optional[PathLocation] = None
    progress: Optional[float] = None
    checkpoint: Optional[CheckpointUpdate] = None
    segment_events: List[SegmentEvent] = field(default_factory=list)
    comparison: Optional[ReplayComparison] = None
    events: List[Any] = field(default_factory=list)
    rejected: bool = False


class RouteSession:
    """Own the per-route context: one path index, both trackers and an optional ghost.

    Each accepted sample is projected onto the route once; checkpoints are
    evaluated before segments using that same progress value. Events go to
    the registered listeners after tracking state has been updated, and a
    listener that raises is logged without affecting tracking.
    """

    def __init__(
        self,
        route_points: Iterable[Sequence[float]],
        checkpoints: Optional[Sequence[CheckpointDescriptor]] = None,
        segments: Optional[Sequence[SegmentDescriptor]] = None,
        recording: Optional[ReplayRecording] = None,
        *,
        metric: Optional[DistanceMetric] = None,
        listeners: Optional[Iterable[Listener]] = None,
        use_cache: bool = True,
        cache: Optional[PathIndexCache] = None,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        if use_cache:
            self.path_index = (cache or PATH_INDEX_CACHE).get_or_build(route_points, metric)
        else:
            self.path_index = PathIndex.build(route_points, metric)
        self.checkpoints = CheckpointTracker()
        self.checkpoints.load(checkpoints or [], self.path_index)
        self.segments = SegmentTracker(segments or [], self.path_index)
        self.replay: Optional[ReplayEngine] = None
        self._listeners: List[Listener] = list(listeners or [])
        self._last_timestamp: Optional[float] = None
        self.rejected_samples = 0
        if recording is not None:
            self.load_recording(recording)
        self._log.info(
            "Route session ready: %d points, %.1f units, %d checkpoints, %d segments",
            len(self.path_index),
            self.path_index.total_distance(),
            len(self.checkpoints.checkpoints),
            len(self.segments.segments),
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> bool:
        try:
            self._listeners.remove(listener)
        except ValueError:
            return False
        return True

    def _dispatch(self, events: Iterable[Any]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    self._log.warning(
                        "Listener %r failed handling %s",
                        listener,
                        type(event).__name__,
                        exc_info=True,
                    )

    # ------------------------------------------------------------------
    # Live tracking
    # ------------------------------------------------------------------

    def process_sample(self, sample: LiveSample) -> SessionUpdate:
        if not self._is_valid_sample(sample):
            self.rejected_samples += 1
            level = logging.WARNING if LOG_REJECTED_SAMPLES else logging.DEBUG
            self._log.log(level, "Rejected live sample %r", sample)
            return SessionUpdate(rejected=True)

        timestamp = sample.timestamp_s
        location = self.path_index.locate(sample.position)
        along = float(sample.distance) if sample.distance is not None else location.distance_along
        progress = self.path_index.progress_at_distance(along)

        checkpoint_update = self.checkpoints.update(sample.position, timestamp, sample.speed)
        segment_events = self.segments.update(progress, timestamp)

        comparison = None
        clock = self.checkpoints.clock
        if self.replay is not None and clock.is_running:
            comparison = self.replay.compare_against(along, clock.elapsed(timestamp))

        self._last_timestamp = timestamp
        update = SessionUpdate(
            location=location,
            progress=progress,
            checkpoint=checkpoint_update,
            segment_events=segment_events,
            comparison=comparison,
            events=[*checkpoint_update.events, *segment_events],
        )
        self._dispatch(update.events)
        return update

    @staticmethod
    def _is_valid_sample(sample: LiveSample) -> bool:
        if not is_finite_position(sample.position):
            return False
        for value in (sample.timestamp_ms, sample.speed, sample.distance):
            if value is None:
                continue
            try:
                if not math.isfinite(float(value)):
                    return False
            except (TypeError, ValueError):
                return False
        return sample.timestamp_ms is not None

    # ------------------------------------------------------------------
    # Ghost replay
    # ------------------------------------------------------------------

    def load_recording(self, recording: ReplayRecording, use_as_reference: bool = False) -> None:
        """Attach a ghost; optionally seed checkpoint reference times from it."""

        if self.replay is None:
            self.replay = ReplayEngine(recording)
        else:
            self.replay.load(recording)
        if use_as_reference:
            updated = self.checkpoints.apply_reference_times(recording.time_at_distance)
            self._log.info("Seeded %d checkpoint reference times from the ghost", updated)

    def tick_replay(self, delta_wall_time: float) -> ReplayTick:
        if self.replay is None:
            return ReplayTick()
        tick = self.replay.tick(delta_wall_time)
        self._dispatch(event for event in (tick.sample, tick.finished) if event is not None)
        return tick

    # ------------------------------------------------------------------
    # Queries and lifecycle
    # ------------------------------------------------------------------

    def get_stats(self) -> CheckpointStats:
        return self.checkpoints.stats()

    def get_timing_info(self, now_ms: Optional[float] = None) -> TimingInfo:
        """Timing at ``now_ms`` (defaults to the last accepted sample)."""

        if now_ms is not None:
            now = float(now_ms) / 1000.0
        elif self._last_timestamp is not None:
            now = self._last_timestamp
        else:
            now = self.checkpoints.clock.start_time or 0.0
        return self.checkpoints.timing_info(now)

    def export_state(self) -> Dict[str, Any]:
        return {
            "route": {
                "points": len(self.path_index),
                "total_distance": self.path_index.total_distance(),
                "metric": self.path_index.metric.value,
            },
            "checkpoints": self.checkpoints.export_state(),
            "segments": self.segments.export_state(),
            "replay": self.replay.export_state() if self.replay is not None else None,
            "timing": to_jsonable(self.get_timing_info()),
            "rejected_samples": self.rejected_samples,
        }

    def export_json(self) -> str:
        """Canonical JSON of :meth:`export_state` for persistence collaborators."""
        return json_dumps_sorted(self.export_state())

    def reset(self) -> None:
        """Clear live progress; route, targets and the loaded ghost stay."""

        self.checkpoints.reset()
        self.segments.reset()
        if self.replay is not None:
            self.replay.stop()
        self._last_timestamp = None


__all__ = ["Listener", "RouteSession", "SessionUpdate"]
