"""Checkpoint detection and split timing along a route."""

from __future__ import annotations

from dataclasses import dataclass, field
import bisect
import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .config import (
    AUTO_CHECKPOINT_INTERVAL_M,
    DEFAULT_CHECKPOINT_RADIUS,
    FINISH_MERGE_THRESHOLD_M,
    LOG_REJECTED_SAMPLES,
)
from .errors import InvalidCheckpointError
from .geometry.path_index import PathIndex
from .geometry.proximity import ProximityDetector
from .models import (
    Checkpoint,
    CheckpointCategory,
    CheckpointCompleted,
    CheckpointDescriptor,
    CheckpointStats,
    SplitRecord,
    TimingInfo,
)
from .replay.models import ReplayRecording
from .timing import TimingClock
from .utils import is_finite_position, to_jsonable

ReferenceSource = Union[Mapping[str, float], Callable[[float], float]]


@dataclass(slots=True)
class CheckpointUpdate:
    """Outcome of one live sample."""

    completed: List[Checkpoint] = field(default_factory=list)
    events: List[CheckpointCompleted] = field(default_factory=list)
    active: Optional[Checkpoint] = None
    active_changed: bool = False
    rejected: bool = False


class CheckpointTracker:
    """Track pending -> completed checkpoints and the timing between them.

    ``active`` is recomputed on every accepted sample as the nearest pending
    checkpoint (ties go to the one earlier along the route). A checkpoint
    completes at most once until :meth:`reset`.
    """

    def __init__(
        self,
        descriptors: Optional[Sequence[CheckpointDescriptor]] = None,
        path_index: Optional[PathIndex] = None,
        default_radius: float = DEFAULT_CHECKPOINT_RADIUS,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._default_radius = default_radius
        self._checkpoints: List[Checkpoint] = []
        self._path_index: Optional[PathIndex] = None
        self._proximity = ProximityDetector()
        self._active_id: Optional[str] = None
        self._history: List[SplitRecord] = []
        self.clock = TimingClock()
        self.rejected_samples = 0
        if descriptors is not None:
            if path_index is None:
                raise InvalidCheckpointError("A path index is required to load checkpoints")
            self.load(descriptors, path_index)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @property
    def checkpoints(self) -> tuple[Checkpoint, ...]:
        return tuple(self._checkpoints)

    @property
    def path_index(self) -> Optional[PathIndex]:
        return self._path_index

    @property
    def split_history(self) -> tuple[SplitRecord, ...]:
        return tuple(self._history)

    @property
    def active_checkpoint(self) -> Optional[Checkpoint]:
        return self.get(self._active_id) if self._active_id is not None else None

    def get(self, checkpoint_id: str) -> Optional[Checkpoint]:
        for checkpoint in self._checkpoints:
            if checkpoint.checkpoint_id == checkpoint_id:
                return checkpoint
        return None

    def load(self, descriptors: Sequence[CheckpointDescriptor], path_index: PathIndex) -> None:
        """Resolve descriptors against ``path_index`` and replace the current set.

        Every descriptor is resolved before anything is replaced, so a bad
        descriptor leaves the tracker as it was.

        Raises:
            InvalidCheckpointError: On a missing or non-finite target, a bad
                radius, an unknown category, or a duplicate id.
        """

        resolved: List[Checkpoint] = []
        seen: set[str] = set()
        for ordinal, descriptor in enumerate(descriptors, start=1):
            checkpoint = self._resolve(descriptor, path_index, f"checkpoint-{ordinal}")
            if checkpoint.checkpoint_id in seen:
                raise InvalidCheckpointError(
                    f"Duplicate checkpoint id: {checkpoint.checkpoint_id!r}"
                )
            seen.add(checkpoint.checkpoint_id)
            resolved.append(checkpoint)
        resolved.sort(key=lambda cp: cp.distance)

        self._checkpoints = resolved
        self._path_index = path_index
        self._proximity = ProximityDetector.for_path(path_index)
        self.reset()
        self._log.info(
            "Loaded %d checkpoints over %.1f units (%s)",
            len(resolved),
            path_index.total_distance(),
            path_index.metric.value,
        )

    def add_checkpoint(self, descriptor: CheckpointDescriptor) -> Checkpoint:
        """Insert one checkpoint into the loaded set, keeping distance order."""

        if self._path_index is None:
            raise InvalidCheckpointError("Load a route before adding checkpoints")
        fallback_id = f"checkpoint-{len(self._checkpoints) + 1}"
        while self.get(fallback_id) is not None:
            fallback_id += "-x"
        checkpoint = self._resolve(descriptor, self._path_index, fallback_id)
        if self.get(checkpoint.checkpoint_id) is not None:
            raise InvalidCheckpointError(f"Duplicate checkpoint id: {checkpoint.checkpoint_id!r}")
        keys = [cp.distance for cp in self._checkpoints]
        self._checkpoints.insert(bisect.bisect_right(keys, checkpoint.distance), checkpoint)
        self._log.debug("Added checkpoint %s at %.1f", checkpoint.checkpoint_id, checkpoint.distance)
        return checkpoint

    def remove_checkpoint(self, checkpoint_id: str) -> bool:
        checkpoint = self.get(checkpoint_id)
        if checkpoint is None:
            return False
        self._checkpoints.remove(checkpoint)
        if self._active_id == checkpoint_id:
            self._active_id = None
        return True

    def _resolve(
        self,
        descriptor: CheckpointDescriptor,
        path_index: PathIndex,
        fallback_id: str,
    ) -> Checkpoint:
        name = descriptor.name
        position = descriptor.position
        distance = descriptor.distance
        total = path_index.total_distance()

        if position is not None:
            if not is_finite_position(position):
                raise InvalidCheckpointError(f"Checkpoint {name!r} has a non-finite position")
            position = tuple(float(v) for v in position)
        if distance is not None:
            if not math.isfinite(distance):
                raise InvalidCheckpointError(f"Checkpoint {name!r} has a non-finite distance")
            distance = min(max(float(distance), 0.0), total)

        if position is None and distance is None:
            raise InvalidCheckpointError(f"Checkpoint {name!r} needs a position or a distance")
        if distance is None:
            location = path_index.locate(position, exhaustive=True)
            if location.segment_index < 0:
                raise InvalidCheckpointError(f"Checkpoint {name!r} cannot be projected")
            distance = location.distance_along
        if position is None:
            position = path_index.point_at_distance(distance)

        radius = self._default_radius if descriptor.radius is None else float(descriptor.radius)
        if not math.isfinite(radius) or radius <= 0.0:
            raise InvalidCheckpointError(f"Checkpoint {name!r} has an invalid radius: {radius!r}")

        try:
            category = CheckpointCategory(descriptor.category)
        except ValueError:
            raise InvalidCheckpointError(
                f"Checkpoint {name!r} has an unknown category: {descriptor.category!r}"
            ) from None

        reference = descriptor.reference_time
        if reference is not None and not math.isfinite(reference):
            reference = None

        return Checkpoint(
            checkpoint_id=descriptor.checkpoint_id or fallback_id,
            name=name,
            position=position,
            distance=distance,
            progress=path_index.progress_at_distance(distance),
            radius=radius,
            category=category,
            reference_time=reference,
        )

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    def update(
        self,
        position: Sequence[float],
        timestamp: float,
        speed: Optional[float] = None,
    ) -> CheckpointUpdate:
        """Evaluate one live sample (``timestamp`` in seconds).

        Malformed samples are counted and logged, and leave every checkpoint
        and the clock untouched.
        """

        if not self._is_valid_sample(position, timestamp, speed):
            self.rejected_samples += 1
            level = logging.WARNING if LOG_REJECTED_SAMPLES else logging.DEBUG
            self._log.log(
                level,
                "Rejected checkpoint sample position=%r timestamp=%r speed=%r",
                position,
                timestamp,
                speed,
            )
            return CheckpointUpdate(active=self.active_checkpoint, rejected=True)

        ts = float(timestamp)
        moving = speed is None or float(speed) > 0.0
        if moving and self.clock.start(ts):
            self._log.debug("Timing started on first motion at %.3f", ts)

        result = CheckpointUpdate()
        best: Optional[Checkpoint] = None
        best_distance = math.inf
        for checkpoint in self._checkpoints:
            if checkpoint.completed:
                continue
            gap = self._proximity.distance(position, checkpoint.position)
            if gap <= checkpoint.radius:
                result.events.append(self._complete(checkpoint, ts))
                result.completed.append(checkpoint)
                continue
            if gap < best_distance:
                best = checkpoint
                best_distance = gap

        new_active_id = best.checkpoint_id if best is not None else None
        for checkpoint in self._checkpoints:
            checkpoint.active = checkpoint.checkpoint_id == new_active_id
        result.active_changed = new_active_id != self._active_id
        self._active_id = new_active_id
        result.active = best
        return result

    def _complete(self, checkpoint: Checkpoint, timestamp: float) -> CheckpointCompleted:
        split = self.clock.record_split(timestamp)
        total = self.clock.elapsed(timestamp)
        checkpoint.completed = True
        checkpoint.completed_at = timestamp
        checkpoint.split_time = split
        checkpoint.total_time = total
        if checkpoint.reference_time is not None:
            checkpoint.delta_from_reference = total - checkpoint.reference_time
        self._history.append(
            SplitRecord(
                checkpoint_id=checkpoint.checkpoint_id,
                name=checkpoint.name,
                split_time=split,
                total_time=total,
            )
        )
        self._log.debug(
            "Checkpoint %s completed: split=%.2f total=%.2f",
            checkpoint.checkpoint_id,
            split,
            total,
        )
        return CheckpointCompleted(
            checkpoint_id=checkpoint.checkpoint_id,
            name=checkpoint.name,
            time=timestamp,
            total_time=total,
            split_time=split,
            delta=checkpoint.delta_from_reference,
        )

    @staticmethod
    def _is_valid_sample(position: Any, timestamp: Any, speed: Any) -> bool:
        if not is_finite_position(position):
            return False
        try:
            if not math.isfinite(float(timestamp)):
                return False
            if speed is not None and not math.isfinite(float(speed)):
                return False
        except (TypeError, ValueError):
            return False
        return True

    # ------------------------------------------------------------------
    # State management and queries
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Clear completion state and timing; identities and targets stay."""

        for checkpoint in self._checkpoints:
            checkpoint.clear()
        self._active_id = None
        self._history.clear()
        self.clock.reset()

    def apply_reference_times(self, source: ReferenceSource) -> int:
        """Set reference times from a mapping of id -> seconds or a distance -> seconds callable.

        Returns the number of checkpoints updated. Deltas of already completed
        checkpoints are recomputed.
        """

        updated = 0
        for checkpoint in self._checkpoints:
            if callable(source):
                value: Optional[float] = float(source(checkpoint.distance))
            else:
                value = source.get(checkpoint.checkpoint_id)
            if value is None or not math.isfinite(value):
                continue
            checkpoint.reference_time = float(value)
            if checkpoint.completed and checkpoint.total_time is not None:
                checkpoint.delta_from_reference = checkpoint.total_time - checkpoint.reference_time
            updated += 1
        return updated

    def stats(self) -> CheckpointStats:
        total = len(self._checkpoints)
        completed = sum(1 for cp in self._checkpoints if cp.completed)
        return CheckpointStats(
            total=total,
            completed=completed,
            remaining=total - completed,
            completion_rate=completed / total if total else 0.0,
        )

    def timing_info(self, now: float) -> TimingInfo:
        return TimingInfo(
            total_time=self.clock.elapsed(now),
            split_time=self.clock.since_last_split(now),
            has_started=self.clock.is_running,
            completed_checkpoints=self.stats().completed,
        )

    def export_state(self) -> Dict[str, Any]:
        return {
            "checkpoints": to_jsonable(self._checkpoints),
            "active_checkpoint": self._active_id,
            "timing": self.clock.snapshot(),
            "splits": to_jsonable(self._history),
            "stats": to_jsonable(self.stats()),
            "rejected_samples": self.rejected_samples,
        }


def generate_interval_checkpoints(
    recording: ReplayRecording,
    interval_m: float = AUTO_CHECKPOINT_INTERVAL_M,
    finish_merge_m: float = FINISH_MERGE_THRESHOLD_M,
) -> List[CheckpointDescriptor]:
    """Derive start, distance-split and finish checkpoints from a recording.

    Splits are placed every ``interval_m`` metres and named ``"<km>km Split"``.
    When the finish lies within ``finish_merge_m`` of the last split, that
    split becomes the finish. Reference times come from the recording, so the
    result can be loaded directly as a ghost comparison.
    """

    if not math.isfinite(interval_m) or interval_m <= 0.0:
        raise ValueError(f"interval_m must be positive, got {interval_m!r}")

    def _descriptor(
        checkpoint_id: str,
        name: str,
        distance: float,
        category: CheckpointCategory,
    ) -> CheckpointDescriptor:
        time = recording.time_at_distance(distance)
        return CheckpointDescriptor(
            name=name,
            position=recording.sample_at(time).position,
            distance=distance,
            category=category,
            reference_time=time,
            checkpoint_id=checkpoint_id,
        )

    total = recording.total_distance
    start_distance = float(recording.distances[0])
    descriptors = [_descriptor("start", "Start", start_distance, CheckpointCategory.START)]
    if total <= start_distance:
        return descriptors

    count = 1
    while count * interval_m < total:
        distance = count * interval_m
        if distance > start_distance:
            descriptors.append(
                _descriptor(
                    f"split-{count}",
                    f"{round(distance / 1000.0, 1)}km Split",
                    distance,
                    CheckpointCategory.SPLIT,
                )
            )
        count += 1

    finish = _descriptor(
        "finish",
        f"Finish ({round(total / 1000.0, 1)}km)",
        total,
        CheckpointCategory.FINISH,
    )
    last = descriptors[-1]
    if last.category is CheckpointCategory.SPLIT and total - (last.distance or 0.0) < finish_merge_m:
        descriptors[-1] = finish
    else:
        descriptors.append(finish)
    return descriptors


__all__ = [
    "CheckpointTracker",
    "CheckpointUpdate",
    "generate_interval_checkpoints",
]
