"""Dataclasses describing tracked route state and the events it emits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

Position = Tuple[float, ...]


class CheckpointCategory(str, Enum):
    """Role a checkpoint plays along the route."""

    START = "start"
    FINISH = "finish"
    SPLIT = "split"
    LAP = "lap"
    MANUAL = "manual"
    CHECKPOINT = "checkpoint"


@dataclass(slots=True)
class CheckpointDescriptor:
    """Load-time description of a checkpoint.

    Either ``position`` or ``distance`` (from route start) must be given; the
    missing one is derived from the path index.
    """

    name: str
    position: Optional[Position] = None
    distance: Optional[float] = None
    radius: Optional[float] = None
    category: CheckpointCategory = CheckpointCategory.CHECKPOINT
    reference_time: Optional[float] = None
    checkpoint_id: Optional[str] = None


@dataclass(slots=True)
class Checkpoint:
    """A named waypoint with its fixed target and mutable runtime state."""

    checkpoint_id: str
    name: str
    position: Position
    distance: float
    progress: float
    radius: float
    category: CheckpointCategory = CheckpointCategory.CHECKPOINT
    reference_time: Optional[float] = None
    completed: bool = False
    completed_at: Optional[float] = None
    active: bool = False
    split_time: Optional[float] = None
    total_time: Optional[float] = None
    delta_from_reference: Optional[float] = None

    def clear(self) -> None:
        """Reset runtime state while keeping identity and target."""

        self.completed = False
        self.completed_at = None
        self.active = False
        self.split_time = None
        self.total_time = None
        self.delta_from_reference = None


@dataclass(slots=True)
class SegmentDescriptor:
    """Load-time description of a bounded route section in progress units."""

    name: str
    start_progress: float
    end_progress: float
    segment_id: Optional[str] = None


@dataclass(slots=True)
class Segment:
    """A ``[start_progress, end_progress)`` section and its runtime state."""

    segment_id: str
    name: str
    start_progress: float
    end_progress: float
    start_distance: Optional[float] = None
    end_distance: Optional[float] = None
    is_active: bool = False
    is_completed: bool = False
    enter_time: Optional[float] = None
    exit_time: Optional[float] = None
    current_duration: Optional[float] = None

    def contains(self, progress: float) -> bool:
        return self.start_progress <= progress < self.end_progress

    def clear(self) -> None:
        self.is_active = False
        self.is_completed = False
        self.enter_time = None
        self.exit_time = None
        self.current_duration = None


@dataclass(slots=True)
class LiveSample:
    """One live feed sample as delivered by the external driving loop."""

    position: Position
    timestamp_ms: float
    speed: Optional[float] = None
    distance: Optional[float] = None

    @property
    def timestamp_s(self) -> float:
        return float(self.timestamp_ms) / 1000.0


# ---------------------------------------------------------------------------
# Output events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CheckpointCompleted:
    checkpoint_id: str
    name: str
    time: float
    total_time: float
    split_time: float
    delta: Optional[float] = None


@dataclass(frozen=True, slots=True)
class SegmentEntered:
    segment_id: str
    time: float


@dataclass(frozen=True, slots=True)
class SegmentExited:
    segment_id: str
    time: float
    duration: float


@dataclass(frozen=True, slots=True)
class ReplaySample:
    position: Optional[Position]
    distance: float
    speed: float
    power: float
    heart_rate: float
    cadence: float
    altitude: float
    virtual_time: float


@dataclass(frozen=True, slots=True)
class ReplayFinished:
    total_time: float
    total_distance: float


# ---------------------------------------------------------------------------
# Query results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CheckpointStats:
    total: int
    completed: int
    remaining: int
    completion_rate: float


@dataclass(frozen=True, slots=True)
class TimingInfo:
    """Elapsed time since start and since the last completed checkpoint."""

    total_time: float
    split_time: float
    has_started: bool
    completed_checkpoints: int


@dataclass(frozen=True, slots=True)
class ReplayComparison:
    """Ghost comparison at the live athlete's distance.

    ``ahead_by = recorded_time - live_time``: positive when the live athlete
    reached the distance sooner than the recording did.
    """

    ahead_by: float
    recorded_time: float
    live_time: float
    live_distance: float

    @property
    def is_ahead(self) -> bool:
        return self.ahead_by > 0.0


@dataclass(slots=True)
class SplitRecord:
    """History entry appended whenever a checkpoint completes."""

    checkpoint_id: str
    name: str
    split_time: float
    total_time: float
