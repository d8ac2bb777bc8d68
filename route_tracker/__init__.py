"""Route progress tracking and ghost replay package."""

from .checkpoints import CheckpointTracker, CheckpointUpdate, generate_interval_checkpoints
from .comparison import AttemptLibrary, compare_attempts
from .errors import (
    EmptyPathError,
    EmptyRecordingError,
    InvalidCheckpointError,
    InvalidSegmentError,
    NonFiniteSampleError,
    RouteTrackerError,
)
from .geometry import DistanceMetric, PathIndex, ProximityDetector
from .models import (
    CheckpointCategory,
    CheckpointDescriptor,
    LiveSample,
    SegmentDescriptor,
)
from .replay import ReplayEngine, ReplayRecording, TimePoint, build_recording, normalize_telemetry
from .segments import SegmentTracker
from .session import RouteSession, SessionUpdate
from .timing import TimingClock

__all__ = [
    "AttemptLibrary",
    "CheckpointCategory",
    "CheckpointDescriptor",
    "CheckpointTracker",
    "CheckpointUpdate",
    "DistanceMetric",
    "EmptyPathError",
    "EmptyRecordingError",
    "InvalidCheckpointError",
    "InvalidSegmentError",
    "LiveSample",
    "NonFiniteSampleError",
    "PathIndex",
    "ProximityDetector",
    "ReplayEngine",
    "ReplayRecording",
    "RouteSession",
    "RouteTrackerError",
    "SegmentDescriptor",
    "SegmentTracker",
    "SessionUpdate",
    "TimePoint",
    "TimingClock",
    "build_recording",
    "compare_attempts",
    "generate_interval_checkpoints",
    "normalize_telemetry",
]
