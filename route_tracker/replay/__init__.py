"""Recorded-traversal replay: ingestion, recording model and playback engine."""

from .engine import ReplayEngine, clamp_speed
from .ingest import (
    build_recording,
    normalize_telemetry,
    recording_from_dict,
    recording_to_dict,
    synthesize_times,
)
from .models import ReplayRecording, ReplayState, ReplayStats, ReplayTick, TimePoint

__all__ = [
    "ReplayEngine",
    "ReplayRecording",
    "ReplayState",
    "ReplayStats",
    "ReplayTick",
    "TimePoint",
    "build_recording",
    "clamp_speed",
    "normalize_telemetry",
    "recording_from_dict",
    "recording_to_dict",
    "synthesize_times",
]
