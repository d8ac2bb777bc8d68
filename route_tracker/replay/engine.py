"""Ghost playback over a recorded traversal."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Optional

import numpy as np

from ..config import (
    LOG_REJECTED_SAMPLES,
    REPLAY_DEFAULT_SPEED,
    REPLAY_SPEED_MAX,
    REPLAY_SPEED_MIN,
)
from ..errors import EmptyRecordingError, NonFiniteSampleError
from ..models import ReplayComparison, ReplaySample
from ..utils import to_jsonable
from .models import ReplayRecording, ReplayState, ReplayStats, ReplayTick


def clamp_speed(multiplier: float) -> float:
    """Validate a playback multiplier and clamp it into the supported range."""

    value = float(multiplier)
    if not math.isfinite(value) or value <= 0.0:
        raise ValueError(f"Playback speed must be a positive finite number, got {multiplier!r}")
    return min(max(value, REPLAY_SPEED_MIN), REPLAY_SPEED_MAX)


class ReplayEngine:
    """Advance a virtual clock over a :class:`ReplayRecording`.

    Virtual time is measured on the recording's own time axis; ``tick(dt)``
    moves it by ``dt * speed_multiplier``. ``pause`` and ``stop`` only change
    flags, so they take effect at the next tick.
    """

    def __init__(self, recording: Optional[ReplayRecording] = None) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._recording: Optional[ReplayRecording] = None
        self._virtual_time = 0.0
        self._speed = REPLAY_DEFAULT_SPEED
        self._playing = False
        self.rejected_ticks = 0
        if recording is not None:
            self.load(recording)

    # ------------------------------------------------------------------
    # Loading and transport controls
    # ------------------------------------------------------------------

    @property
    def recording(self) -> Optional[ReplayRecording]:
        return self._recording

    @property
    def is_loaded(self) -> bool:
        return self._recording is not None

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def virtual_time(self) -> float:
        return self._virtual_time

    @property
    def speed_multiplier(self) -> float:
        return self._speed

    def load(self, recording: ReplayRecording) -> None:
        if recording is None or len(recording) == 0:
            raise EmptyRecordingError("Recording contains no usable time points")
        self._recording = recording
        self._virtual_time = 0.0
        self._playing = False
        self._log.info(
            "Replay loaded: %d points over %.1f s (synthesized timing=%s)",
            len(recording),
            recording.total_duration,
            recording.is_synthesized_timing,
        )

    def play(self, speed_multiplier: Optional[float] = None) -> None:
        """Start or resume playback; a finished replay restarts from zero."""

        recording = self._require_recording()
        if speed_multiplier is not None:
            self._speed = clamp_speed(speed_multiplier)
        if self._virtual_time >= recording.total_duration:
            self._virtual_time = 0.0
        self._playing = True
        self._log.debug("Replay playing at %.2fx from %.2f s", self._speed, self._virtual_time)

    def set_speed(self, speed_multiplier: float) -> float:
        self._speed = clamp_speed(speed_multiplier)
        return self._speed

    def pause(self) -> None:
        self._playing = False

    def stop(self) -> None:
        """Pause and rewind to the start."""
        self._playing = False
        self._virtual_time = 0.0

    def seek_to_time(self, time: float) -> ReplaySample:
        recording = self._require_recording()
        t = float(time)
        if not math.isfinite(t):
            raise ValueError(f"Seek time must be finite, got {time!r}")
        self._virtual_time = min(max(t, 0.0), recording.total_duration)
        return recording.sample_at(self._virtual_time)

    def seek_to_fraction(self, fraction: float) -> ReplaySample:
        recording = self._require_recording()
        f = float(fraction)
        if not math.isfinite(f):
            raise ValueError(f"Seek fraction must be finite, got {fraction!r}")
        f = min(max(f, 0.0), 1.0)
        return self.seek_to_time(f * recording.total_duration)

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample_at(self, time: float) -> ReplaySample:
        return self._require_recording().sample_at(time)

    def current_sample(self) -> ReplaySample:
        return self.sample_at(self._virtual_time)

    def tick(self, delta_wall_time: float) -> ReplayTick:
        """Advance playback by ``delta_wall_time`` seconds of wall-clock time.

        Returns an empty :class:`ReplayTick` when nothing is loaded, playback
        is paused, or ``delta_wall_time`` is negative or not finite (the last
        case is counted in ``rejected_ticks`` and leaves state untouched).
        """

        try:
            dt = float(delta_wall_time)
        except (TypeError, ValueError):
            dt = math.nan
        if not math.isfinite(dt) or dt < 0.0:
            self.rejected_ticks += 1
            level = logging.WARNING if LOG_REJECTED_SAMPLES else logging.DEBUG
            self._log.log(level, "Rejected replay tick with delta %r", delta_wall_time)
            return ReplayTick()
        recording = self._recording
        if recording is None or not self._playing:
            return ReplayTick()

        target = self._virtual_time + dt * self._speed
        finished = None
        if target >= recording.total_duration:
            target = recording.total_duration
            self._playing = False
            finished = recording.finished_event()
            self._log.info("Replay finished after %.1f s", recording.total_duration)
        self._virtual_time = target
        return ReplayTick(sample=recording.sample_at(target), finished=finished)

    # ------------------------------------------------------------------
    # Ghost comparisons
    # ------------------------------------------------------------------

    def time_at_distance(self, distance: float) -> float:
        return self._require_recording().time_at_distance(distance)

    def distance_at_time(self, time: float) -> float:
        return self._require_recording().distance_at_time(time)

    def compare_against(self, live_distance: float, live_time: float) -> ReplayComparison:
        """Compare a live athlete with the recording at the same distance.

        ``ahead_by = recorded_time - live_time``; positive when the live
        athlete got there sooner than the ghost did.
        """

        recording = self._require_recording()
        if not (math.isfinite(live_distance) and math.isfinite(live_time)):
            raise NonFiniteSampleError(
                f"Comparison inputs must be finite: distance={live_distance!r} time={live_time!r}"
            )
        recorded_time = recording.time_at_distance(live_distance)
        return ReplayComparison(
            ahead_by=recorded_time - float(live_time),
            recorded_time=recorded_time,
            live_time=float(live_time),
            live_distance=float(live_distance),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> ReplayState:
        position = 0.0
        if self._recording is not None:
            position = self._recording.fractional_index(self._virtual_time)
        return ReplayState(
            virtual_time=self._virtual_time,
            virtual_position=position,
            speed_multiplier=self._speed,
            is_playing=self._playing,
        )

    def stats(self) -> ReplayStats:
        recording = self._require_recording()
        speeds = np.array([p.speed for p in recording.points], dtype=float)
        powers = np.array([p.power for p in recording.points], dtype=float)
        positive_power = powers[powers > 0.0]
        duration = recording.total_duration
        return ReplayStats(
            duration=duration,
            distance=recording.total_distance,
            average_speed=recording.total_distance / duration if duration > 0.0 else 0.0,
            average_power=float(positive_power.mean()) if positive_power.size else 0.0,
            max_speed=float(speeds.max()),
            max_power=float(powers.max()),
            point_count=len(recording),
            is_synthesized_timing=recording.is_synthesized_timing,
        )

    def export_state(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "loaded": self.is_loaded,
            "state": to_jsonable(self.state),
            "rejected_ticks": self.rejected_ticks,
        }
        if self._recording is not None:
            payload["stats"] = to_jsonable(self.stats())
            payload["metadata"] = to_jsonable(self._recording.metadata)
        return payload

    def _require_recording(self) -> ReplayRecording:
        if self._recording is None:
            raise EmptyRecordingError("No recording loaded")
        return self._recording


__all__ = ["ReplayEngine", "clamp_speed"]
