"""Compare recorded attempts over the same route and tabulate splits."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .checkpoints import CheckpointTracker
from .config import AUTO_CHECKPOINT_INTERVAL_M
from .replay.models import ReplayRecording
from .utils import format_delta, format_duration

LOGGER = logging.getLogger(__name__)

COMPARISON_COLUMNS = [
    "Checkpoint",
    "Distance (m)",
    "Time A (sec)",
    "Time B (sec)",
    "Delta (sec)",
    "Delta",
    "Ahead",
]

SPLIT_COLUMNS = [
    "Checkpoint",
    "Distance (m)",
    "Split (sec)",
    "Total (sec)",
    "Reference (sec)",
    "Delta (sec)",
    "Split",
    "Total",
]


def comparison_distances(
    a: ReplayRecording,
    b: ReplayRecording,
    interval_m: float = AUTO_CHECKPOINT_INTERVAL_M,
) -> List[float]:
    """Every ``interval_m`` up to the shorter recording, then its end."""

    limit = min(a.total_distance, b.total_distance)
    distances: List[float] = []
    step = 1
    while interval_m > 0 and step * interval_m < limit:
        distances.append(step * interval_m)
        step += 1
    if limit > 0:
        distances.append(limit)
    return distances


def compare_attempts(
    a: ReplayRecording,
    b: ReplayRecording,
    distances: Optional[Sequence[float]] = None,
) -> pd.DataFrame:
    """Time both attempts at the same distances.

    ``Delta (sec)`` is ``Time A - Time B``; attempt A is ahead where it is
    negative.
    """

    marks = list(distances) if distances is not None else comparison_distances(a, b)
    rows = []
    for ordinal, distance in enumerate(marks, start=1):
        time_a = a.time_at_distance(distance)
        time_b = b.time_at_distance(distance)
        delta = time_a - time_b
        if delta < 0:
            ahead = "A"
        elif delta > 0:
            ahead = "B"
        else:
            ahead = "Even"
        rows.append(
            {
                "Checkpoint": f"{round(distance / 1000.0, 1)}km" if distances is None else f"#{ordinal}",
                "Distance (m)": float(distance),
                "Time A (sec)": time_a,
                "Time B (sec)": time_b,
                "Delta (sec)": delta,
                "Delta": format_delta(delta),
                "Ahead": ahead,
            }
        )
    return pd.DataFrame(rows, columns=COMPARISON_COLUMNS)


def checkpoint_splits_frame(tracker: CheckpointTracker) -> pd.DataFrame:
    """Tabulate the completed checkpoints of ``tracker`` in route order."""

    rows = []
    for checkpoint in tracker.checkpoints:
        if not checkpoint.completed:
            continue
        rows.append(
            {
                "Checkpoint": checkpoint.name,
                "Distance (m)": checkpoint.distance,
                "Split (sec)": checkpoint.split_time,
                "Total (sec)": checkpoint.total_time,
                "Reference (sec)": checkpoint.reference_time,
                "Delta (sec)": checkpoint.delta_from_reference,
                "Split": format_duration(checkpoint.split_time),
                "Total": format_duration(checkpoint.total_time),
            }
        )
    return pd.DataFrame(rows, columns=SPLIT_COLUMNS)


class AttemptLibrary:
    """In-memory store of recorded attempts with personal-best tracking.

    The personal best is the attempt with the shortest positive duration;
    equal durations keep the earlier attempt.
    """

    def __init__(self) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._attempts: Dict[str, ReplayRecording] = {}
        self._counter = 0
        self._best_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._attempts)

    def __contains__(self, attempt_id: object) -> bool:
        return attempt_id in self._attempts

    @property
    def attempt_ids(self) -> List[str]:
        return list(self._attempts)

    @property
    def personal_best_id(self) -> Optional[str]:
        return self._best_id

    def personal_best(self) -> Optional[ReplayRecording]:
        return self._attempts.get(self._best_id) if self._best_id is not None else None

    def add(self, recording: ReplayRecording, attempt_id: Optional[str] = None) -> str:
        if attempt_id is None:
            self._counter += 1
            attempt_id = f"attempt-{self._counter}"
            while attempt_id in self._attempts:
                self._counter += 1
                attempt_id = f"attempt-{self._counter}"
        if attempt_id in self._attempts:
            raise ValueError(f"Attempt id already stored: {attempt_id!r}")
        self._attempts[attempt_id] = recording
        previous = self._best_id
        self._refresh_best()
        if self._best_id == attempt_id and previous != attempt_id:
            self._log.info(
                "New personal best %s: %s",
                attempt_id,
                format_duration(recording.total_duration),
            )
        return attempt_id

    def get(self, attempt_id: str) -> ReplayRecording:
        try:
            return self._attempts[attempt_id]
        except KeyError:
            raise KeyError(f"Unknown attempt id: {attempt_id!r}") from None

    def remove(self, attempt_id: str) -> bool:
        if self._attempts.pop(attempt_id, None) is None:
            return False
        self._refresh_best()
        return True

    def compare(
        self,
        attempt_a: str,
        attempt_b: str,
        distances: Optional[Sequence[float]] = None,
    ) -> pd.DataFrame:
        return compare_attempts(self.get(attempt_a), self.get(attempt_b), distances)

    def summary_frame(self) -> pd.DataFrame:
        rows = [
            {
                "Attempt": attempt_id,
                "Duration (sec)": recording.total_duration,
                "Distance (m)": recording.total_distance,
                "Duration": format_duration(recording.total_duration),
                "Synthesized Timing": recording.is_synthesized_timing,
                "Personal Best": attempt_id == self._best_id,
            }
            for attempt_id, recording in self._attempts.items()
        ]
        return pd.DataFrame(
            rows,
            columns=[
                "Attempt",
                "Duration (sec)",
                "Distance (m)",
                "Duration",
                "Synthesized Timing",
                "Personal Best",
            ],
        )

    def _refresh_best(self) -> None:
        best_id: Optional[str] = None
        best_duration = float("inf")
        for attempt_id, recording in self._attempts.items():
            duration = recording.total_duration
            if 0.0 < duration < best_duration:
                best_id = attempt_id
                best_duration = duration
        self._best_id = best_id


__all__ = [
    "AttemptLibrary",
    "checkpoint_splits_frame",
    "compare_attempts",
    "comparison_distances",
]
