"""Telemetry ingestion: canonicalise raw recordings into ``ReplayRecording``.

Recorded activities arrive with several historical field names for the same
quantity (``time`` / ``timeInS`` / ``timestamp``, metres vs centimetres, and
so on). Everything is mapped onto :class:`TimePoint` here so the engine only
ever sees one shape.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..config import (
    SYNTHESIZED_TIMING_DEFAULT_SPEED,
    SYNTHESIZED_TIMING_MIN_STEP_S,
    SYNTHESIZED_TIMING_SPEED_EPSILON,
)
from ..errors import EmptyRecordingError
from ..geometry.distance import DistanceMetric
from ..geometry.path_index import PathIndex
from ..utils import is_finite_position
from .models import ReplayRecording, TimePoint

LOGGER = logging.getLogger(__name__)

RECORDING_FORMAT_VERSION = 1

# (field name, scale to canonical unit) in order of preference.
TIME_FIELDS: Tuple[Tuple[str, float], ...] = (("time", 1.0), ("timeInS", 1.0), ("timestamp", 1.0))
DISTANCE_FIELDS: Tuple[Tuple[str, float], ...] = (("distance", 1.0), ("distanceInCm", 0.01))
SPEED_FIELDS: Tuple[Tuple[str, float], ...] = (("speed", 1.0), ("speedInCmPerSec", 0.01))
POWER_FIELDS: Tuple[Tuple[str, float], ...] = (("power", 1.0), ("watts", 1.0))
HEART_RATE_FIELDS: Tuple[Tuple[str, float], ...] = (
    ("heartRate", 1.0),
    ("heartrate", 1.0),
    ("heart_rate", 1.0),
)
CADENCE_FIELDS: Tuple[Tuple[str, float], ...] = (("cadence", 1.0),)
ALTITUDE_FIELDS: Tuple[Tuple[str, float], ...] = (("altitude", 1.0), ("altitudeInCm", 0.01))


def _pick_channel(
    telemetry: Mapping[str, Any],
    candidates: Sequence[Tuple[str, float]],
) -> Optional[np.ndarray]:
    """Return the first non-empty channel from ``candidates`` in canonical units."""

    for name, scale in candidates:
        raw = telemetry.get(name)
        if raw is None:
            continue
        values = _as_float_array(raw)
        if values.size == 0:
            continue
        return values * scale
    return None


def _as_float_array(raw: Any) -> np.ndarray:
    cleaned = []
    for value in raw:
        try:
            cleaned.append(float(value) if value is not None else math.nan)
        except (TypeError, ValueError):
            cleaned.append(math.nan)
    return np.asarray(cleaned, dtype=float)


def _fit(values: Optional[np.ndarray], length: int, fill: float) -> np.ndarray:
    """Pad or truncate a channel to ``length`` samples."""

    out = np.full(length, fill, dtype=float)
    if values is None:
        return out
    count = min(length, values.size)
    out[:count] = values[:count]
    return out


def _distances_along(
    positions: Sequence[Sequence[float]],
    metric: Optional[DistanceMetric],
) -> np.ndarray:
    """Cumulative distance per sample over the usable positions only.

    Samples with a malformed or non-finite position get NaN and are dropped
    later by :func:`build_recording`; their neighbours are joined directly.
    """

    usable = [i for i, position in enumerate(positions) if is_finite_position(position)]
    out = np.full(len(positions), math.nan, dtype=float)
    if not usable:
        return out
    planar = [tuple(float(v) for v in positions[i])[:2] for i in usable]
    out[usable] = PathIndex.build(planar, metric).cumulative
    skipped = len(positions) - len(usable)
    if skipped:
        LOGGER.warning("Skipped %d samples with unusable positions while deriving distances", skipped)
    return out


def synthesize_times(
    distances: np.ndarray,
    speeds: Optional[np.ndarray] = None,
    *,
    min_step: float = SYNTHESIZED_TIMING_MIN_STEP_S,
    speed_epsilon: float = SYNTHESIZED_TIMING_SPEED_EPSILON,
    default_speed: float = SYNTHESIZED_TIMING_DEFAULT_SPEED,
) -> np.ndarray:
    """Derive a time axis from distance and speed samples.

    ``dt = max(dd / max(speed, epsilon), min_step)`` where the speed is the one
    recorded at the start of each step, falling back to ``default_speed`` when
    missing or not positive. Approximate only.
    """

    n = distances.size
    times = np.zeros(n, dtype=float)
    if n < 2:
        return times
    step_speed = _fit(speeds, n, math.nan)[:-1]
    usable = np.isfinite(step_speed) & (step_speed > 0.0)
    step_speed = np.where(usable, step_speed, default_speed)
    step_speed = np.maximum(step_speed, speed_epsilon)
    # Gaps (NaN) carry the last known distance forward.
    filled = np.nan_to_num(np.fmax.accumulate(distances), nan=0.0)
    deltas = np.diff(filled)
    deltas = np.maximum(deltas, 0.0)
    steps = np.maximum(deltas / step_speed, min_step)
    times[1:] = np.cumsum(steps)
    return times


def normalize_telemetry(
    telemetry: Mapping[str, Any],
    positions: Optional[Sequence[Sequence[float]]] = None,
    *,
    metric: Optional[DistanceMetric] = None,
    metadata: Optional[Mapping[str, Any]] = None,
) -> ReplayRecording:
    """Build a recording from column-oriented telemetry.

    Args:
        telemetry: Mapping of channel name to per-sample values. Any of the
            supported field-name variants may be used.
        positions: Optional projected positions, one per sample. When the
            telemetry has no distance channel, distances are derived from
            these along the polyline.
        metric: Distance metric for derived distances; classified from the
            positions when omitted.
        metadata: Extra information carried on the recording unchanged.

    Raises:
        EmptyRecordingError: If no usable time points remain.
    """

    times = _pick_channel(telemetry, TIME_FIELDS)
    distances = _pick_channel(telemetry, DISTANCE_FIELDS)
    position_list = list(positions) if positions is not None else None

    if position_list:
        length = len(position_list)
    elif times is not None and distances is not None:
        length = min(times.size, distances.size)
    elif distances is not None:
        length = distances.size
    else:
        raise EmptyRecordingError("Telemetry needs a distance channel or positions")

    if distances is None and position_list:
        distances = _distances_along(position_list, metric)
    distances = _fit(distances, length, math.nan)

    speeds = _pick_channel(telemetry, SPEED_FIELDS)
    synthesized = times is None
    if synthesized:
        times = synthesize_times(distances, speeds)
        LOGGER.info("No timestamps in telemetry; synthesized a time axis for %d samples", length)
    times = _fit(times, length, math.nan)

    channels = {
        "speed": _fit(speeds, length, 0.0),
        "power": _fit(_pick_channel(telemetry, POWER_FIELDS), length, 0.0),
        "heart_rate": _fit(_pick_channel(telemetry, HEART_RATE_FIELDS), length, 0.0),
        "cadence": _fit(_pick_channel(telemetry, CADENCE_FIELDS), length, 0.0),
        "altitude": _fit(_pick_channel(telemetry, ALTITUDE_FIELDS), length, 0.0),
    }
    for values in channels.values():
        values[~np.isfinite(values)] = 0.0

    points: List[TimePoint] = []
    for i in range(length):
        position = None
        if position_list is not None and i < len(position_list) and is_finite_position(position_list[i]):
            position = tuple(float(v) for v in position_list[i])
        elif position_list:
            # Unusable coordinates invalidate the sample; build_recording drops it.
            distances[i] = math.nan
        points.append(
            TimePoint(
                time=float(times[i]),
                distance=float(distances[i]),
                position=position,
                speed=float(channels["speed"][i]),
                power=float(channels["power"][i]),
                heart_rate=float(channels["heart_rate"][i]),
                cadence=float(channels["cadence"][i]),
                altitude=float(channels["altitude"][i]),
            )
        )
    return build_recording(points, is_synthesized_timing=synthesized, metadata=metadata)


def build_recording(
    time_points: Iterable[TimePoint],
    *,
    is_synthesized_timing: bool = False,
    metadata: Optional[Mapping[str, Any]] = None,
) -> ReplayRecording:
    """Validate, order and rebase raw time points.

    Points with a non-finite time or distance, or a malformed position, are
    dropped. The rest are sorted by time (stable, so the first of several
    identical timestamps wins), deduplicated, rebased so the first sample is
    at t=0, and distances are forced non-decreasing.

    Raises:
        EmptyRecordingError: If nothing usable remains.
    """

    raw = list(time_points)
    usable = [
        point
        for point in raw
        if math.isfinite(point.time)
        and math.isfinite(point.distance)
        and (point.position is None or is_finite_position(point.position))
    ]
    dropped = len(raw) - len(usable)
    if not usable:
        raise EmptyRecordingError("Recording contains no usable time points")

    usable.sort(key=lambda point: point.time)
    ordered: List[TimePoint] = []
    duplicates = 0
    for point in usable:
        if ordered and point.time <= ordered[-1].time:
            duplicates += 1
            continue
        ordered.append(point)

    origin = ordered[0].time
    running = np.maximum.accumulate(np.array([p.distance for p in ordered], dtype=float))
    rebased = [
        TimePoint(
            time=point.time - origin,
            distance=float(running[i]),
            position=point.position,
            speed=point.speed,
            power=point.power,
            heart_rate=point.heart_rate,
            cadence=point.cadence,
            altitude=point.altitude,
        )
        for i, point in enumerate(ordered)
    ]
    if dropped or duplicates:
        LOGGER.warning(
            "Recording cleanup dropped %d invalid and %d duplicate-time samples",
            dropped,
            duplicates,
        )
    info: Dict[str, Any] = dict(metadata or {})
    info.setdefault("time_origin", origin)
    recording = ReplayRecording(
        points=tuple(rebased),
        is_synthesized_timing=is_synthesized_timing,
        metadata=info,
    )
    LOGGER.info(
        "Loaded recording: %d points, %.1f s, %.1f m%s",
        len(recording),
        recording.total_duration,
        recording.total_distance,
        " (synthesized timing)" if is_synthesized_timing else "",
    )
    return recording


def recording_to_dict(recording: ReplayRecording) -> Dict[str, Any]:
    """Serialise a recording to plain JSON-friendly data."""

    return {
        "version": RECORDING_FORMAT_VERSION,
        "is_synthesized_timing": recording.is_synthesized_timing,
        "metadata": dict(recording.metadata),
        "points": [
            {
                "time": p.time,
                "distance": p.distance,
                "position": list(p.position) if p.position is not None else None,
                "speed": p.speed,
                "power": p.power,
                "heart_rate": p.heart_rate,
                "cadence": p.cadence,
                "altitude": p.altitude,
            }
            for p in recording.points
        ],
    }


def recording_from_dict(payload: Mapping[str, Any]) -> ReplayRecording:
    """Rebuild a recording exported by :func:`recording_to_dict`."""

    version = payload.get("version", RECORDING_FORMAT_VERSION)
    if version != RECORDING_FORMAT_VERSION:
        raise ValueError(f"Unsupported recording format version: {version!r}")
    points = []
    for entry in payload.get("points") or []:
        position = entry.get("position")
        points.append(
            TimePoint(
                time=float(entry["time"]),
                distance=float(entry["distance"]),
                position=tuple(float(v) for v in position) if position is not None else None,
                speed=float(entry.get("speed", 0.0)),
                power=float(entry.get("power", 0.0)),
                heart_rate=float(entry.get("heart_rate", 0.0)),
                cadence=float(entry.get("cadence", 0.0)),
                altitude=float(entry.get("altitude", 0.0)),
            )
        )
    return build_recording(
        points,
        is_synthesized_timing=bool(payload.get("is_synthesized_timing", False)),
        metadata=payload.get("metadata") or {},
    )


__all__ = [
    "build_recording",
    "normalize_telemetry",
    "recording_from_dict",
    "recording_to_dict",
    "synthesize_times",
]
