"""Central configuration for the route tracker.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Overrides are read from environment variables
(optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Path geometry
# ---------------------------------------------------------------------------
# A coordinate set is treated as geographic (lat, lon) when every point lies
# inside these bounds; anything larger is planar game/projected units.
GEOGRAPHIC_LAT_LIMIT = 90.0
GEOGRAPHIC_LON_LIMIT = 180.0

# Mean Earth radius (metres) used by the haversine great-circle distance.
EARTH_RADIUS_M = 6371008.8

# Nearest-point search stops at the first vertex closer than this distance.
# Pass exhaustive=True to PathIndex.nearest_point to disable the shortcut.
NEAREST_POINT_EARLY_EXIT_TOLERANCE = _env_float("ROUTE_NEAREST_EARLY_EXIT", 1.0)

# Vertices examined per vectorised block while scanning for the nearest point.
NEAREST_POINT_SCAN_CHUNK = max(1, _env_int("ROUTE_NEAREST_SCAN_CHUNK", 256))

# Number of built path indexes kept in the in-memory LRU cache.
PATH_INDEX_CACHE_SIZE = max(1, _env_int("ROUTE_PATH_INDEX_CACHE_SIZE", 16))


# ---------------------------------------------------------------------------
# Checkpoints
# ---------------------------------------------------------------------------
# Arrival radius used when a checkpoint descriptor does not provide one.
DEFAULT_CHECKPOINT_RADIUS = _env_float("ROUTE_CHECKPOINT_RADIUS", 50.0)

# Spacing of the split checkpoints generated from a recording.
AUTO_CHECKPOINT_INTERVAL_M = _env_float("ROUTE_AUTO_CHECKPOINT_INTERVAL_M", 1000.0)

# When the finish lies closer than this to the last generated split, the split
# is promoted to the finish instead of adding another checkpoint.
FINISH_MERGE_THRESHOLD_M = _env_float("ROUTE_FINISH_MERGE_M", 50.0)

# Log every rejected live sample at WARNING. When False they log at DEBUG.
LOG_REJECTED_SAMPLES = _env_bool("ROUTE_LOG_REJECTED_SAMPLES", True)


# ---------------------------------------------------------------------------
# Replay / ghost
# ---------------------------------------------------------------------------
# Playback multipliers are clamped into this range.
REPLAY_SPEED_MIN = _env_float("ROUTE_REPLAY_SPEED_MIN", 0.1)
REPLAY_SPEED_MAX = _env_float("ROUTE_REPLAY_SPEED_MAX", 10.0)
REPLAY_DEFAULT_SPEED = _env_float("ROUTE_REPLAY_DEFAULT_SPEED", 1.0)

# Synthesized timing (recordings without timestamps): dt = dd / max(speed, eps),
# never smaller than the minimum step. Speed falls back to the default (m/s)
# when the recording carries no speed samples.
SYNTHESIZED_TIMING_MIN_STEP_S = _env_float("ROUTE_SYNTH_MIN_STEP_S", 0.1)
SYNTHESIZED_TIMING_SPEED_EPSILON = _env_float("ROUTE_SYNTH_SPEED_EPSILON", 0.1)
SYNTHESIZED_TIMING_DEFAULT_SPEED = _env_float("ROUTE_SYNTH_DEFAULT_SPEED", 10.0)
