"""General utility helpers shared across modules."""

from __future__ import annotations

import dataclasses
import json
import math
from enum import Enum
from typing import Any

import numpy as np

from .errors import NonFiniteSampleError


def format_duration(seconds: float | None) -> str:
    """Format seconds into ``M:SS`` or ``H:MM:SS``; ``--`` when unknown."""

    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return "--"
    whole = int(seconds)
    hours, remainder = divmod(whole, 3600)
    mins, sec = divmod(remainder, 60)
    if hours:
        return f"{hours}:{mins:02d}:{sec:02d}"
    return f"{mins}:{sec:02d}"


def format_delta(seconds: float) -> str:
    """Format a signed time gap as ``+M:SS`` / ``-M:SS``."""

    sign = "+" if seconds >= 0 else "-"
    return f"{sign}{format_duration(abs(seconds))}"


def require_finite(value: Any, name: str) -> float:
    """Return ``value`` as a float, raising NonFiniteSampleError for NaN/inf."""

    try:
        number = float(value)
    except (TypeError, ValueError):
        raise NonFiniteSampleError(f"{name} must be a finite number, got {value!r}") from None
    if not math.isfinite(number):
        raise NonFiniteSampleError(f"{name} must be a finite number, got {value!r}")
    return number


def is_finite_position(position: Any) -> bool:
    """Return True when ``position`` is a 2/3-component vector of finite reals."""

    try:
        array = np.asarray(position, dtype=float)
    except (TypeError, ValueError):
        return False
    if array.ndim != 1 or array.shape[0] not in (2, 3):
        return False
    return bool(np.all(np.isfinite(array)))


def to_jsonable(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: to_jsonable(getattr(value, field.name))
            for field in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, np.ndarray):
        return [to_jsonable(item) for item in value.tolist()]
    if isinstance(value, np.generic):
        return to_jsonable(value.item())
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    if isinstance(value, set):
        return sorted(to_jsonable(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {str(key): to_jsonable(val) for key, val in value.items()}
    return value


def json_dumps_sorted(value: Any) -> str:
    """Return canonical JSON for hashing / comparisons."""

    normalised = to_jsonable(value)
    return json.dumps(normalised, sort_keys=True, separators=(",", ":"))
