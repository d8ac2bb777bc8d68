"""Tests for formatting and serialisation helpers."""

from __future__ import annotations

import math

import numpy as np

from route_tracker.models import CheckpointCategory, CheckpointStats
from route_tracker.utils import (
    format_delta,
    format_duration,
    is_finite_position,
    json_dumps_sorted,
    to_jsonable,
)


def test_format_duration() -> None:
    assert format_duration(65) == "1:05"
    assert format_duration(3725.9) == "1:02:05"
    assert format_duration(None) == "--"
    assert format_duration(math.nan) == "--"
    assert format_duration(-1) == "--"


def test_format_delta_is_signed() -> None:
    assert format_delta(25) == "+0:25"
    assert format_delta(-90) == "-1:30"


def test_is_finite_position() -> None:
    assert is_finite_position((1.0, 2.0))
    assert is_finite_position([1, 2, 3])
    assert not is_finite_position((1.0,))
    assert not is_finite_position((1.0, math.inf))
    assert not is_finite_position("north")


def test_to_jsonable_normalises_nested_values() -> None:
    value = {
        "stats": CheckpointStats(total=2, completed=1, remaining=1, completion_rate=0.5),
        "category": CheckpointCategory.FINISH,
        "array": np.array([1.5, 2.5]),
        "scalar": np.float64(3.0),
        "missing": math.inf,
        "tags": {"b", "a"},
        "pair": (1, 2),
    }
    assert to_jsonable(value) == {
        "stats": {"total": 2, "completed": 1, "remaining": 1, "completion_rate": 0.5},
        "category": "finish",
        "array": [1.5, 2.5],
        "scalar": 3.0,
        "missing": None,
        "tags": ["a", "b"],
        "pair": [1, 2],
    }


def test_json_dumps_sorted_is_canonical() -> None:
    assert json_dumps_sorted({"b": 1, "a": (2, 3)}) == '{"a":[2,3],"b":1}'
