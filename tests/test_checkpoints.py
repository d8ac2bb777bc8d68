"""Tests for checkpoint detection, split timing and interval generation."""

from __future__ import annotations

import json
import math

import pytest

from route_tracker.checkpoints import CheckpointTracker, generate_interval_checkpoints
from route_tracker.errors import InvalidCheckpointError
from route_tracker.models import (
    CheckpointCategory,
    CheckpointCompleted,
    CheckpointDescriptor,
)
from route_tracker.replay import TimePoint, build_recording


@pytest.fixture
def midway(straight_index) -> CheckpointTracker:
    return CheckpointTracker(
        [CheckpointDescriptor(name="Midway", distance=1000.0, radius=50.0)],
        straight_index,
    )


def test_scenario_b_first_checkpoint_split_equals_elapsed(midway: CheckpointTracker) -> None:
    # 960 along the route, 40 units off to the side: outside the 50 radius.
    first = midway.update((40.0, 960.0), 0.0, speed=5.0)
    assert first.completed == []
    assert first.active is midway.checkpoints[0]

    second = midway.update((0.0, 1005.0), 120.0, speed=5.0)
    assert second.completed == [midway.checkpoints[0]]
    checkpoint = second.completed[0]
    assert checkpoint.split_time == pytest.approx(120.0)
    assert checkpoint.total_time == pytest.approx(120.0)
    assert checkpoint.completed_at == 120.0
    assert second.events == [
        CheckpointCompleted(
            checkpoint_id="checkpoint-1",
            name="Midway",
            time=120.0,
            total_time=120.0,
            split_time=120.0,
            delta=None,
        )
    ]
    assert second.active is None


def test_completion_is_idempotent(midway: CheckpointTracker) -> None:
    midway.update((0.0, 0.0), 0.0, speed=3.0)
    results = [midway.update((0.0, 1000.0), t, speed=3.0) for t in (10.0, 11.0, 12.0)]

    assert [len(r.completed) for r in results] == [1, 0, 0]
    assert midway.stats().completed == 1
    assert len(midway.split_history) == 1


def test_stationary_samples_do_not_start_clock(midway: CheckpointTracker) -> None:
    midway.update((0.0, 0.0), 0.0, speed=0.0)
    assert not midway.clock.is_running

    midway.update((0.0, 5.0), 4.0, speed=1.5)
    assert midway.clock.start_time == 4.0


def test_speed_missing_counts_as_motion(midway: CheckpointTracker) -> None:
    midway.update((0.0, 0.0), 2.0)
    assert midway.clock.is_running


def test_completion_before_motion_starts_clock_at_completion(midway: CheckpointTracker) -> None:
    update = midway.update((0.0, 1000.0), 30.0, speed=0.0)
    checkpoint = update.completed[0]
    assert checkpoint.split_time == 0.0
    assert checkpoint.total_time == 0.0


def test_splits_chain_between_checkpoints(straight_index) -> None:
    tracker = CheckpointTracker(
        [
            CheckpointDescriptor(name="B", distance=1000.0, radius=20.0, reference_time=100.0),
            CheckpointDescriptor(name="A", distance=500.0, radius=20.0),
        ],
        straight_index,
    )
    assert [cp.name for cp in tracker.checkpoints] == ["A", "B"]
    assert [cp.checkpoint_id for cp in tracker.checkpoints] == ["checkpoint-2", "checkpoint-1"]

    tracker.update((0.0, 0.0), 0.0, speed=4.0)
    a = tracker.update((0.0, 500.0), 50.0, speed=4.0).completed[0]
    b = tracker.update((0.0, 1000.0), 110.0, speed=4.0).completed[0]

    assert a.split_time == pytest.approx(50.0)
    assert b.split_time == pytest.approx(60.0)
    assert b.total_time == pytest.approx(110.0)
    assert b.delta_from_reference == pytest.approx(10.0)


def test_active_tie_breaks_by_route_order(straight_index) -> None:
    tracker = CheckpointTracker(
        [
            CheckpointDescriptor(name="Later", distance=1100.0, radius=10.0),
            CheckpointDescriptor(name="Earlier", distance=900.0, radius=10.0),
        ],
        straight_index,
    )
    update = tracker.update((0.0, 1000.0), 1.0, speed=2.0)
    assert update.active.name == "Earlier"
    assert update.active_changed
    assert [cp.active for cp in tracker.checkpoints] == [True, False]

    again = tracker.update((0.0, 1000.0), 2.0, speed=2.0)
    assert not again.active_changed


def test_malformed_sample_leaves_state_untouched(midway: CheckpointTracker) -> None:
    before = midway.export_state()

    update = midway.update((math.nan, 1000.0), 5.0, speed=2.0)
    assert update.rejected
    assert update.completed == []
    midway.update((0.0, 1000.0), math.inf)

    after = midway.export_state()
    assert after["rejected_samples"] == 2
    before["rejected_samples"] = 2
    assert after == before


def test_position_descriptor_is_projected(straight_index) -> None:
    tracker = CheckpointTracker(
        [CheckpointDescriptor(name="Bridge", position=(5.0, 700.0), checkpoint_id="bridge")],
        straight_index,
    )
    checkpoint = tracker.get("bridge")
    assert checkpoint.distance == pytest.approx(700.0)
    assert checkpoint.progress == pytest.approx(0.35)
    assert checkpoint.radius == pytest.approx(50.0)


def test_distance_descriptor_gets_position(straight_index) -> None:
    tracker = CheckpointTracker([CheckpointDescriptor(name="X", distance=1234.0)], straight_index)
    assert tracker.checkpoints[0].position == pytest.approx((0.0, 1234.0))


@pytest.mark.parametrize(
    "descriptor",
    [
        CheckpointDescriptor(name="Nowhere"),
        CheckpointDescriptor(name="NaN", distance=math.nan),
        CheckpointDescriptor(name="Inf", position=(math.inf, 0.0)),
        CheckpointDescriptor(name="Radius", distance=10.0, radius=0.0),
    ],
)
def test_invalid_descriptors_raise(straight_index, descriptor) -> None:
    with pytest.raises(InvalidCheckpointError):
        CheckpointTracker([descriptor], straight_index)


def test_failed_load_keeps_previous_checkpoints(midway: CheckpointTracker, straight_index) -> None:
    with pytest.raises(InvalidCheckpointError):
        midway.load(
            [
                CheckpointDescriptor(name="A", distance=1.0, checkpoint_id="dup"),
                CheckpointDescriptor(name="B", distance=2.0, checkpoint_id="dup"),
            ],
            straight_index,
        )
    assert [cp.name for cp in midway.checkpoints] == ["Midway"]


def test_reset_keeps_identity(midway: CheckpointTracker) -> None:
    midway.update((0.0, 1000.0), 5.0, speed=1.0)
    midway.reset()

    checkpoint = midway.checkpoints[0]
    assert checkpoint.checkpoint_id == "checkpoint-1"
    assert checkpoint.distance == pytest.approx(1000.0)
    assert not checkpoint.completed
    assert checkpoint.split_time is None
    assert not midway.clock.is_running
    assert midway.split_history == ()


def test_stats_and_timing_info(straight_index) -> None:
    tracker = CheckpointTracker(
        [CheckpointDescriptor(name=f"CP{i}", distance=d) for i, d in enumerate((400.0, 800.0, 1600.0))],
        straight_index,
    )
    tracker.update((0.0, 0.0), 0.0, speed=1.0)
    tracker.update((0.0, 400.0), 40.0, speed=1.0)

    stats = tracker.stats()
    assert (stats.total, stats.completed, stats.remaining) == (3, 1, 2)
    assert stats.completion_rate == pytest.approx(1 / 3)

    info = tracker.timing_info(55.0)
    assert info.has_started
    assert info.total_time == pytest.approx(55.0)
    assert info.split_time == pytest.approx(15.0)
    assert info.completed_checkpoints == 1


def test_add_and_remove_checkpoint(midway: CheckpointTracker) -> None:
    added = midway.add_checkpoint(CheckpointDescriptor(name="Early", distance=300.0))
    assert [cp.name for cp in midway.checkpoints] == ["Early", "Midway"]
    assert added.checkpoint_id == "checkpoint-2"

    with pytest.raises(InvalidCheckpointError):
        midway.add_checkpoint(CheckpointDescriptor(name="Dup", distance=5.0, checkpoint_id="checkpoint-1"))

    assert midway.remove_checkpoint("checkpoint-1")
    assert not midway.remove_checkpoint("checkpoint-1")
    assert [cp.name for cp in midway.checkpoints] == ["Early"]


def test_add_checkpoint_requires_route() -> None:
    with pytest.raises(InvalidCheckpointError):
        CheckpointTracker().add_checkpoint(CheckpointDescriptor(name="X", distance=1.0))


def test_reference_times_from_mapping_and_callable(midway: CheckpointTracker) -> None:
    assert midway.apply_reference_times({"checkpoint-1": 90.0}) == 1
    assert midway.checkpoints[0].reference_time == 90.0

    midway.update((0.0, 0.0), 0.0, speed=1.0)
    midway.update((0.0, 1000.0), 100.0, speed=1.0)
    assert midway.checkpoints[0].delta_from_reference == pytest.approx(10.0)

    midway.apply_reference_times(lambda distance: distance / 8.0)
    assert midway.checkpoints[0].reference_time == pytest.approx(125.0)
    assert midway.checkpoints[0].delta_from_reference == pytest.approx(-25.0)


def test_export_state_is_json_serialisable(midway: CheckpointTracker) -> None:
    midway.update((0.0, 0.0), 0.0, speed=1.0)
    midway.update((0.0, 1000.0), 100.0, speed=1.0)

    payload = json.loads(json.dumps(midway.export_state()))
    assert payload["checkpoints"][0]["category"] == "checkpoint"
    assert payload["splits"][0]["split_time"] == pytest.approx(100.0)
    assert payload["timing"]["start_time"] == 0.0


def test_interval_checkpoints_from_recording(linear_recording) -> None:
    descriptors = generate_interval_checkpoints(linear_recording)

    assert [d.name for d in descriptors] == ["Start", "1.0km Split", "Finish (2.0km)"]
    assert [d.category for d in descriptors] == [
        CheckpointCategory.START,
        CheckpointCategory.SPLIT,
        CheckpointCategory.FINISH,
    ]
    assert descriptors[1].distance == pytest.approx(1000.0)
    assert descriptors[1].reference_time == pytest.approx(100.0)
    assert descriptors[1].position == pytest.approx((0.0, 1000.0))
    assert descriptors[2].reference_time == pytest.approx(200.0)


def test_interval_finish_merges_into_close_split() -> None:
    recording = build_recording(
        TimePoint(time=float(t), distance=10.0 * t, position=(0.0, 10.0 * t)) for t in range(204)
    )
    descriptors = generate_interval_checkpoints(recording, interval_m=1000.0, finish_merge_m=50.0)

    assert [d.checkpoint_id for d in descriptors] == ["start", "split-1", "finish"]
    assert descriptors[-1].distance == pytest.approx(2030.0)


def test_interval_checkpoints_load_into_tracker(linear_recording, straight_index) -> None:
    tracker = CheckpointTracker(generate_interval_checkpoints(linear_recording), straight_index)
    assert [cp.checkpoint_id for cp in tracker.checkpoints] == ["start", "split-1", "finish"]
    assert tracker.get("finish").reference_time == pytest.approx(200.0)


def test_unknown_category_raises(straight_index) -> None:
    with pytest.raises(InvalidCheckpointError):
        CheckpointTracker(
            [CheckpointDescriptor(name="Odd", distance=100.0, category="podium")],
            straight_index,
        )
