"""Entry/exit timing for bounded sections of a route."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Union

from .config import LOG_REJECTED_SAMPLES
from .errors import InvalidSegmentError
from .geometry.path_index import PathIndex
from .models import Segment, SegmentDescriptor, SegmentEntered, SegmentExited
from .utils import to_jsonable

SegmentEvent = Union[SegmentEntered, SegmentExited]


class SegmentTracker:
    """Run the inactive -> active -> completed machine for every segment.

    Membership is ``start_progress <= progress < end_progress``. Leaving the
    interval in either direction completes the segment, and a completed
    segment ignores later passes until it is reset. Segments are independent
    of each other, so several can be active at once.
    """

    def __init__(
        self,
        descriptors: Optional[Sequence[SegmentDescriptor]] = None,
        path_index: Optional[PathIndex] = None,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._segments: List[Segment] = []
        self.rejected_samples = 0
        if descriptors is not None:
            self.load(descriptors, path_index)

    @property
    def segments(self) -> tuple[Segment, ...]:
        return tuple(self._segments)

    def get(self, segment_id: str) -> Optional[Segment]:
        for segment in self._segments:
            if segment.segment_id == segment_id:
                return segment
        return None

    def load(
        self,
        descriptors: Sequence[SegmentDescriptor],
        path_index: Optional[PathIndex] = None,
    ) -> None:
        """Validate descriptors and replace the current segments.

        Raises:
            InvalidSegmentError: For a non-finite, empty or out-of-range
                interval, or a duplicate id.
        """

        loaded: List[Segment] = []
        seen: set[str] = set()
        for ordinal, descriptor in enumerate(descriptors, start=1):
            start = float(descriptor.start_progress)
            end = float(descriptor.end_progress)
            if not (math.isfinite(start) and math.isfinite(end)):
                raise InvalidSegmentError(f"Segment {descriptor.name!r} has a non-finite interval")
            if not 0.0 <= start < end <= 1.0:
                raise InvalidSegmentError(
                    f"Segment {descriptor.name!r} interval [{start}, {end}) must satisfy 0 <= start < end <= 1"
                )
            segment_id = descriptor.segment_id or f"segment-{ordinal}"
            if segment_id in seen:
                raise InvalidSegmentError(f"Duplicate segment id: {segment_id!r}")
            seen.add(segment_id)
            segment = Segment(
                segment_id=segment_id,
                name=descriptor.name,
                start_progress=start,
                end_progress=end,
            )
            if path_index is not None:
                segment.start_distance = path_index.distance_at_progress(start)
                segment.end_distance = path_index.distance_at_progress(end)
            loaded.append(segment)
        self._segments = loaded
        self._log.info("Loaded %d segments", len(loaded))

    def update(self, progress: float, timestamp: float) -> List[SegmentEvent]:
        """Apply one progress sample (``timestamp`` in seconds)."""

        try:
            p = float(progress)
            ts = float(timestamp)
        except (TypeError, ValueError):
            p = ts = math.nan
        if not (math.isfinite(p) and math.isfinite(ts)):
            self.rejected_samples += 1
            level = logging.WARNING if LOG_REJECTED_SAMPLES else logging.DEBUG
            self._log.log(level, "Rejected segment sample progress=%r timestamp=%r", progress, timestamp)
            return []

        events: List[SegmentEvent] = []
        for segment in self._segments:
            if segment.is_completed:
                continue
            inside = segment.contains(p)
            if segment.is_active:
                entered = segment.enter_time if segment.enter_time is not None else ts
                duration = max(0.0, ts - entered)
                segment.current_duration = duration
                if not inside:
                    segment.is_active = False
                    segment.is_completed = True
                    segment.exit_time = ts
                    events.append(SegmentExited(segment.segment_id, ts, duration))
                    self._log.debug("Segment %s completed in %.2f s", segment.segment_id, duration)
            elif inside:
                segment.is_active = True
                segment.enter_time = ts
                segment.current_duration = 0.0
                events.append(SegmentEntered(segment.segment_id, ts))
                self._log.debug("Segment %s entered at %.3f", segment.segment_id, ts)
        return events

    def active_segments(self) -> List[Segment]:
        return [segment for segment in self._segments if segment.is_active]

    def reset(self) -> None:
        for segment in self._segments:
            segment.clear()

    def reset_segment(self, segment_id: str) -> bool:
        segment = self.get(segment_id)
        if segment is None:
            return False
        segment.clear()
        return True

    def export_state(self) -> Dict[str, Any]:
        return {
            "segments": to_jsonable(self._segments),
            "active": [segment.segment_id for segment in self.active_segments()],
            "rejected_samples": self.rejected_samples,
        }


__all__ = ["SegmentEvent", "SegmentTracker"]
