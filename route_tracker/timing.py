"""Elapsed and split timing for a single traversal."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TimingClock:
    """Start / last-split bookkeeping in float seconds.

    ``last_split_time >= start_time`` whenever both are set. The clock starts
    lazily (on first motion) and stays running until :meth:`reset`.
    """

    start_time: Optional[float] = None
    last_split_time: Optional[float] = None
    is_running: bool = False

    def start(self, timestamp: float) -> bool:
        """Start the clock at ``timestamp``; a running clock is unaffected.

        Returns True when this call actually started the clock.
        """

        if self.is_running:
            return False
        self.start_time = float(timestamp)
        self.last_split_time = None
        self.is_running = True
        LOGGER.debug("Timing started at %.3f", self.start_time)
        return True

    def record_split(self, timestamp: float) -> float:
        """Close a split at ``timestamp`` and return its duration.

        The split runs from the previous split (or the start when there is
        none). Out-of-order timestamps produce a zero split and never move
        ``last_split_time`` backwards.
        """

        ts = float(timestamp)
        if not self.is_running or self.start_time is None:
            self.start(ts)
        start = self.start_time if self.start_time is not None else ts
        previous = start
        if self.last_split_time is not None:
            previous = max(self.last_split_time, start)
        split = max(0.0, float(timestamp) - previous)
        self.last_split_time = max(previous, float(timestamp))
        return split

    def elapsed(self, now: float) -> float:
        if not self.is_running or self.start_time is None:
            return 0.0
        return max(0.0, float(now) - self.start_time)

    def since_last_split(self, now: float) -> float:
        if not self.is_running or self.start_time is None:
            return 0.0
        anchor = self.last_split_time if self.last_split_time is not None else self.start_time
        return max(0.0, float(now) - anchor)

    def reset(self) -> None:
        self.start_time = None
        self.last_split_time = None
        self.is_running = False

    def snapshot(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "last_split_time": self.last_split_time,
            "is_running": self.is_running,
        }


__all__ = ["TimingClock"]
