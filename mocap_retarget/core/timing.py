"""Frame timing and capture throttling"""

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional


class FrameTimer:
    """Measures and tracks per-frame solve times."""

    def __init__(self, window_size: int = 60):
        self._window_size = window_size
        self._frame_times: Deque[float] = deque(maxlen=window_size)
        self._start_time: Optional[float] = None
        self._last_frame_time: Optional[float] = None

    def start(self) -> None:
        """Start timing a frame."""
        self._start_time = time.perf_counter()

    def stop(self) -> float:
        """Stop timing and return elapsed time."""
        if self._start_time is None:
            return 0.0

        elapsed = time.perf_counter() - self._start_time
        self._frame_times.append(elapsed)
        self._last_frame_time = elapsed
        self._start_time = None
        return elapsed

    @property
    def last_frame_time(self) -> float:
        """Last frame processing time in seconds."""
        return self._last_frame_time or 0.0

    @property
    def average_frame_time(self) -> float:
        """Average frame processing time over window."""
        if not self._frame_times:
            return 0.0
        return sum(self._frame_times) / len(self._frame_times)

    @property
    def fps(self) -> float:
        """Achievable frames per second based on processing time."""
        avg = self.average_frame_time
        return 1.0 / avg if avg > 0 else 0.0

    @property
    def max_frame_time(self) -> float:
        return max(self._frame_times) if self._frame_times else 0.0

    @property
    def sample_count(self) -> int:
        return len(self._frame_times)

    def reset(self) -> None:
        """Reset all timing data."""
        self._frame_times.clear()
        self._start_time = None
        self._last_frame_time = None


@dataclass
class FrameGate:
    """
    Decides which captured frames get solved.

    Every call advances the tick counter. Only ticks that are a multiple
    of ``frame_skip`` pass, and a frame whose timestamp equals the
    previous one (the video did not advance) never passes.
    """
    frame_skip: int = 2
    _counter: int = field(default=0, init=False)
    _last_timestamp: Optional[float] = field(default=None, init=False)
    _accepted: int = field(default=0, init=False)
    _dropped: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.frame_skip < 1:
            raise ValueError(f"frame_skip must be >= 1, got {self.frame_skip}")

    def accept(self, timestamp: float) -> bool:
        """Return True if the frame at timestamp should be processed."""
        self._counter += 1
        should_process = self._counter % self.frame_skip == 0

        if self._last_timestamp is not None and timestamp == self._last_timestamp:
            self._dropped += 1
            return False
        self._last_timestamp = timestamp

        if not should_process:
            self._dropped += 1
            return False

        self._accepted += 1
        return True

    @property
    def accepted_count(self) -> int:
        return self._accepted

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def reset(self) -> None:
        self._counter = 0
        self._last_timestamp = None
        self._accepted = 0
        self._dropped = 0
