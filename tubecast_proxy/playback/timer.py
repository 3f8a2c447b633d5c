"""
Software playback clock.

The renderer is only polled on demand, so elapsed play time is tracked
locally with a monotonic clock.
"""

import time
from enum import Enum
from typing import Optional


class TimerState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class PlaybackTimer:
    """Stopwatch with pause/resume."""

    def __init__(self) -> None:
        self._state = TimerState.STOPPED
        self._started_at: Optional[float] = None
        self._accumulated: float = 0.0

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_started(self) -> bool:
        """True once started, until cleared."""
        return self._started_at is not None or self._accumulated > 0

    @property
    def is_running(self) -> bool:
        return self._state == TimerState.RUNNING

    @property
    def is_paused(self) -> bool:
        return self._state == TimerState.PAUSED

    @property
    def is_stopped(self) -> bool:
        return self._state == TimerState.STOPPED

    @property
    def elapsed(self) -> float:
        """Seconds counted while running."""
        if self._state == TimerState.RUNNING and self._started_at is not None:
            return self._accumulated + (time.monotonic() - self._started_at)
        return self._accumulated

    def start(self) -> None:
        """Start counting from zero."""
        self._accumulated = 0.0
        self._started_at = time.monotonic()
        self._state = TimerState.RUNNING

    def pause(self) -> None:
        if self._state != TimerState.RUNNING:
            return
        self._accumulated = self.elapsed
        self._started_at = None
        self._state = TimerState.PAUSED

    def resume(self) -> None:
        if self._state != TimerState.PAUSED:
            return
        self._started_at = time.monotonic()
        self._state = TimerState.RUNNING

    def stop(self) -> None:
        """Stop counting; the elapsed value is kept until cleared."""
        if self._state == TimerState.RUNNING:
            self._accumulated = self.elapsed
        self._started_at = None
        self._state = TimerState.STOPPED

    def clear(self) -> None:
        """Reset elapsed time to zero."""
        self._accumulated = 0.0
        if self._state == TimerState.RUNNING:
            self._started_at = time.monotonic()
        else:
            self._started_at = None
            self._state = TimerState.STOPPED
