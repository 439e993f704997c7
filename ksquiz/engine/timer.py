from __future__ import annotations

"""Pausable, polled session timer."""

import time
from typing import Callable, Optional

from ..errors import InvalidState


class SessionTimer:
    """Tracks elapsed time against an optional overall limit.

    Expiry is only detected when queried; nothing fires in the background.
    While paused the elapsed time is frozen.
    """

    def __init__(self, time_limit: Optional[float] = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        if time_limit is not None and time_limit < 0:
            raise ValueError("time_limit must be non-negative")
        self.time_limit = time_limit
        self._clock = clock
        self._started = False
        self._run_start: Optional[float] = None
        self._accumulated = 0.0
        self._stopped = False

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def is_running(self) -> bool:
        return self._run_start is not None

    @property
    def is_paused(self) -> bool:
        return self._started and not self._stopped and self._run_start is None

    def start(self) -> None:
        if self._started:
            raise InvalidState("Timer already started")
        self._started = True
        self._run_start = self._clock()

    def pause(self) -> None:
        if self._run_start is None:
            raise InvalidState("Timer is not running")
        self._accumulated += self._clock() - self._run_start
        self._run_start = None

    def resume(self) -> None:
        if not self.is_paused:
            raise InvalidState("Timer is not paused")
        self._run_start = self._clock()

    def stop(self) -> None:
        """Freeze the elapsed time for good (used when a session completes)."""
        self._stopped = True
        if self._run_start is not None:
            self._accumulated += self._clock() - self._run_start
            self._run_start = None

    def elapsed(self) -> float:
        if self._run_start is None:
            return self._accumulated
        return self._accumulated + max(0.0, self._clock() - self._run_start)

    def remaining(self) -> Optional[float]:
        if self.time_limit is None:
            return None
        return max(0.0, self.time_limit - self.elapsed())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


__all__ = ["SessionTimer"]
