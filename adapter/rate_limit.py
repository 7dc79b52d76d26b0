"""
Rate Limiting
=============

Pure time bookkeeping: minimum spacing between calls, and a quota of
calls per fixed window. No I/O beyond sleeping.

Both limiters serialize their state under a lock so a process-wide
instance can be shared by request threads.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional
import threading
import time

import structlog


logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class RateLimiter:
    """
    Enforces a minimum interval of 1/calls_per_second between calls.

    wait() returns once it is safe to proceed and records the call.
    """

    def __init__(
        self,
        calls_per_second: float,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep
    ):
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")
        self._min_interval = 1.0 / calls_per_second
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    def wait(self) -> None:
        with self._lock:
            self._wait_for_spacing()
            self._last_call = self._clock()

    def _wait_for_spacing(self) -> None:
        if self._last_call is None:
            return
        elapsed = self._clock() - self._last_call
        if elapsed < self._min_interval:
            self._sleep(self._min_interval - elapsed)


@dataclass(frozen=True)
class WindowSnapshot:
    calls_in_window: int
    max_calls: int
    window_reset_at: float
    last_call_at: Optional[float]

    def to_dict(self) -> dict:
        return {
            'calls_in_window': self.calls_in_window,
            'max_calls': self.max_calls,
            'window_reset_at': self.window_reset_at,
            'last_call_at': self.last_call_at,
        }


class WindowedRateLimiter(RateLimiter):
    """
    Minimum spacing plus at most `max_calls` per fixed window.

    INVARIANTS:
    - The window rolls over (count -> 0, reset time advanced) exactly
      when the clock reaches or passes window_reset_at
    - A full window blocks until window_reset_at + safety_margin
    """

    def __init__(
        self,
        max_calls: int = 30,
        window_seconds: float = 60.0,
        min_interval_seconds: float = 2.0,
        safety_margin_seconds: float = 1.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep
    ):
        if max_calls <= 0 or window_seconds <= 0 or min_interval_seconds <= 0:
            raise ValueError("max_calls, window_seconds and min_interval_seconds must be positive")
        super().__init__(1.0 / min_interval_seconds, clock=clock, sleep=sleep)
        self._max_calls = max_calls
        self._window_seconds = window_seconds
        self._safety_margin = safety_margin_seconds
        self._calls_in_window = 0
        self._window_reset_at = clock() + window_seconds

    def wait(self) -> None:
        with self._lock:
            now = self._clock()
            if now >= self._window_reset_at:
                self._start_window(now)

            if self._calls_in_window >= self._max_calls:
                remaining = self._window_reset_at - now
                logger.info(
                    "ratelimit.window_full",
                    calls=self._calls_in_window,
                    max_calls=self._max_calls,
                    wait_seconds=round(remaining + self._safety_margin, 3),
                )
                self._sleep(max(0.0, remaining) + self._safety_margin)
                self._start_window(self._clock())

            self._wait_for_spacing()
            self._last_call = self._clock()
            self._calls_in_window += 1

    def reset_window(self) -> None:
        """Zero the counter and open a fresh window."""
        with self._lock:
            self._start_window(self._clock())

    def snapshot(self) -> WindowSnapshot:
        with self._lock:
            return WindowSnapshot(
                calls_in_window=self._calls_in_window,
                max_calls=self._max_calls,
                window_reset_at=self._window_reset_at,
                last_call_at=self._last_call,
            )

    def _start_window(self, now: float) -> None:
        self._calls_in_window = 0
        self._window_reset_at = now + self._window_seconds
