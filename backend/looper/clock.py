"""
Clocks for the looper.

A clock answers two questions: what time is it (monotonic microseconds),
and how to wait on the queue condition for at most some number of
microseconds.

MonotonicClock is the production clock. ManualClock never blocks: a wait
advances virtual time by the requested amount, so a looper driven by it
dispatches timed messages exactly at their scheduled instants with zero
processing cost. It is used for deterministic tests and offline simulation.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol

from looper.errors import LooperStalled


class Clock(Protocol):
    def now_us(self) -> int: ...

    def wait(self, cond: threading.Condition, timeout_us: int | None) -> None:
        """
        Wait on cond (already held by the caller) for at most timeout_us.
        None means until notified.
        """


class MonotonicClock:
    """time.monotonic_ns() based clock."""

    def now_us(self) -> int:
        return time.monotonic_ns() // 1_000

    def wait(self, cond: threading.Condition, timeout_us: int | None) -> None:
        if timeout_us is None:
            cond.wait()
        else:
            cond.wait(timeout_us / 1_000_000)


class ManualClock:
    """
    Virtual clock. Time only moves when advance() is called or when the
    looper waits for a scheduled message.
    """

    def __init__(self, start_us: int = 0) -> None:
        self._now_us = start_us

    def now_us(self) -> int:
        return self._now_us

    def advance(self, delta_us: int) -> None:
        if delta_us < 0:
            raise ValueError("ManualClock cannot go backwards")
        self._now_us += delta_us

    def wait(self, cond: threading.Condition, timeout_us: int | None) -> None:
        if timeout_us is None:
            raise LooperStalled(
                "looper has nothing scheduled and the manual clock cannot "
                "wait for other threads"
            )
        self.advance(max(timeout_us, 0))
