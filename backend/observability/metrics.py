"""
Metrics and timing helpers for observability.

Responsibilities:
- Measure durations using monotonic time (immune to clock changes)
- Emit metrics as JSONL events via observability.logger
- Never aggregate across processes: one metric = one log event
- Provide safe APIs that prevent timer leaks

Design notes:
- Durations use monotonic time for correctness
- Event timestamps (ts_ms) use wall-clock time for human readability
- Prefer the `timed()` context manager when the measured span is lexical;
  asynchronous spans (init handshakes) use start_timer/stop_timer
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


# -----------------------------------------------------------------------------
# Internal timer storage
# -----------------------------------------------------------------------------
# timer_id -> (metric_name, start_time_ns)
_active_timers: dict[str, tuple[str, int]] = {}


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------

def start_timer(name: str) -> str:
    """
    Start a monotonic timer.

    Returns:
        timer_id (str): Opaque ID required to stop the timer later.
    """
    timer_id = f"timer_{uuid.uuid4().hex[:12]}"
    _active_timers[timer_id] = (name, time.monotonic_ns())
    return timer_id


def stop_timer(
    timer_id: str,
    *,
    role: str | None = None,
    details: dict[str, Any] | None = None,
) -> int | None:
    """
    Stop a previously started timer and emit a metric event.

    Returns:
        duration_us if the timer existed, else None
    """
    entry = _active_timers.pop(timer_id, None)
    if entry is None:
        return None

    name, start_ns = entry
    duration_us = (time.monotonic_ns() - start_ns) // 1_000

    log_event({
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_us": duration_us,
        "role": role,
        "details": details or {},
    })

    return duration_us


def discard_timer(timer_id: str) -> None:
    """Forget a timer without emitting anything (e.g. on teardown)."""
    _active_timers.pop(timer_id, None)


def record_value(
    name: str,
    value: int | float,
    *,
    role: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single point-in-time metric."""
    log_event({
        "event_type": "METRIC_VALUE",
        "metric": name,
        "value": value,
        "role": role,
        "details": details or {},
    })


# -----------------------------------------------------------------------------
# Safe API: context manager
# -----------------------------------------------------------------------------

@contextmanager
def timed(
    name: str,
    *,
    role: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Context manager for measuring durations safely.

    Guarantees:
    - Timer is ALWAYS stopped (no leaks)
    - Metric is emitted exactly once
    - Exceptions inside the block do NOT suppress timing
    """
    timer_id = start_timer(name)
    try:
        yield
    finally:
        stop_timer(timer_id, role=role, details=details)
