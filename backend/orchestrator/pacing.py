"""
Real-time pacing (pure).

Converts media timestamps into wall-clock delivery deadlines so that
transmission reproduces the presentation cadence of the source.

Algorithm:
- The first sample fixes the anchor (now, t0) and is delivered at once.
- Every later sample is due at first_wall_clock_us + (t - first_media_time_us).
- The delay handed to the looper is when - now; it may be negative when
  the loop is behind, in which case the looper delivers immediately.

Every deadline derives from the fixed anchor, never from the previous
sample's delay, so scheduling jitter does not accumulate.
"""

from __future__ import annotations

from dataclasses import dataclass

from spec import PACING_ANCHOR_UNSET


@dataclass(frozen=True)
class PacingAnchor:
    """(wall clock, media time) pair fixed at the first sample."""
    first_wall_clock_us: int = PACING_ANCHOR_UNSET
    first_media_time_us: int = PACING_ANCHOR_UNSET

    @property
    def is_set(self) -> bool:
        return self.first_wall_clock_us != PACING_ANCHOR_UNSET


@dataclass(frozen=True)
class PacingDecision:
    """
    anchor:
        Anchor after this sample (set on the first sample).

    when_us:
        Absolute delivery deadline on the looper clock.

    delay_us:
        when_us - now_us. Negative means the deadline already passed.
    """
    anchor: PacingAnchor
    when_us: int
    delay_us: int

    @property
    def lateness_us(self) -> int:
        return max(-self.delay_us, 0)


def plan_delivery(anchor: PacingAnchor, media_time_us: int, now_us: int) -> PacingDecision:
    """Compute the delivery deadline for one sample."""
    if not anchor.is_set:
        anchor = PacingAnchor(first_wall_clock_us=now_us, first_media_time_us=media_time_us)
        when_us = now_us
    else:
        when_us = anchor.first_wall_clock_us + (media_time_us - anchor.first_media_time_us)

    return PacingDecision(anchor=anchor, when_us=when_us, delay_us=when_us - now_us)
