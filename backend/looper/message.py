"""
Message envelope.

Pure data container only. The payload is a tagged event dataclass
(see orchestrator.events, network.session.NetworkEvent); the looper never
inspects it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NewType

HandlerId = NewType("HandlerId", int)


@dataclass(frozen=True, order=True)
class Message:
    """
    One scheduled delivery.

    Ordering is (when_us, seq): earliest deadline first, post order for
    equal deadlines. target and payload never take part in comparisons.

    when_us:
        Absolute delivery time on the looper's clock (microseconds).

    seq:
        Monotonic post counter assigned by the looper.
    """
    when_us: int
    seq: int
    target: HandlerId = field(compare=False)
    payload: Any = field(compare=False)
