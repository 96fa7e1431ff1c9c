"""
Authoritative session state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    Control states of the session orchestrator.

    The receiver role uses IDLE, LISTEN_REQUESTED, RECEIVER_INITIALIZING,
    RECEIVER_READY. The sender role uses IDLE, CONNECT_REQUESTED,
    SENDER_INITIALIZING, STREAMING. Shutdown uses IDLE, STOPPING, STOPPED.
    """

    IDLE = "IDLE"
    LISTEN_REQUESTED = "LISTEN_REQUESTED"
    CONNECT_REQUESTED = "CONNECT_REQUESTED"
    RECEIVER_INITIALIZING = "RECEIVER_INITIALIZING"
    SENDER_INITIALIZING = "SENDER_INITIALIZING"
    RECEIVER_READY = "RECEIVER_READY"
    STREAMING = "STREAMING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
