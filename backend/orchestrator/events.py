"""
Unified event definitions for the orchestrator reducer.

Rules:
- Events describe facts that have occurred (or requests that arrived).
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- Every message kind the orchestrator handler accepts exists here as one
  frozen dataclass with a fixed, typed payload.

Two sources feed the reducer:
- Looper messages: BeginListen, BeginConnect, ReceiverNotify,
  SenderNotify, SendMore, Stop.
- Command results produced by the runtime inside the same dispatch turn:
  ReceiverStarted, SourceOpened, SenderStarted, SetupFailed,
  SampleFetched, SourceExhausted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from adapters.transport.base import NotifyWhat
from media.sample import MediaSample
from orchestrator.enums.role import Role


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Mode activation
    # ------------------------------------------------------------------
    BEGIN_LISTEN = "BEGIN_LISTEN"
    BEGIN_CONNECT = "BEGIN_CONNECT"

    # ------------------------------------------------------------------
    # Setup results
    # ------------------------------------------------------------------
    RECEIVER_STARTED = "RECEIVER_STARTED"
    SOURCE_OPENED = "SOURCE_OPENED"
    SENDER_STARTED = "SENDER_STARTED"
    SETUP_FAILED = "SETUP_FAILED"

    # ------------------------------------------------------------------
    # Collaborator notifications
    # ------------------------------------------------------------------
    RECEIVER_NOTIFY = "RECEIVER_NOTIFY"
    SENDER_NOTIFY = "SENDER_NOTIFY"

    # ------------------------------------------------------------------
    # Pacing loop
    # ------------------------------------------------------------------
    SAMPLE_FETCHED = "SAMPLE_FETCHED"
    SOURCE_EXHAUSTED = "SOURCE_EXHAUSTED"
    SEND_MORE = "SEND_MORE"

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------
    STOP = "STOP"


# =============================================================================
# Base Event
# =============================================================================

class Event:
    """
    Base event type.

    event_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    event_type: EventType


# =============================================================================
# Mode activation
# =============================================================================

@dataclass(frozen=True)
class BeginListen(Event):
    """Operator selected listen mode."""
    event_type: EventType = EventType.BEGIN_LISTEN


@dataclass(frozen=True)
class BeginConnect(Event):
    """Operator selected connect mode towards host:port (media channel)."""
    host: str
    port: int
    event_type: EventType = EventType.BEGIN_CONNECT


# =============================================================================
# Setup results
# =============================================================================

@dataclass(frozen=True)
class ReceiverStarted(Event):
    """Receiver registered, payload mapped, init requested."""
    local_media_port: int
    event_type: EventType = EventType.RECEIVER_STARTED


@dataclass(frozen=True)
class SourceOpened(Event):
    """Media source opened and a supported track selected."""
    track_index: int
    mime_type: str
    track_count: int
    event_type: EventType = EventType.SOURCE_OPENED


@dataclass(frozen=True)
class SenderStarted(Event):
    """Sender registered and init requested."""
    local_media_port: int
    event_type: EventType = EventType.SENDER_STARTED


@dataclass(frozen=True)
class SetupFailed(Event):
    """
    A synchronous setup step failed for a role.

    Covers source-open failure, no compatible track, payload mapping
    rejection, endpoint init rejection and oversized samples.
    """
    role: Role
    reason: str
    event_type: EventType = EventType.SETUP_FAILED


# =============================================================================
# Collaborator notifications
# =============================================================================

@dataclass(frozen=True)
class ReceiverNotify(Event):
    """Notification posted by the receiver endpoint."""
    what: NotifyWhat
    err: int = 0
    local_media_port: int | None = None
    event_type: EventType = EventType.RECEIVER_NOTIFY


@dataclass(frozen=True)
class SenderNotify(Event):
    """Notification posted by the sender endpoint."""
    what: NotifyWhat
    err: int = 0
    local_media_port: int | None = None
    event_type: EventType = EventType.SENDER_NOTIFY


# =============================================================================
# Pacing loop
# =============================================================================

@dataclass(frozen=True)
class SampleFetched(Event):
    """
    The next sample was read from the source.

    now_us is the looper clock reading taken right after the read; it is
    the reference point for the delivery delay.
    """
    sample: MediaSample
    now_us: int
    event_type: EventType = EventType.SAMPLE_FETCHED


@dataclass(frozen=True)
class SourceExhausted(Event):
    """The source has no more samples (end of stream or read error)."""
    reason: str = "end_of_stream"
    event_type: EventType = EventType.SOURCE_EXHAUSTED


@dataclass(frozen=True)
class SendMore(Event):
    """A paced sample is due for transmission."""
    sample: MediaSample
    event_type: EventType = EventType.SEND_MORE


# =============================================================================
# Shutdown
# =============================================================================

@dataclass(frozen=True)
class Stop(Event):
    """Tear everything down and stop the looper."""
    reason: str = "requested"
    event_type: EventType = EventType.STOP
