"""
Side-effect command definitions for the orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from adapters.transport.base import Packetization, TransportMode
from media.sample import MediaSample
from orchestrator.enums.role import Role

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Receiver
    START_RECEIVER = "START_RECEIVER"
    RELEASE_RECEIVER = "RELEASE_RECEIVER"

    # Sender
    OPEN_MEDIA_SOURCE = "OPEN_MEDIA_SOURCE"
    START_SENDER = "START_SENDER"
    RELEASE_SENDER = "RELEASE_SENDER"
    RELEASE_MEDIA_SOURCE = "RELEASE_MEDIA_SOURCE"

    # Pacing
    FETCH_SAMPLE = "FETCH_SAMPLE"
    SCHEDULE_SEND_MORE = "SCHEDULE_SEND_MORE"
    QUEUE_BUFFER = "QUEUE_BUFFER"

    # Operator output
    REPORT_LOCAL_PORT = "REPORT_LOCAL_PORT"

    # Lifecycle
    POST_STOP = "POST_STOP"
    STOP_LOOPER = "STOP_LOOPER"

    # Observability
    LOG_EVENT = "LOG_EVENT"
    RECORD_METRIC = "RECORD_METRIC"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Receiver Commands
# =============================================================================

@dataclass(frozen=True)
class StartReceiver(Command):
    """
    Create and register the receiver, declare the inbound payload mapping
    and request asynchronous initialization.
    """
    payload_type: int
    packetization: Packetization
    media_mode: TransportMode
    control_mode: TransportMode
    command_type: CommandType = CommandType.START_RECEIVER


@dataclass(frozen=True)
class ReleaseReceiver(Command):
    """Unregister the receiver from the looper, then release it."""
    command_type: CommandType = CommandType.RELEASE_RECEIVER


# =============================================================================
# Sender Commands
# =============================================================================

@dataclass(frozen=True)
class OpenMediaSource(Command):
    """Open the media source and select the first supported video track."""
    locator: str
    command_type: CommandType = CommandType.OPEN_MEDIA_SOURCE


@dataclass(frozen=True)
class StartSender(Command):
    """
    Create and register the sender and request asynchronous initialization
    towards host:media_port (media) and host:control_port (control).
    """
    host: str
    media_port: int
    control_port: int
    media_mode: TransportMode
    control_mode: TransportMode
    command_type: CommandType = CommandType.START_SENDER


@dataclass(frozen=True)
class ReleaseSender(Command):
    """Unregister the sender from the looper, then release it."""
    command_type: CommandType = CommandType.RELEASE_SENDER


@dataclass(frozen=True)
class ReleaseMediaSource(Command):
    """Close and drop the media source."""
    command_type: CommandType = CommandType.RELEASE_MEDIA_SOURCE


# =============================================================================
# Pacing Commands
# =============================================================================

@dataclass(frozen=True)
class FetchSample(Command):
    """
    Read the next sample into a buffer of max_sample_size bytes.

    The runtime answers with SampleFetched, SourceExhausted or
    SetupFailed.
    """
    max_sample_size: int
    command_type: CommandType = CommandType.FETCH_SAMPLE


@dataclass(frozen=True)
class ScheduleSendMore(Command):
    """
    Post SendMore(sample) to the orchestrator after delay_us.

    delay_us may be negative when the loop is running behind; the looper
    clamps it to immediate delivery.
    """
    sample: MediaSample
    delay_us: int
    command_type: CommandType = CommandType.SCHEDULE_SEND_MORE


@dataclass(frozen=True)
class QueueBuffer(Command):
    """Hand one sample to the sender for the given payload type."""
    sample: MediaSample
    payload_type: int
    packetization: Packetization
    command_type: CommandType = CommandType.QUEUE_BUFFER


# =============================================================================
# Operator output
# =============================================================================

@dataclass(frozen=True)
class ReportLocalPort(Command):
    """Print the locally bound media port for a role."""
    role: Role
    port: int
    command_type: CommandType = CommandType.REPORT_LOCAL_PORT


# =============================================================================
# Lifecycle Commands
# =============================================================================

@dataclass(frozen=True)
class PostStop(Command):
    """Post a Stop message to the orchestrator (next loop turn)."""
    reason: str
    command_type: CommandType = CommandType.POST_STOP


@dataclass(frozen=True)
class StopLooper(Command):
    """Stop the event loop; no further messages are delivered."""
    command_type: CommandType = CommandType.STOP_LOOPER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """
    Request to emit a structured log event.

    event must be JSON-serializable.
    """
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT


@dataclass(frozen=True)
class RecordMetric(Command):
    """Request to emit a single metric value."""
    name: str
    value: int | float
    role: Role | None = None
    command_type: CommandType = CommandType.RECORD_METRIC
