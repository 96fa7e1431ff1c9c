"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
- Live handles (endpoints, media source) are NOT here; the runtime owns
  them. The *_active flags mirror whether a handle exists.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from adapters.transport.base import Packetization, TransportMode
from config import AppConfig
from orchestrator.enums.state import State
from orchestrator.pacing import PacingAnchor
from spec import (
    DEFAULT_MAX_SAMPLE_SIZE,
    DEFAULT_MEDIA_SOURCE_LOCATOR,
    DEFAULT_RTP_PAYLOAD_TYPE,
)


# =============================================================================
# Stream settings (from configuration)
# =============================================================================

@dataclass(frozen=True)
class StreamSettings:
    """Configuration the reducer needs to build commands."""

    media_source_locator: str = DEFAULT_MEDIA_SOURCE_LOCATOR
    rtp_payload_type: int = DEFAULT_RTP_PAYLOAD_TYPE
    max_sample_size: int = DEFAULT_MAX_SAMPLE_SIZE
    packetization: Packetization = Packetization.H264
    media_transport: TransportMode = TransportMode.UDP
    control_transport: TransportMode = TransportMode.UDP

    @staticmethod
    def from_config(config: AppConfig) -> StreamSettings:
        return StreamSettings(
            media_source_locator=config.media_source_locator,
            rtp_payload_type=config.rtp_payload_type,
            max_sample_size=config.max_sample_size,
            packetization=config.packetization,
            media_transport=config.media_transport,
            control_transport=config.control_transport,
        )


# =============================================================================
# Orchestrator State
# =============================================================================

@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    settings: StreamSettings = field(default_factory=StreamSettings)

    # ------------------------------------------------------------------
    # Control state (one sub-state per role, plus shutdown)
    # ------------------------------------------------------------------
    receiver_state: State = State.IDLE
    sender_state: State = State.IDLE
    shutdown_state: State = State.IDLE

    # ------------------------------------------------------------------
    # Handle mirrors
    # ------------------------------------------------------------------
    receiver_active: bool = False
    sender_active: bool = False
    source_open: bool = False

    # ------------------------------------------------------------------
    # Connect target / selected track
    # ------------------------------------------------------------------
    remote_host: str | None = None
    remote_port: int | None = None
    selected_track: int | None = None

    # ------------------------------------------------------------------
    # Locally bound media ports (for the operator)
    # ------------------------------------------------------------------
    receiver_local_port: int | None = None
    sender_local_port: int | None = None

    # ------------------------------------------------------------------
    # Pacing
    # ------------------------------------------------------------------
    pacing: PacingAnchor = field(default_factory=PacingAnchor)
    samples_scheduled: int = 0
    samples_sent: int = 0
    late_samples: int = 0

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None
