"""
Transport endpoint contract.

This module defines the *interface only*: no packetization, no socket
handling, no orchestration decisions.

Key invariants:
- Endpoints are looper handlers; they are registered before init_async()
  and unregistered before they are released.
- init_async() returns the locally bound media port synchronously and
  reports completion later by posting exactly one INIT_DONE notification
  (err = OK or a negative errno) to the notify target.
- Errors after INIT_DONE are reported as ERROR notifications.
- Endpoints never call the orchestrator directly; they only post.
"""

from __future__ import annotations

from abc import abstractmethod
from enum import Enum

from looper.handler import Handler
from looper.message import HandlerId


class TransportError(Exception):
    """Synchronous endpoint setup failure (bad arguments, no free ports)."""


class TransportMode(str, Enum):
    """
    Delivery mode for one channel.

    UDP:
        Connectionless datagrams.

    NONE:
        Channel not used (only valid for the control channel).
    """

    UDP = "UDP"
    NONE = "NONE"


class Packetization(str, Enum):
    """How a sample is fragmented into transport packets for one payload type."""

    NONE = "NONE"
    TRANSPORT_STREAM = "TRANSPORT_STREAM"
    H264 = "H264"
    AAC = "AAC"


class NotifyWhat(str, Enum):
    """Notification sub-kinds posted by endpoints."""

    INIT_DONE = "INIT_DONE"
    ERROR = "ERROR"


class SenderEndpoint(Handler):
    """Outbound transport endpoint."""

    def __init__(self, notify_target: HandlerId) -> None:
        super().__init__()
        self.notify_target = notify_target

    @abstractmethod
    def init_async(
        self,
        remote_host: str,
        remote_media_port: int,
        media_mode: TransportMode,
        remote_control_port: int,
        control_mode: TransportMode,
    ) -> int:
        """Start initialization. Returns the local media port."""
        raise NotImplementedError

    @abstractmethod
    def enqueue_buffer(
        self,
        data: bytes,
        payload_type: int,
        packetization: Packetization,
    ) -> int:
        """Hand one sample to the transport. Returns OK or a negative errno."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release sockets. Idempotent."""
        raise NotImplementedError


class ReceiverEndpoint(Handler):
    """Inbound transport endpoint."""

    def __init__(self, notify_target: HandlerId) -> None:
        super().__init__()
        self.notify_target = notify_target

    @abstractmethod
    def register_payload_mapping(
        self,
        payload_type: int,
        packetization: Packetization,
    ) -> int:
        """Declare how an inbound payload type is depacketized."""
        raise NotImplementedError

    @abstractmethod
    def init_async(self, media_mode: TransportMode, control_mode: TransportMode) -> int:
        """Start initialization. Returns the local media port."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release sockets. Idempotent."""
        raise NotImplementedError
