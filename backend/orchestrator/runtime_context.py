"""
Runtime execution context.

Provides SessionRuntime with the factories for the imperative resources
it creates on command (endpoints, media source).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- The default factories wired to the UDP endpoints and PyAV
- Zero orchestration logic
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from adapters.media.base import MediaSource
from adapters.transport.base import ReceiverEndpoint, SenderEndpoint
from looper.message import HandlerId

if TYPE_CHECKING:
    from network.session import NetworkSession


# ---------------------------------------------------------------------
# Factory Protocols
# ---------------------------------------------------------------------

class SenderFactory(Protocol):
    def __call__(self, notify_target: HandlerId) -> SenderEndpoint: ...


class ReceiverFactory(Protocol):
    def __call__(self, notify_target: HandlerId) -> ReceiverEndpoint: ...


class MediaSourceFactory(Protocol):
    def __call__(self) -> MediaSource: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RuntimeExecutionContext:
    """
    Imperative execution context for SessionRuntime.

    Runtime is allowed to:
    - Create endpoints and media sources through these factories

    Runtime is NOT allowed to:
    - Construct collaborators directly
    """

    sender_factory: SenderFactory
    receiver_factory: ReceiverFactory
    media_source_factory: MediaSourceFactory


def default_context(network: NetworkSession) -> RuntimeExecutionContext:
    """Context wired to the UDP datagram endpoints and the PyAV demuxer."""
    # pylint: disable=import-outside-toplevel
    from adapters.media.pyav_source import PyAVMediaSource
    from adapters.transport.datagram import DatagramReceiverEndpoint, DatagramSenderEndpoint

    return RuntimeExecutionContext(
        sender_factory=lambda target: DatagramSenderEndpoint(network, target),
        receiver_factory=lambda target: DatagramReceiverEndpoint(network, target),
        media_source_factory=PyAVMediaSource,
    )
