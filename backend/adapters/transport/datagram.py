"""
UDP datagram endpoints.

Both endpoints bind an (even, even + 1) local port pair for the media and
control channels, then wait for the network session to report each
channel READY before posting INIT_DONE to the notify target.

The sender ships each sample as consecutive datagrams of at most
MAX_DATAGRAM_PAYLOAD_BYTES. The receiver counts what arrives per channel;
depacketization and rendering are out of scope for this endpoint.
"""

from __future__ import annotations

import random
from typing import Callable

from adapters.transport.base import (
    NotifyWhat,
    Packetization,
    ReceiverEndpoint,
    SenderEndpoint,
    TransportError,
    TransportMode,
)
from looper.message import HandlerId, Message
from network.session import NetworkEvent, NetworkEventKind, NetworkSession
from observability.logger import log_event
from orchestrator.events import ReceiverNotify, SenderNotify
from spec import (
    ERR_EXISTS,
    ERR_INVALID,
    ERR_NOT_CONNECTED,
    LOCAL_PORT_BIND_ATTEMPTS,
    LOCAL_PORT_RANGE_END,
    LOCAL_PORT_RANGE_START,
    MAX_DATAGRAM_PAYLOAD_BYTES,
    OK,
    PAYLOAD_TYPE_MAX,
    PAYLOAD_TYPE_MIN,
    PORT_MAX,
    PORT_MIN,
)


def split_datagrams(data: bytes, max_payload: int = MAX_DATAGRAM_PAYLOAD_BYTES) -> list[bytes]:
    """Split data into consecutive chunks of at most max_payload bytes."""
    if not data:
        return []
    return [data[i:i + max_payload] for i in range(0, len(data), max_payload)]


def _check_modes(media_mode: TransportMode, control_mode: TransportMode) -> None:
    if media_mode is not TransportMode.UDP:
        raise TransportError(f"unsupported media transport {media_mode.value}")
    if control_mode not in (TransportMode.UDP, TransportMode.NONE):
        raise TransportError(f"unsupported control transport {control_mode.value}")


class _DatagramChannels:
    """
    Media/control session pair shared by both endpoint kinds.

    Tracks which sessions still owe a READY and whether INIT_DONE has
    been reported.
    """

    def __init__(self, network: NetworkSession, rng: random.Random) -> None:
        self._network = network
        self._rng = rng
        self.media_session: int | None = None
        self.control_session: int | None = None
        self.local_media_port: int | None = None
        self._awaiting_ready: set[int] = set()
        self.init_reported = False
        self.initialized = False

    def _candidate_port(self) -> int:
        port = self._rng.randrange(LOCAL_PORT_RANGE_START, LOCAL_PORT_RANGE_END - 1)
        return port & ~1

    def bind(
        self,
        *,
        owner: ReceiverEndpoint | SenderEndpoint,
        control_mode: TransportMode,
        remote_host: str | None = None,
        remote_media_port: int | None = None,
        remote_control_port: int | None = None,
    ) -> int:
        """Bind the port pair. Returns the local media port."""
        if owner.handler_id is None:
            raise TransportError("endpoint must be registered before init")

        for _ in range(LOCAL_PORT_BIND_ATTEMPTS):
            port = self._candidate_port()
            try:
                media_id, _ = self._network.create_udp_session(
                    looper=owner.looper,
                    target=owner.handler_id,
                    local_port=port,
                    remote_host=remote_host,
                    remote_port=remote_media_port,
                )
            except OSError:
                continue

            control_id = None
            if control_mode is TransportMode.UDP:
                try:
                    control_id, _ = self._network.create_udp_session(
                        looper=owner.looper,
                        target=owner.handler_id,
                        local_port=port + 1,
                        remote_host=remote_host,
                        remote_port=remote_control_port,
                    )
                except OSError:
                    self._network.destroy_session(media_id)
                    continue

            self.media_session = media_id
            self.control_session = control_id
            self.local_media_port = port
            self._awaiting_ready = {media_id} | ({control_id} if control_id is not None else set())
            return port

        raise TransportError(
            f"no free port pair after {LOCAL_PORT_BIND_ATTEMPTS} attempts"
        )

    def on_network_event(
        self, event: NetworkEvent, notify: Callable[[NotifyWhat, int], None]
    ) -> None:
        if event.kind is NetworkEventKind.READY:
            self._awaiting_ready.discard(event.session_id)
            if not self._awaiting_ready and not self.init_reported:
                self.init_reported = True
                self.initialized = True
                notify(NotifyWhat.INIT_DONE, OK)

        elif event.kind is NetworkEventKind.ERROR:
            if not self.init_reported:
                self.init_reported = True
                notify(NotifyWhat.INIT_DONE, event.err)
            else:
                notify(NotifyWhat.ERROR, event.err)

    def close(self) -> None:
        for session_id in (self.media_session, self.control_session):
            if session_id is not None:
                self._network.destroy_session(session_id)
        self.media_session = None
        self.control_session = None
        self.initialized = False


# =============================================================================
# Sender
# =============================================================================

class DatagramSenderEndpoint(SenderEndpoint):
    """Sends each queued sample to the remote media port as raw datagrams."""

    def __init__(
        self,
        network: NetworkSession,
        notify_target: HandlerId,
        *,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(notify_target)
        self._channels = _DatagramChannels(network, rng or random.Random())
        self._network = network
        self.samples_sent = 0
        self.bytes_sent = 0
        self.feedback_datagrams = 0

    def init_async(
        self,
        remote_host: str,
        remote_media_port: int,
        media_mode: TransportMode,
        remote_control_port: int,
        control_mode: TransportMode,
    ) -> int:
        _check_modes(media_mode, control_mode)
        if not remote_host:
            raise TransportError("remote host must not be empty")
        if not PORT_MIN <= remote_media_port <= PORT_MAX:
            raise TransportError(f"remote media port {remote_media_port} out of range")
        if control_mode is TransportMode.UDP and not PORT_MIN <= remote_control_port <= PORT_MAX:
            raise TransportError(
                f"remote control port {remote_control_port} out of range"
                f" (media port {remote_media_port} + 1)"
            )

        local_port = self._channels.bind(
            owner=self,
            control_mode=control_mode,
            remote_host=remote_host,
            remote_media_port=remote_media_port,
            remote_control_port=remote_control_port,
        )
        log_event({
            "level": "DEBUG",
            "event_type": "SENDER_BOUND",
            "local_media_port": local_port,
            "remote_host": remote_host,
            "remote_media_port": remote_media_port,
            "control_mode": control_mode.value,
        })
        return local_port

    def enqueue_buffer(
        self,
        data: bytes,
        payload_type: int,
        packetization: Packetization,
    ) -> int:
        if not PAYLOAD_TYPE_MIN <= payload_type <= PAYLOAD_TYPE_MAX:
            return ERR_INVALID
        if not self._channels.initialized or self._channels.media_session is None:
            return ERR_NOT_CONNECTED

        status = self._network.send_datagrams(self._channels.media_session, split_datagrams(data))
        if status == OK:
            self.samples_sent += 1
            self.bytes_sent += len(data)
        return status

    def on_message(self, message: Message) -> None:
        event = message.payload
        if not isinstance(event, NetworkEvent):
            return
        if event.kind is NetworkEventKind.DATAGRAM:
            # Receiver reports on the control channel; counted, not interpreted.
            self.feedback_datagrams += 1
            return
        self._channels.on_network_event(event, self._notify)

    def _notify(self, what: NotifyWhat, err: int) -> None:
        self.looper.post(
            self.notify_target,
            SenderNotify(what=what, err=err, local_media_port=self._channels.local_media_port),
        )

    def close(self) -> None:
        self._channels.close()


# =============================================================================
# Receiver
# =============================================================================

class DatagramReceiverEndpoint(ReceiverEndpoint):
    """Listens on a local port pair and accounts for inbound datagrams."""

    def __init__(
        self,
        network: NetworkSession,
        notify_target: HandlerId,
        *,
        rng: random.Random | None = None,
    ) -> None:
        super().__init__(notify_target)
        self._channels = _DatagramChannels(network, rng or random.Random())
        self.payload_mappings: dict[int, Packetization] = {}
        self.media_datagrams = 0
        self.media_bytes = 0
        self.control_datagrams = 0

    def register_payload_mapping(
        self,
        payload_type: int,
        packetization: Packetization,
    ) -> int:
        if not PAYLOAD_TYPE_MIN <= payload_type <= PAYLOAD_TYPE_MAX:
            return ERR_INVALID
        if payload_type in self.payload_mappings:
            return ERR_EXISTS
        self.payload_mappings[payload_type] = packetization
        return OK

    def init_async(self, media_mode: TransportMode, control_mode: TransportMode) -> int:
        _check_modes(media_mode, control_mode)
        local_port = self._channels.bind(owner=self, control_mode=control_mode)
        log_event({
            "level": "DEBUG",
            "event_type": "RECEIVER_BOUND",
            "local_media_port": local_port,
            "control_mode": control_mode.value,
        })
        return local_port

    def on_message(self, message: Message) -> None:
        event = message.payload
        if not isinstance(event, NetworkEvent):
            return
        if event.kind is NetworkEventKind.DATAGRAM:
            self._count(event)
            return
        self._channels.on_network_event(event, self._notify)

    def _count(self, event: NetworkEvent) -> None:
        if event.session_id == self._channels.control_session:
            self.control_datagrams += 1
            return

        if self.media_datagrams == 0:
            log_event({
                "event_type": "RECEIVER_FIRST_DATAGRAM",
                "local_media_port": self._channels.local_media_port,
                "peer": list(event.addr) if event.addr else None,
                "size": len(event.data),
            })
        self.media_datagrams += 1
        self.media_bytes += len(event.data)

    def _notify(self, what: NotifyWhat, err: int) -> None:
        self.looper.post(
            self.notify_target,
            ReceiverNotify(what=what, err=err, local_media_port=self._channels.local_media_port),
        )

    def close(self) -> None:
        self._channels.close()
