# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

from adapters.media.base import MediaSource, MediaSourceError, TrackFormat
from adapters.transport.base import (
    NotifyWhat,
    Packetization,
    ReceiverEndpoint,
    SenderEndpoint,
    TransportError,
    TransportMode,
)
from config import AppConfig
from looper.clock import ManualClock
from looper.looper import Looper
from looper.message import HandlerId, Message
from media.sample import SampleBuffer
from orchestrator.enums.state import State
from orchestrator.events import ReceiverNotify, SenderNotify, Stop
from orchestrator.runtime import SessionRuntime
from orchestrator.runtime_context import RuntimeExecutionContext
from spec import ERR_EXISTS, OK


# ---------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------

class FakeReceiver(ReceiverEndpoint):
    def __init__(self, notify_target: HandlerId, *, port: int = 15550, mapping_err: int = OK):
        super().__init__(notify_target)
        self.port = port
        self.mapping_err = mapping_err
        self.mappings: list[tuple[int, Packetization]] = []
        self.close_calls = 0

    def register_payload_mapping(self, payload_type: int, packetization: Packetization) -> int:
        self.mappings.append((payload_type, packetization))
        return self.mapping_err

    def init_async(self, media_mode: TransportMode, control_mode: TransportMode) -> int:
        self.looper.post(
            self.notify_target,
            ReceiverNotify(what=NotifyWhat.INIT_DONE, err=OK, local_media_port=self.port),
        )
        return self.port

    def on_message(self, message: Message) -> None:
        pass

    def close(self) -> None:
        self.close_calls += 1


class FakeSender(SenderEndpoint):
    def __init__(self, notify_target: HandlerId, *, port: int = 20000, init_err: int = OK):
        super().__init__(notify_target)
        self.port = port
        self.init_err = init_err
        self.init_args: tuple[Any, ...] | None = None
        self.sent: list[tuple[int, bytes, int]] = []
        self.close_calls = 0

    def init_async(
        self,
        remote_host: str,
        remote_media_port: int,
        media_mode: TransportMode,
        remote_control_port: int,
        control_mode: TransportMode,
    ) -> int:
        self.init_args = (remote_host, remote_media_port, remote_control_port)
        self.looper.post(
            self.notify_target,
            SenderNotify(what=NotifyWhat.INIT_DONE, err=self.init_err, local_media_port=self.port),
        )
        return self.port

    def enqueue_buffer(self, data: bytes, payload_type: int, packetization: Packetization) -> int:
        self.sent.append((self.looper.now_us(), data, payload_type))
        return OK

    def on_message(self, message: Message) -> None:
        pass

    def close(self) -> None:
        self.close_calls += 1


class FakeMediaSource(MediaSource):
    def __init__(
        self,
        tracks: list[str],
        samples: list[tuple[int, bytes]],
        *,
        open_error: bool = False,
    ) -> None:
        self.tracks = [TrackFormat(mime) for mime in tracks]
        self.samples = samples
        self.open_error = open_error
        self.selected: int | None = None
        self.position = 0
        self.timestamp_calls = 0
        self.close_calls = 0

    def open(self, locator: str) -> None:
        if self.open_error:
            raise MediaSourceError(f"cannot open {locator}")

    def track_count(self) -> int:
        return len(self.tracks)

    def track_format(self, index: int) -> TrackFormat:
        return self.tracks[index]

    def select_track(self, index: int) -> None:
        self.selected = index

    def next_sample_timestamp(self) -> int | None:
        self.timestamp_calls += 1
        if self.position >= len(self.samples):
            return None
        return self.samples[self.position][0]

    def read_into(self, buffer: SampleBuffer) -> int:
        return buffer.write(self.samples[self.position][1])

    def advance(self) -> None:
        self.position += 1

    def close(self) -> None:
        self.close_calls += 1


class Harness:
    def __init__(
        self,
        *,
        source: FakeMediaSource | None = None,
        config: AppConfig | None = None,
        sender_kwargs: dict[str, Any] | None = None,
        receiver_kwargs: dict[str, Any] | None = None,
        sender_cls: type[FakeSender] = FakeSender,
    ) -> None:
        self.clock = ManualClock()
        self.looper = Looper(clock=self.clock)
        self.source = source or FakeMediaSource(["video/avc"], [])
        self.senders: list[FakeSender] = []
        self.receivers: list[FakeReceiver] = []
        self.lines: list[str] = []

        def make_sender(target: HandlerId) -> SenderEndpoint:
            sender = sender_cls(target, **(sender_kwargs or {}))
            self.senders.append(sender)
            return sender

        def make_receiver(target: HandlerId) -> ReceiverEndpoint:
            receiver = FakeReceiver(target, **(receiver_kwargs or {}))
            self.receivers.append(receiver)
            return receiver

        context = RuntimeExecutionContext(
            sender_factory=make_sender,
            receiver_factory=make_receiver,
            media_source_factory=lambda: self.source,
        )
        self.runtime = SessionRuntime(
            config=config or AppConfig(), context=context, report=self.lines.append
        )
        self.looper.register_handler(self.runtime)

    def run(self) -> None:
        self.looper.start(run_on_calling_thread=True)


# ---------------------------------------------------------------------
# Listen
# ---------------------------------------------------------------------

def test_listen_brings_up_receiver_and_prints_port():
    h = Harness(config=AppConfig(rtp_payload_type=96))
    h.runtime.listen()
    h.runtime.post(Stop(), delay_us=1_000)

    h.run()

    assert h.lines == ["picked receiver media port 15550"]
    receiver = h.receivers[0]
    assert receiver.mappings == [(96, Packetization.H264)]
    assert h.runtime.state.receiver_state is State.RECEIVER_READY
    assert h.runtime.state.shutdown_state is State.STOPPED
    assert receiver.close_calls == 1
    assert receiver.handler_id is None


def test_rejected_payload_mapping_stops_session():
    h = Harness(receiver_kwargs={"mapping_err": ERR_EXISTS})
    h.runtime.listen()

    h.run()

    assert h.lines == []
    assert h.runtime.state.shutdown_state is State.STOPPED
    assert h.runtime.state.last_error is not None
    assert "payload_mapping_rejected" in h.runtime.state.last_error
    assert h.receivers[0].close_calls == 1


# ---------------------------------------------------------------------
# Connect: track selection
# ---------------------------------------------------------------------

def test_connect_selects_first_video_track_of_three():
    source = FakeMediaSource(
        ["audio/mp4a-latm", "video/avc", "audio/mp4a-latm"],
        [(0, b"frame")],
    )
    h = Harness(source=source)
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    assert source.selected == 1
    assert h.runtime.state.selected_track == 1
    assert h.senders[0].init_args == ("10.0.0.2", 5000, 5001)
    assert h.lines == ["picked sender media port 20000"]


def test_no_video_track_creates_no_sender():
    source = FakeMediaSource(["audio/mp4a-latm", "audio/mp4a-latm"], [(0, b"x")])
    h = Harness(source=source)
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    assert h.senders == []
    assert h.lines == []
    assert h.runtime.state.last_error == "sender_setup_failed:no_supported_track"
    assert source.close_calls == 1


def test_source_open_failure_stops_session():
    h = Harness(source=FakeMediaSource(["video/avc"], [], open_error=True))
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    assert h.senders == []
    assert h.runtime.state.last_error is not None
    assert h.runtime.state.last_error.startswith("sender_setup_failed:source_open_failed")


def test_sender_init_failure_stops_session():
    h = Harness(
        source=FakeMediaSource(["video/avc"], [(0, b"x")]),
        sender_kwargs={"init_err": -113},
    )
    h.runtime.connect("unreachable", 5000)

    h.run()

    assert h.senders[0].sent == []
    assert h.senders[0].close_calls == 1
    assert h.runtime.state.last_error == "sender_init_failed:-113"


# ---------------------------------------------------------------------
# Connect: pacing
# ---------------------------------------------------------------------

def test_samples_are_sent_on_the_media_timeline():
    source = FakeMediaSource(
        ["video/avc"],
        [(0, b"f0"), (33_000, b"f1"), (66_000, b"f2")],
    )
    h = Harness(source=source, config=AppConfig(rtp_payload_type=33))
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    sent = h.senders[0].sent
    t0 = sent[0][0]
    assert [(t - t0, data) for t, data, _ in sent] == [
        (0, b"f0"),
        (33_000, b"f1"),
        (66_000, b"f2"),
    ]
    assert {pt for _, _, pt in sent} == {33}


def test_exhaustion_on_fourth_fetch_releases_each_handle_once():
    source = FakeMediaSource(
        ["video/avc"],
        [(0, b"a"), (33_000, b"b"), (66_000, b"c")],
    )
    h = Harness(source=source)
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    sender = h.senders[0]
    assert len(sender.sent) == 3
    assert source.timestamp_calls == 4
    assert sender.close_calls == 1
    assert source.close_calls == 1
    assert sender.handler_id is None
    assert h.runtime.state.samples_sent == 3
    assert h.runtime.state.shutdown_state is State.STOPPED
    assert h.runtime.state.last_error is None
    assert not h.looper.is_running


def test_oversized_sample_stops_session():
    source = FakeMediaSource(["video/avc"], [(0, b"x" * 64)])
    h = Harness(source=source, config=AppConfig(max_sample_size=16))
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    assert h.senders[0].sent == []
    assert h.runtime.state.last_error == "sender_setup_failed:sample_too_large:64"


def test_external_stop_during_streaming_releases_once():
    source = FakeMediaSource(
        ["video/avc"],
        [(i * 33_000, b"x") for i in range(100)],
    )
    h = Harness(source=source)
    h.runtime.connect("10.0.0.2", 5000)
    h.runtime.post(Stop(reason="interrupted"), delay_us=50_000)

    h.run()

    sender = h.senders[0]
    # Samples due at 0 and 33000 went out before the stop at 50000.
    assert len(sender.sent) == 2
    assert sender.close_calls == 1
    assert source.close_calls == 1


def test_sender_init_transport_error_is_setup_failure():
    class RejectingSender(FakeSender):
        def init_async(self, *args: Any, **kwargs: Any) -> int:
            raise TransportError("no free port pair")

    h = Harness(source=FakeMediaSource(["video/avc"], [(0, b"x")]), sender_cls=RejectingSender)
    h.runtime.connect("10.0.0.2", 5000)

    h.run()

    assert h.runtime.state.last_error == "sender_setup_failed:init_rejected:no free port pair"


def test_rejected_connect_target_stops_session():
    h = Harness(source=FakeMediaSource(["video/avc"], [(0, b"x")]))
    h.runtime.connect("", 5000)

    h.run()

    assert h.senders == []
    assert h.lines == []
    assert h.runtime.state.sender_state is State.IDLE
    assert h.runtime.state.shutdown_state is State.STOPPED
    assert h.runtime.state.last_error == "connect_rejected:empty_host"
    assert not h.looper.is_running


def test_top_port_with_control_channel_stops_with_overflow_reason():
    h = Harness(source=FakeMediaSource(["video/avc"], [(0, b"x")]))
    h.runtime.connect("10.0.0.2", 65535)

    h.run()

    assert h.senders == []
    assert h.runtime.state.shutdown_state is State.STOPPED
    assert h.runtime.state.last_error == "connect_rejected:control_port_overflow"
