"""
Runtime execution shell for a single streaming session.

Responsibilities:
- Own orchestrator state
- Call pure reducer
- Execute commands with side effects (endpoints, media source, looper)
- Feed command results back into the reducer within the same dispatch turn

Non-responsibilities:
- No orchestration decisions (those live in the reducer)
- No socket handling (endpoints and the network session own that)
"""

from __future__ import annotations

from collections import deque
from typing import Callable

from adapters.media.base import MediaSource, MediaSourceError
from adapters.transport.base import (
    NotifyWhat,
    ReceiverEndpoint,
    SenderEndpoint,
    TransportError,
)
from config import AppConfig
from looper.handler import Handler
from looper.message import Message
from media.sample import SampleBuffer, SampleTooLargeError
from observability.logger import log_event
from observability.metrics import discard_timer, record_value, start_timer, stop_timer
from orchestrator.commands import (
    Command,
    FetchSample,
    LogEvent,
    OpenMediaSource,
    PostStop,
    QueueBuffer,
    RecordMetric,
    ReleaseMediaSource,
    ReleaseReceiver,
    ReleaseSender,
    ReportLocalPort,
    ScheduleSendMore,
    StartReceiver,
    StartSender,
    StopLooper,
)
from orchestrator.enums.role import Role
from orchestrator.events import (
    BeginConnect,
    BeginListen,
    Event,
    ReceiverNotify,
    ReceiverStarted,
    SampleFetched,
    SendMore,
    SenderNotify,
    SenderStarted,
    SetupFailed,
    SourceExhausted,
    SourceOpened,
    Stop,
)
from orchestrator.reducer import reduce
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState, StreamSettings
from orchestrator.tracks import select_track
from spec import OK


class SessionRuntime(Handler):
    """
    Orchestrator handler for one streaming session.

    Architectural role:
    SessionRuntime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world (endpoints, media
    source, looper, logging).

    Guarantees:
    - Reducer is called exactly once per event
    - State is updated before any side effects execute
    - Commands are executed in reducer-emitted order
    - Results of synchronous commands (ReceiverStarted, SourceOpened,
      SampleFetched, ...) are reduced in the same dispatch turn, after the
      command batch that produced them
    - Collaborators are unregistered from the looper before they are closed
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        context: RuntimeExecutionContext,
        report: Callable[[str], None] = print,
    ) -> None:
        super().__init__()
        self._config = config
        self._ctx = context
        self._report = report
        self._state = OrchestratorState(settings=StreamSettings.from_config(config))

        self._receiver: ReceiverEndpoint | None = None
        self._sender: SenderEndpoint | None = None
        self._source: MediaSource | None = None
        self._buffer: SampleBuffer | None = None

        self._init_timers: dict[Role, str] = {}

    @property
    def state(self) -> OrchestratorState:
        """Current immutable orchestrator state. Read-only."""
        return self._state

    @property
    def receiver(self) -> ReceiverEndpoint | None:
        return self._receiver

    @property
    def sender(self) -> SenderEndpoint | None:
        return self._sender

    # ------------------------------------------------------------------
    # Operator entry points (post to self; safe from any thread)
    # ------------------------------------------------------------------

    def listen(self) -> None:
        self.post(BeginListen())

    def connect(self, host: str, port: int) -> None:
        self.post(BeginConnect(host=host, port=port))

    def request_stop(self, reason: str = "requested") -> None:
        self.post(Stop(reason=reason))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def on_message(self, message: Message) -> None:
        payload = message.payload
        if not isinstance(payload, Event):
            log_event({
                "level": "WARNING",
                "event_type": "UNEXPECTED_PAYLOAD",
                "payload_type": type(payload).__name__,
            })
            return
        self.handle_event(payload)

    def handle_event(self, event: Event) -> None:
        """
        Process one event and every result it synchronously produces.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new orchestrator state
        3. Execute all emitted commands sequentially
        4. Queue any result event and repeat until none is left
        """
        pending: deque[Event] = deque([event])
        while pending:
            current = pending.popleft()
            self._observe(current)

            new_state, commands = reduce(self._state, current)
            self._state = new_state

            for cmd in commands:
                result = self._execute_command(cmd)
                if result is not None:
                    pending.append(result)

    def _observe(self, event: Event) -> None:
        """Close the init-handshake timers when INIT_DONE arrives."""
        if isinstance(event, (ReceiverNotify, SenderNotify)) and event.what is NotifyWhat.INIT_DONE:
            role = Role.RECEIVER if isinstance(event, ReceiverNotify) else Role.SENDER
            timer_id = self._init_timers.pop(role, None)
            if timer_id is not None:
                stop_timer(timer_id, role=role.value, details={"err": event.err})

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> Event | None:
        """Execute a single command. Returns a result event, if any."""

        if isinstance(cmd, LogEvent):
            log_event({**cmd.event, "handler_id": self.handler_id})

        elif isinstance(cmd, RecordMetric):
            record_value(cmd.name, cmd.value, role=cmd.role.value if cmd.role else None)

        elif isinstance(cmd, StartReceiver):
            return self._start_receiver(cmd)

        elif isinstance(cmd, ReleaseReceiver):
            self._release_receiver()

        elif isinstance(cmd, OpenMediaSource):
            return self._open_media_source(cmd)

        elif isinstance(cmd, StartSender):
            return self._start_sender(cmd)

        elif isinstance(cmd, ReleaseSender):
            self._release_sender()

        elif isinstance(cmd, ReleaseMediaSource):
            self._release_media_source()

        elif isinstance(cmd, FetchSample):
            return self._fetch_sample(cmd)

        elif isinstance(cmd, ScheduleSendMore):
            self.post(SendMore(sample=cmd.sample), cmd.delay_us)

        elif isinstance(cmd, QueueBuffer):
            self._queue_buffer(cmd)

        elif isinstance(cmd, ReportLocalPort):
            self._report(f"picked {cmd.role.value.lower()} media port {cmd.port}")

        elif isinstance(cmd, PostStop):
            self.post(Stop(reason=cmd.reason))

        elif isinstance(cmd, StopLooper):
            self.looper.stop()

        else:
            log_event({
                "level": "ERROR",
                "event_type": "UNKNOWN_COMMAND",
                "command_type": getattr(cmd, "command_type", type(cmd).__name__),
            })

        return None

    # ------------------------------------------------------------------
    # Receiver
    # ------------------------------------------------------------------

    def _start_receiver(self, cmd: StartReceiver) -> Event:
        assert self.handler_id is not None
        receiver = self._ctx.receiver_factory(self.handler_id)
        self.looper.register_handler(receiver)
        self._receiver = receiver

        err = receiver.register_payload_mapping(cmd.payload_type, cmd.packetization)
        if err != OK:
            return SetupFailed(role=Role.RECEIVER, reason=f"payload_mapping_rejected:{err}")

        try:
            port = receiver.init_async(cmd.media_mode, cmd.control_mode)
        except TransportError as exc:
            return SetupFailed(role=Role.RECEIVER, reason=f"init_rejected:{exc}")

        self._init_timers[Role.RECEIVER] = start_timer("endpoint_init")
        return ReceiverStarted(local_media_port=port)

    def _release_receiver(self) -> None:
        receiver, self._receiver = self._receiver, None
        if receiver is None:
            return
        if receiver.handler_id is not None:
            self.looper.unregister_handler(receiver.handler_id)
        receiver.close()
        self._discard_init_timer(Role.RECEIVER)

    # ------------------------------------------------------------------
    # Sender
    # ------------------------------------------------------------------

    def _open_media_source(self, cmd: OpenMediaSource) -> Event:
        source = self._ctx.media_source_factory()
        self._source = source
        try:
            source.open(cmd.locator)
            formats = [source.track_format(i) for i in range(source.track_count())]
            index = select_track(formats)
            if index is None:
                return SetupFailed(role=Role.SENDER, reason="no_supported_track")
            source.select_track(index)
        except MediaSourceError as exc:
            return SetupFailed(role=Role.SENDER, reason=f"source_open_failed:{exc}")

        return SourceOpened(
            track_index=index,
            mime_type=formats[index].mime_type,
            track_count=len(formats),
        )

    def _start_sender(self, cmd: StartSender) -> Event:
        assert self.handler_id is not None
        sender = self._ctx.sender_factory(self.handler_id)
        self.looper.register_handler(sender)
        self._sender = sender

        try:
            port = sender.init_async(
                cmd.host, cmd.media_port, cmd.media_mode, cmd.control_port, cmd.control_mode
            )
        except TransportError as exc:
            return SetupFailed(role=Role.SENDER, reason=f"init_rejected:{exc}")

        self._init_timers[Role.SENDER] = start_timer("endpoint_init")
        return SenderStarted(local_media_port=port)

    def _release_sender(self) -> None:
        sender, self._sender = self._sender, None
        if sender is None:
            return
        if sender.handler_id is not None:
            self.looper.unregister_handler(sender.handler_id)
        sender.close()
        self._discard_init_timer(Role.SENDER)

    def _release_media_source(self) -> None:
        source, self._source = self._source, None
        self._buffer = None
        if source is not None:
            source.close()

    # ------------------------------------------------------------------
    # Pacing loop
    # ------------------------------------------------------------------

    def _fetch_sample(self, cmd: FetchSample) -> Event:
        if self._source is None:
            return SourceExhausted(reason="no_source")

        if self._buffer is None or self._buffer.capacity != cmd.max_sample_size:
            self._buffer = SampleBuffer(cmd.max_sample_size)

        try:
            time_us = self._source.next_sample_timestamp()
            if time_us is None:
                return SourceExhausted()
            self._source.read_into(self._buffer)
            self._source.advance()
        except SampleTooLargeError as exc:
            return SetupFailed(role=Role.SENDER, reason=f"sample_too_large:{exc.size}")
        except MediaSourceError as exc:
            return SourceExhausted(reason=f"read_error:{exc}")

        return SampleFetched(sample=self._buffer.to_sample(time_us), now_us=self.looper.now_us())

    def _queue_buffer(self, cmd: QueueBuffer) -> None:
        if self._sender is None:
            log_event({"level": "WARNING", "event_type": "QUEUE_BUFFER_NO_SENDER"})
            return

        err = self._sender.enqueue_buffer(cmd.sample.data, cmd.payload_type, cmd.packetization)
        if err != OK:
            log_event({
                "level": "WARNING",
                "event_type": "QUEUE_BUFFER_FAILED",
                "err": err,
                "media_time_us": cmd.sample.time_us,
                "size": len(cmd.sample),
            })

    def _discard_init_timer(self, role: Role) -> None:
        timer_id = self._init_timers.pop(role, None)
        if timer_id is not None:
            discard_timer(timer_id)
