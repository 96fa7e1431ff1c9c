"""
Pure orchestrator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs. Time enters only through
  event fields (SampleFetched.now_us).
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from adapters.transport.base import NotifyWhat, TransportMode
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
from orchestrator.enums.state import State
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
from orchestrator.pacing import plan_delivery
from orchestrator.state_dataclass import OrchestratorState
from spec import (
    CONTROL_PORT_OFFSET,
    OK,
    PACING_LATE_THRESHOLD_US,
    PORT_MAX,
    PORT_MIN,
)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
    *,
    level: str = "INFO",
) -> LogEvent:
    return LogEvent(
        event={
            "level": level,
            "event_type": event.event_type.value,
            "decision": decision,
            "receiver_state": state.receiver_state.value,
            "sender_state": state.sender_state.value,
            "shutdown_state": state.shutdown_state.value,
            "details": details or {},
        }
    )


def _state_changed(
    new_state: OrchestratorState,
    event: Event,
    role: str,
    from_state: State,
    to_state: State,
) -> LogEvent:
    return _log(
        new_state,
        event,
        "state_changed",
        {"role": role, "from_state": from_state.value, "to_state": to_state.value},
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    """Side effects first, then logs, then state-change logs."""
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: OrchestratorState, event: Event, reason: str
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}, level="DEBUG"),)


def _begin_stopping(
    state: OrchestratorState, event: Event, reason: str, *, error: bool
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    new_state = replace(
        state,
        shutdown_state=State.STOPPING,
        last_error=reason if error else state.last_error,
    )
    return new_state, _logs_last((
        PostStop(reason=reason),
        _state_changed(new_state, event, "shutdown", state.shutdown_state, State.STOPPING),
    ))


def _unhandled_collaborator_event(
    state: OrchestratorState, event: Event, role: Role, what: NotifyWhat, err: int
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    # Observed and classified, never acted upon.
    return state, (
        _log(
            state,
            event,
            "unhandled_collaborator_event",
            {"role": role.value, "what": what.value, "err": err},
            level="WARNING",
        ),
    )


# =============================================================================
# Stop
# =============================================================================

def _reduce_stop(
    state: OrchestratorState, event: Stop
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.shutdown_state is State.STOPPED:
        return _ignore(state, event, "already_stopped")

    cmds: list[Command] = []
    if state.receiver_active:
        cmds.append(ReleaseReceiver())
    if state.sender_active:
        cmds.append(ReleaseSender())
    if state.source_open:
        cmds.append(ReleaseMediaSource())
    if state.sender_state is not State.IDLE:
        cmds.append(
            RecordMetric(name="samples_scheduled", value=state.samples_scheduled, role=Role.SENDER)
        )
        cmds.append(RecordMetric(name="samples_sent", value=state.samples_sent, role=Role.SENDER))
        cmds.append(RecordMetric(name="late_samples", value=state.late_samples, role=Role.SENDER))
    cmds.append(StopLooper())

    new_state = replace(
        state,
        shutdown_state=State.STOPPED,
        receiver_active=False,
        sender_active=False,
        source_open=False,
    )
    cmds.append(_log(
        new_state,
        event,
        "stop",
        {
            "reason": event.reason,
            "receiver_local_port": state.receiver_local_port,
            "sender_local_port": state.sender_local_port,
        },
    ))
    cmds.append(_state_changed(new_state, event, "shutdown", state.shutdown_state, State.STOPPED))
    return new_state, _logs_last(tuple(cmds))


# =============================================================================
# Receiver role
# =============================================================================

def _reduce_begin_listen(
    state: OrchestratorState, event: BeginListen
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.receiver_state is not State.IDLE:
        return _ignore(state, event, "listen_already_active")

    settings = state.settings
    new_state = replace(
        state,
        receiver_state=State.LISTEN_REQUESTED,
        receiver_active=True,
    )
    cmds: list[Command] = [
        StartReceiver(
            payload_type=settings.rtp_payload_type,
            packetization=settings.packetization,
            media_mode=settings.media_transport,
            control_mode=settings.control_transport,
        ),
        _state_changed(new_state, event, "receiver", state.receiver_state, State.LISTEN_REQUESTED),
    ]
    if state.sender_state is not State.IDLE:
        cmds.append(_log(new_state, event, "dual_mode_unwired"))
    return new_state, _logs_last(tuple(cmds))


def _reduce_receiver_started(
    state: OrchestratorState, event: ReceiverStarted
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.receiver_state is not State.LISTEN_REQUESTED:
        return _ignore(state, event, "receiver_not_requested")

    new_state = replace(
        state,
        receiver_state=State.RECEIVER_INITIALIZING,
        receiver_local_port=event.local_media_port,
    )
    return new_state, _logs_last((
        ReportLocalPort(role=Role.RECEIVER, port=event.local_media_port),
        _state_changed(
            new_state, event, "receiver", state.receiver_state, State.RECEIVER_INITIALIZING
        ),
    ))


def _reduce_receiver_notify(
    state: OrchestratorState, event: ReceiverNotify
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if event.what is not NotifyWhat.INIT_DONE:
        return _unhandled_collaborator_event(state, event, Role.RECEIVER, event.what, event.err)

    if state.receiver_state is not State.RECEIVER_INITIALIZING:
        return _ignore(state, event, "receiver_not_initializing")

    # The outcome is logged only; there is no retry and no connect-back.
    new_state = replace(state, receiver_state=State.RECEIVER_READY)
    return new_state, _logs_last((
        _log(
            new_state,
            event,
            "receiver_init_done",
            {"err": event.err},
            level="INFO" if event.err == OK else "WARNING",
        ),
        _state_changed(new_state, event, "receiver", state.receiver_state, State.RECEIVER_READY),
    ))


# =============================================================================
# Sender role
# =============================================================================

def _connect_rejection(state: OrchestratorState, event: BeginConnect) -> str | None:
    if not event.host:
        return "empty_host"
    if not PORT_MIN <= event.port <= PORT_MAX:
        return "port_out_of_range"
    if (
        state.settings.control_transport is not TransportMode.NONE
        and event.port + CONTROL_PORT_OFFSET > PORT_MAX
    ):
        return "control_port_overflow"
    return None


def _reduce_begin_connect(
    state: OrchestratorState, event: BeginConnect
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.IDLE:
        return _ignore(state, event, "connect_already_active")

    rejection = _connect_rejection(state, event)
    if rejection is not None:
        stop_state, stop_cmds = _begin_stopping(
            state, event, f"connect_rejected:{rejection}", error=True
        )
        return stop_state, _logs_last((
            _log(
                state,
                event,
                "connect_rejected",
                {"host": event.host, "port": event.port, "reason": rejection},
                level="ERROR",
            ),
        ) + stop_cmds)

    new_state = replace(
        state,
        sender_state=State.CONNECT_REQUESTED,
        remote_host=event.host,
        remote_port=event.port,
        source_open=True,
    )
    cmds: list[Command] = [
        OpenMediaSource(locator=state.settings.media_source_locator),
        _state_changed(new_state, event, "sender", state.sender_state, State.CONNECT_REQUESTED),
    ]
    if state.receiver_state is not State.IDLE:
        cmds.append(_log(new_state, event, "dual_mode_unwired"))
    return new_state, _logs_last(tuple(cmds))


def _reduce_source_opened(
    state: OrchestratorState, event: SourceOpened
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.CONNECT_REQUESTED or state.selected_track is not None:
        return _ignore(state, event, "source_not_requested")

    assert state.remote_host is not None and state.remote_port is not None
    settings = state.settings
    new_state = replace(state, selected_track=event.track_index, sender_active=True)
    return new_state, _logs_last((
        StartSender(
            host=state.remote_host,
            media_port=state.remote_port,
            control_port=state.remote_port + CONTROL_PORT_OFFSET,
            media_mode=settings.media_transport,
            control_mode=settings.control_transport,
        ),
        _log(
            new_state,
            event,
            "track_selected",
            {
                "track_index": event.track_index,
                "mime_type": event.mime_type,
                "track_count": event.track_count,
            },
        ),
    ))


def _reduce_sender_started(
    state: OrchestratorState, event: SenderStarted
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.CONNECT_REQUESTED:
        return _ignore(state, event, "sender_not_requested")

    new_state = replace(
        state,
        sender_state=State.SENDER_INITIALIZING,
        sender_local_port=event.local_media_port,
    )
    return new_state, _logs_last((
        ReportLocalPort(role=Role.SENDER, port=event.local_media_port),
        _state_changed(
            new_state, event, "sender", state.sender_state, State.SENDER_INITIALIZING
        ),
    ))


def _reduce_sender_notify(
    state: OrchestratorState, event: SenderNotify
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if event.what is not NotifyWhat.INIT_DONE:
        return _unhandled_collaborator_event(state, event, Role.SENDER, event.what, event.err)

    if state.sender_state is not State.SENDER_INITIALIZING:
        return _ignore(state, event, "sender_not_initializing")

    if event.err != OK:
        stop_state, stop_cmds = _begin_stopping(
            state, event, f"sender_init_failed:{event.err}", error=True
        )
        return stop_state, _logs_last((
            _log(state, event, "sender_init_failed", {"err": event.err}, level="ERROR"),
        ) + stop_cmds)

    new_state = replace(state, sender_state=State.STREAMING)
    return new_state, _logs_last((
        FetchSample(max_sample_size=state.settings.max_sample_size),
        _log(new_state, event, "sender_init_done", {"err": event.err}),
        _state_changed(new_state, event, "sender", state.sender_state, State.STREAMING),
    ))


# =============================================================================
# Pacing loop
# =============================================================================

def _reduce_sample_fetched(
    state: OrchestratorState, event: SampleFetched
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.STREAMING:
        return _ignore(state, event, "not_streaming")

    decision = plan_delivery(state.pacing, event.sample.time_us, event.now_us)
    late = decision.lateness_us > PACING_LATE_THRESHOLD_US
    new_state = replace(
        state,
        pacing=decision.anchor,
        samples_scheduled=state.samples_scheduled + 1,
        late_samples=state.late_samples + (1 if late else 0),
    )
    return new_state, _logs_last((
        ScheduleSendMore(sample=event.sample, delay_us=decision.delay_us),
        _log(
            new_state,
            event,
            "sample_scheduled",
            {
                "media_time_us": event.sample.time_us,
                "when_us": decision.when_us,
                "delay_us": decision.delay_us,
                "size": len(event.sample),
            },
            level="WARNING" if late else "DEBUG",
        ),
    ))


def _reduce_send_more(
    state: OrchestratorState, event: SendMore
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.STREAMING:
        return _ignore(state, event, "not_streaming")

    settings = state.settings
    new_state = replace(state, samples_sent=state.samples_sent + 1)
    return new_state, (
        QueueBuffer(
            sample=event.sample,
            payload_type=settings.rtp_payload_type,
            packetization=settings.packetization,
        ),
        FetchSample(max_sample_size=settings.max_sample_size),
    )


def _reduce_source_exhausted(
    state: OrchestratorState, event: SourceExhausted
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.sender_state is not State.STREAMING:
        return _ignore(state, event, "not_streaming")

    stop_state, stop_cmds = _begin_stopping(state, event, event.reason, error=False)
    return stop_state, _logs_last((
        _log(
            state,
            event,
            "source_exhausted",
            {"reason": event.reason, "samples_sent": state.samples_sent},
        ),
    ) + stop_cmds)


# =============================================================================
# Setup failures
# =============================================================================

def _reduce_setup_failed(
    state: OrchestratorState, event: SetupFailed
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    stop_state, stop_cmds = _begin_stopping(
        state, event, f"{event.role.value.lower()}_setup_failed:{event.reason}", error=True
    )
    return stop_state, _logs_last((
        _log(
            state,
            event,
            "setup_failed",
            {"role": event.role.value, "reason": event.reason},
            level="ERROR",
        ),
    ) + stop_cmds)


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: OrchestratorState, event: Event
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Pure reducer for the streaming session state machine.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Stop is idempotent: a second Stop emits no release commands
    """
    if isinstance(event, Stop):
        return _reduce_stop(state, event)

    if state.shutdown_state is not State.IDLE:
        return _ignore(state, event, "shutting_down")

    if isinstance(event, BeginListen):
        return _reduce_begin_listen(state, event)
    if isinstance(event, ReceiverStarted):
        return _reduce_receiver_started(state, event)
    if isinstance(event, ReceiverNotify):
        return _reduce_receiver_notify(state, event)

    if isinstance(event, BeginConnect):
        return _reduce_begin_connect(state, event)
    if isinstance(event, SourceOpened):
        return _reduce_source_opened(state, event)
    if isinstance(event, SenderStarted):
        return _reduce_sender_started(state, event)
    if isinstance(event, SenderNotify):
        return _reduce_sender_notify(state, event)

    if isinstance(event, SampleFetched):
        return _reduce_sample_fetched(state, event)
    if isinstance(event, SendMore):
        return _reduce_send_more(state, event)
    if isinstance(event, SourceExhausted):
        return _reduce_source_exhausted(state, event)

    if isinstance(event, SetupFailed):
        return _reduce_setup_failed(state, event)

    return _ignore(state, event, "unknown_event")
