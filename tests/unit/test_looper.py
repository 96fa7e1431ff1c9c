# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import pytest

from looper.clock import ManualClock
from looper.errors import LooperStalled, LooperStateError, UnregisteredHandlerError
from looper.handler import Handler
from looper.looper import Looper
from looper.message import HandlerId, Message


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

class Recorder(Handler):
    """Records (now_us, payload); stops the looper on "stop"."""

    def __init__(self) -> None:
        super().__init__()
        self.seen: list[tuple[int, Any]] = []

    def on_message(self, message: Message) -> None:
        self.seen.append((self.looper.now_us(), message.payload))
        if message.payload == "stop":
            self.looper.stop()


def manual_looper(start_us: int = 0) -> tuple[Looper, ManualClock, Recorder]:
    clock = ManualClock(start_us)
    looper = Looper(clock=clock)
    rec = Recorder()
    looper.register_handler(rec)
    return looper, clock, rec


def run(looper: Looper) -> None:
    looper.start(run_on_calling_thread=True)


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------

def test_messages_are_delivered_in_deadline_order():
    looper, _, rec = manual_looper()
    assert rec.handler_id is not None

    looper.post(rec.handler_id, "c", 300)
    looper.post(rec.handler_id, "a", 100)
    looper.post(rec.handler_id, "b", 200)
    looper.post(rec.handler_id, "stop", 400)

    run(looper)

    assert rec.seen == [(100, "a"), (200, "b"), (300, "c"), (400, "stop")]


def test_equal_deadlines_are_fifo():
    looper, _, rec = manual_looper()
    assert rec.handler_id is not None

    for name in ("first", "second", "third"):
        looper.post(rec.handler_id, name, 50)
    looper.post(rec.handler_id, "stop", 50)

    run(looper)

    assert [p for _, p in rec.seen] == ["first", "second", "third", "stop"]


def test_negative_delay_is_clamped_to_now():
    looper, clock, rec = manual_looper(start_us=1_000)
    assert rec.handler_id is not None

    looper.post(rec.handler_id, "later", 10)
    looper.post(rec.handler_id, "late", -500)
    looper.post(rec.handler_id, "stop", 20)

    run(looper)

    # Delivered immediately, never scheduled into the past.
    assert rec.seen[0] == (1_000, "late")
    assert rec.seen[1] == (1_010, "later")
    assert clock.now_us() == 1_020


def test_post_from_handler_uses_handler_post():
    looper = Looper(clock=ManualClock())

    class Ping(Handler):
        def __init__(self) -> None:
            super().__init__()
            self.count = 0

        def on_message(self, message: Message) -> None:
            self.count += 1
            if self.count < 3:
                self.post("again", delay_us=5)
            else:
                self.looper.stop()

    ping = Ping()
    looper.register_handler(ping)
    ping.post("go")

    run(looper)

    assert ping.count == 3
    assert looper.now_us() == 10


# ---------------------------------------------------------------------
# Stop
# ---------------------------------------------------------------------

def test_stop_prevents_further_delivery():
    looper, _, rec = manual_looper()
    assert rec.handler_id is not None

    looper.post(rec.handler_id, "stop")
    looper.post(rec.handler_id, "never")

    run(looper)

    assert [p for _, p in rec.seen] == ["stop"]
    assert looper.pending() == 1
    assert not looper.is_running


def test_start_twice_raises():
    looper = Looper()
    looper.register_handler(Recorder())

    looper.start()
    try:
        with pytest.raises(LooperStateError):
            looper.start()
    finally:
        looper.stop()
        looper.wait_stopped(2.0)


def test_dedicated_thread_looper_delivers_and_stops():
    looper = Looper()
    rec = Recorder()
    looper.register_handler(rec)
    assert rec.handler_id is not None

    looper.start()
    looper.post(rec.handler_id, "hello")
    looper.post(rec.handler_id, "stop", 1_000)

    assert looper.wait_stopped(5.0)
    assert [p for _, p in rec.seen] == ["hello", "stop"]


# ---------------------------------------------------------------------
# Fatal conditions
# ---------------------------------------------------------------------

def test_message_for_unregistered_handler_is_fatal():
    looper = Looper(clock=ManualClock())
    looper.post(HandlerId(99), "orphan")

    with pytest.raises(UnregisteredHandlerError) as excinfo:
        run(looper)

    assert excinfo.value.handler_id == 99
    assert not looper.is_running


def test_message_for_handler_unregistered_after_post_is_fatal():
    looper, _, rec = manual_looper()
    handler_id = rec.handler_id
    assert handler_id is not None

    looper.post(handler_id, "too late", 10)
    looper.unregister_handler(handler_id)

    with pytest.raises(UnregisteredHandlerError):
        run(looper)


def test_manual_clock_with_empty_queue_stalls():
    looper, _, _ = manual_looper()

    with pytest.raises(LooperStalled):
        run(looper)
