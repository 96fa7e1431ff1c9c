"""
Timed message queue and single-threaded dispatcher.

Responsibilities:
- Accept messages for a handler id with a delivery delay (thread safe)
- Deliver them in non-decreasing scheduled-time order, FIFO for ties
- Run dispatch on the calling thread or on a dedicated thread
- Own the handler registry

Guarantees:
- Exactly one handler callback runs at a time
- Negative delays are clamped: nothing is ever scheduled into the past
- After stop(), no further message is delivered
- A message whose target is not registered when it reaches the head of
  the queue raises UnregisteredHandlerError out of start()

Non-responsibilities:
- No cancellation of posted messages
- No knowledge of payload types
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Any

from looper.clock import Clock, MonotonicClock
from looper.errors import LooperStateError, UnregisteredHandlerError
from looper.handler import Handler
from looper.message import HandlerId, Message
from looper.registry import HandlerRegistry
from observability.logger import log_event
from spec import LOOPER_THREAD_NAME


class Looper:
    """
    Explicitly constructed dispatcher, passed by reference to every
    component that needs to post or register.
    """

    def __init__(self, *, clock: Clock | None = None, name: str = LOOPER_THREAD_NAME) -> None:
        self._clock: Clock = clock or MonotonicClock()
        self._name = name
        self._cond = threading.Condition()
        self._queue: list[Message] = []
        self._seq = itertools.count()
        self._registry = HandlerRegistry()

        self._running = False
        self._stop_requested = False
        self._thread: threading.Thread | None = None
        self._stopped_event = threading.Event()
        self._failure: BaseException | None = None

        self.delivered_count = 0

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def now_us(self) -> int:
        return self._clock.now_us()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_handler(self, handler: Handler) -> HandlerId:
        with self._cond:
            handler_id = self._registry.register(handler)
        handler.on_registered(self, handler_id)
        log_event({
            "level": "DEBUG",
            "event_type": "HANDLER_REGISTERED",
            "looper": self._name,
            "handler_id": handler_id,
            "handler": type(handler).__name__,
        })
        return handler_id

    def unregister_handler(self, handler_id: HandlerId) -> None:
        with self._cond:
            handler = self._registry.unregister(handler_id)
        handler.on_unregistered()
        log_event({
            "level": "DEBUG",
            "event_type": "HANDLER_UNREGISTERED",
            "looper": self._name,
            "handler_id": handler_id,
            "handler": type(handler).__name__,
        })

    def is_registered(self, handler_id: HandlerId) -> bool:
        with self._cond:
            return handler_id in self._registry

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post(self, target: HandlerId, payload: Any, delay_us: int = 0) -> None:
        """
        Enqueue payload for target at now + delay_us.

        delay_us <= 0 means "as soon as the loop is free". Safe to call
        from any thread.
        """
        with self._cond:
            when_us = self._clock.now_us() + max(delay_us, 0)
            heapq.heappush(
                self._queue,
                Message(when_us=when_us, seq=next(self._seq), target=target, payload=payload),
            )
            self._cond.notify()

    def pending(self) -> int:
        with self._cond:
            return len(self._queue)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, run_on_calling_thread: bool = False) -> None:
        """
        Begin dispatching.

        run_on_calling_thread=True blocks until stop() is called (or a
        handler raises). Otherwise dispatch runs on a daemon thread and
        this returns immediately.
        """
        with self._cond:
            if self._running:
                raise LooperStateError(f"looper {self._name} is already running")
            self._running = True
            self._stop_requested = False
            self._failure = None
            self._stopped_event.clear()

        if run_on_calling_thread:
            try:
                self._loop()
            finally:
                self._mark_stopped()
            return

        self._thread = threading.Thread(
            target=self._thread_main, name=self._name, daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """
        Stop delivering. Pending messages stay queued and are not delivered.

        Safe to call from a handler or from another thread.
        """
        with self._cond:
            self._stop_requested = True
            self._cond.notify_all()

    def wait_stopped(self, timeout_s: float | None = None) -> bool:
        """
        Block until a dedicated-thread looper has stopped.

        Re-raises the exception that terminated dispatch, if any.
        Returns False on timeout.
        """
        if not self._stopped_event.wait(timeout_s):
            return False
        if self._failure is not None:
            raise self._failure
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _thread_main(self) -> None:
        try:
            self._loop()
        except BaseException as exc:  # pylint: disable=broad-exception-caught
            self._failure = exc
            log_event({
                "level": "ERROR",
                "event_type": "LOOPER_FATAL_ERROR",
                "looper": self._name,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
        finally:
            self._mark_stopped()

    def _mark_stopped(self) -> None:
        with self._cond:
            self._running = False
        self._stopped_event.set()

    def _next_message(self) -> tuple[Message, Handler] | None:
        """Wait for the head message to come due. None means stop."""
        with self._cond:
            while True:
                if self._stop_requested:
                    return None

                if not self._queue:
                    self._clock.wait(self._cond, None)
                    continue

                head = self._queue[0]
                now_us = self._clock.now_us()
                if head.when_us > now_us:
                    self._clock.wait(self._cond, head.when_us - now_us)
                    continue

                message = heapq.heappop(self._queue)
                handler = self._registry.lookup(message.target)
                if handler is None:
                    raise UnregisteredHandlerError(message.target, message.payload)
                return message, handler

    def _loop(self) -> None:
        while True:
            nxt = self._next_message()
            if nxt is None:
                return
            message, handler = nxt
            self.delivered_count += 1
            handler.on_message(message)
