"""
Looper error taxonomy.

All errors raised by the dispatch substrate derive from LooperError.
UnregisteredHandlerError is a programming error: it propagates out of
Looper.start() and is never caught inside the looper.
"""

from __future__ import annotations


class LooperError(Exception):
    """Base class for looper errors."""


class HandlerRegistrationError(LooperError):
    """Handler registered twice, or an unknown id was unregistered."""


class UnregisteredHandlerError(LooperError):
    """A message reached the head of the queue for an id with no handler."""

    def __init__(self, handler_id: int, payload: object) -> None:
        super().__init__(
            f"message {type(payload).__name__} addressed to unregistered "
            f"handler {handler_id}"
        )
        self.handler_id = handler_id
        self.payload = payload


class LooperStalled(LooperError):
    """A manual clock was asked to wait with nothing scheduled."""


class LooperStateError(LooperError):
    """start() called on a running looper, or similar misuse."""
