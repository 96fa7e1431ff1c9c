"""
Handler registry.

Maps handler ids to live handlers. Ids are positive, monotonic and never
reused, so a stale id can never alias a newer handler.
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Iterator

from looper.errors import HandlerRegistrationError
from looper.message import HandlerId

if TYPE_CHECKING:
    from looper.handler import Handler


class HandlerRegistry:
    """Arena of handler slots addressed by id."""

    def __init__(self) -> None:
        self._handlers: dict[HandlerId, Handler] = {}
        self._ids = itertools.count(1)

    def register(self, handler: Handler) -> HandlerId:
        if handler.handler_id is not None:
            raise HandlerRegistrationError(
                f"{type(handler).__name__} is already registered "
                f"as {handler.handler_id}"
            )
        handler_id = HandlerId(next(self._ids))
        self._handlers[handler_id] = handler
        return handler_id

    def unregister(self, handler_id: HandlerId) -> Handler:
        handler = self._handlers.pop(handler_id, None)
        if handler is None:
            raise HandlerRegistrationError(f"no handler registered as {handler_id}")
        return handler

    def lookup(self, handler_id: HandlerId) -> Handler | None:
        return self._handlers.get(handler_id)

    def __contains__(self, handler_id: object) -> bool:
        return handler_id in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[HandlerId]:
        return iter(list(self._handlers))
