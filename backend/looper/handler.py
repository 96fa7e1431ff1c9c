"""
Handler base class.

A handler is a long-lived object that receives messages from exactly one
looper. The looper assigns its id at registration and clears it at
unregistration; while registered, the handler can post to itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from looper.errors import LooperStateError
from looper.message import HandlerId, Message

if TYPE_CHECKING:
    from looper.looper import Looper


class Handler(ABC):
    """
    Message sink registered in a Looper.

    Subclasses implement on_message(). Callbacks always run on the looper's
    dispatch thread, one at a time.
    """

    def __init__(self) -> None:
        self._handler_id: HandlerId | None = None
        self._looper: Looper | None = None

    # ------------------------------------------------------------------
    # Registration hooks (called by Looper only)
    # ------------------------------------------------------------------

    def on_registered(self, looper: Looper, handler_id: HandlerId) -> None:
        self._looper = looper
        self._handler_id = handler_id

    def on_unregistered(self) -> None:
        self._looper = None
        self._handler_id = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def handler_id(self) -> HandlerId | None:
        return self._handler_id

    @property
    def looper(self) -> Looper:
        if self._looper is None:
            raise LooperStateError(f"{type(self).__name__} is not registered")
        return self._looper

    def post(self, payload: Any, delay_us: int = 0) -> None:
        """Post payload to this handler."""
        if self._handler_id is None:
            raise LooperStateError(f"{type(self).__name__} is not registered")
        self.looper.post(self._handler_id, payload, delay_us)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    @abstractmethod
    def on_message(self, message: Message) -> None:
        raise NotImplementedError
