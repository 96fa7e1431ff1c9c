# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from looper.errors import HandlerRegistrationError, LooperStateError
from looper.handler import Handler
from looper.looper import Looper
from looper.message import HandlerId, Message
from looper.registry import HandlerRegistry


class Noop(Handler):
    def on_message(self, message: Message) -> None:
        pass


def test_ids_are_positive_and_monotonic():
    looper = Looper()
    ids = [looper.register_handler(Noop()) for _ in range(3)]

    assert ids == sorted(ids)
    assert ids[0] >= 1
    assert len(set(ids)) == 3


def test_ids_are_never_reused_after_unregister():
    looper = Looper()
    first = looper.register_handler(Noop())
    looper.unregister_handler(first)

    second = looper.register_handler(Noop())

    assert second != first
    assert not looper.is_registered(first)
    assert looper.is_registered(second)


def test_registration_hooks_set_and_clear_identity():
    looper = Looper()
    handler = Noop()

    handler_id = looper.register_handler(handler)
    assert handler.handler_id == handler_id
    assert handler.looper is looper

    looper.unregister_handler(handler_id)
    assert handler.handler_id is None
    with pytest.raises(LooperStateError):
        _ = handler.looper


def test_double_register_raises():
    looper = Looper()
    handler = Noop()
    looper.register_handler(handler)

    with pytest.raises(HandlerRegistrationError):
        looper.register_handler(handler)


def test_unregister_unknown_id_raises():
    registry = HandlerRegistry()

    with pytest.raises(HandlerRegistrationError):
        registry.unregister(HandlerId(42))


def test_unregistered_handler_cannot_post_to_itself():
    handler = Noop()

    with pytest.raises(LooperStateError):
        handler.post("anything")


def test_registry_iteration_and_lookup():
    registry = HandlerRegistry()
    a, b = Noop(), Noop()
    id_a = registry.register(a)
    id_b = registry.register(b)

    assert list(registry) == [id_a, id_b]
    assert len(registry) == 2
    assert registry.lookup(id_b) is b
    assert registry.lookup(HandlerId(1000)) is None
