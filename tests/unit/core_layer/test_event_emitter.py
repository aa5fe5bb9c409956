"""
Unit Tests for EventEmitter
"""

import pytest

from tyvaa_broker.core.config import BrokerEvent
from tyvaa_broker.core.events import EventEmitter


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.mark.unit
class TestEventEmitter:

    def test_listeners_called_in_registration_order(self, emitter):
        calls = []
        emitter.on("connected", lambda payload: calls.append("first"))
        emitter.on("connected", lambda payload: calls.append("second"))

        assert emitter.emit("connected") == 2
        assert calls == ["first", "second"]

    def test_payload_passed_through(self, emitter):
        received = []
        emitter.on("queue-purged", received.append)

        emitter.emit("queue-purged", {"queueName": "orders", "messageCount": 3})

        assert received == [{"queueName": "orders", "messageCount": 3}]

    def test_enum_and_string_names_are_equivalent(self, emitter):
        received = []
        emitter.on(BrokerEvent.MESSAGE_PUBLISHED, received.append)

        emitter.emit("message-published", 1)
        emitter.emit(BrokerEvent.MESSAGE_PUBLISHED, 2)

        assert received == [1, 2]
        assert emitter.listener_count("message-published") == 1

    def test_emit_without_listeners(self, emitter):
        assert emitter.emit("error", RuntimeError("x")) == 0

    def test_once_listener_fires_once(self, emitter):
        received = []
        emitter.once("connected", received.append)

        emitter.emit("connected", "a")
        emitter.emit("connected", "b")

        assert received == ["a"]
        assert emitter.listener_count("connected") == 0

    def test_off_removes_listener(self, emitter):
        received = []
        emitter.on("connected", received.append)
        emitter.off("connected", received.append)
        emitter.off("connected", received.append)

        emitter.emit("connected", "a")

        assert received == []

    def test_failing_listener_is_isolated(self, emitter):
        received = []

        def broken(payload):
            raise ValueError("listener bug")

        emitter.on("subscribed", broken)
        emitter.on("subscribed", received.append)

        assert emitter.emit("subscribed", {"consumerTag": "ctag-1"}) == 2
        assert received == [{"consumerTag": "ctag-1"}]

    def test_remove_all_listeners_for_one_event(self, emitter):
        emitter.on("connected", lambda payload: None)
        emitter.once("error", lambda payload: None)

        emitter.remove_all_listeners("connected")

        assert emitter.listener_count("connected") == 0
        assert emitter.listener_count("error") == 1

    def test_remove_all_listeners(self, emitter):
        emitter.on("connected", lambda payload: None)
        emitter.on(BrokerEvent.ERROR, lambda payload: None)

        emitter.remove_all_listeners()

        assert emitter.emit("connected") == 0
        assert emitter.emit("error") == 0

    def test_same_callable_registered_once_twice(self, emitter):
        received = []
        emitter.once("connected", received.append)
        emitter.once("connected", received.append)

        emitter.emit("connected", 1)
        emitter.emit("connected", 2)
        emitter.emit("connected", 3)

        assert received == [1, 1]
        assert emitter.listener_count("connected") == 0

    def test_once_and_on_with_same_callable(self, emitter):
        received = []
        emitter.on("connected", received.append)
        emitter.once("connected", received.append)

        emitter.emit("connected", 1)
        emitter.emit("connected", 2)

        assert received == [1, 1, 2]
        assert emitter.listener_count("connected") == 1

    def test_off_removes_one_registration(self, emitter):
        received = []
        emitter.on("connected", received.append)
        emitter.on("connected", received.append)

        emitter.off("connected", received.append)
        emitter.emit("connected", 1)

        assert received == [1]

    def test_listener_registering_during_emit_waits_for_next_emit(self, emitter):
        received = []

        def register(payload):
            emitter.once("connected", received.append)

        emitter.once("connected", register)

        assert emitter.emit("connected", 1) == 1
        assert received == []
        emitter.emit("connected", 2)
        assert received == [2]
