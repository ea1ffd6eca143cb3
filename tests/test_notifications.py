"""Tests for the notification bus"""

import pytest

from app.services.notifications import CLOSE, ClientRole, NotificationBus


@pytest.fixture
def bus():
    return NotificationBus(queue_size=2)


def _drain(subscriber):
    messages = []
    while not subscriber.queue.empty():
        messages.append(subscriber.queue.get_nowait())
    return messages


def test_publish_by_role(bus):
    agent = bus.connect()
    other_agent = bus.connect()
    supervisor = bus.connect()
    anonymous = bus.connect()
    bus.authenticate_agent(agent.id, "agent-1")
    bus.authenticate_agent(other_agent.id, "agent-2")
    bus.authenticate_supervisor(supervisor.id, "sup-1")

    assert bus.notify_agent("agent-1", "call_incoming", {"id": "call-1"}) == 1
    assert bus.notify_supervisors("call_incoming", {"id": "call-1"}) == 1
    assert bus.broadcast("call_ended", {"id": "call-1"}) == 4

    assert [m["type"] for m in _drain(agent)] == ["call_incoming", "call_ended"]
    assert [m["type"] for m in _drain(other_agent)] == ["call_ended"]
    assert [m["type"] for m in _drain(supervisor)] == ["call_incoming", "call_ended"]
    assert [m["type"] for m in _drain(anonymous)] == ["call_ended"]


def test_message_shape(bus):
    subscriber = bus.connect()

    bus.send_to(subscriber.id, "pong", {})

    message = subscriber.queue.get_nowait()
    assert message["type"] == "pong"
    assert message["data"] == {}
    assert "timestamp" in message


def test_full_queue_drops_events(bus):
    slow = bus.connect()
    fast = bus.connect()

    for n in range(3):
        bus.broadcast("tick", {"n": n})
        _drain(fast)

    assert [m["data"]["n"] for m in _drain(slow)] == [0, 1]


def test_disconnect_agent_closes_every_session(bus):
    first = bus.connect()
    second = bus.connect()
    bus.authenticate_agent(first.id, "agent-1")
    bus.authenticate_agent(second.id, "agent-1")

    assert bus.disconnect_agent("agent-1")

    assert first.queue.get_nowait() is CLOSE
    assert second.queue.get_nowait() is CLOSE
    assert not bus.is_agent_connected("agent-1")
    assert not bus.disconnect_agent("agent-1")


def test_connected_listings(bus):
    agent = bus.connect()
    supervisor = bus.connect()
    bus.authenticate_agent(agent.id, "agent-1")
    bus.authenticate_supervisor(supervisor.id, None)

    assert bus.connected_agents() == ["agent-1"]
    assert bus.connected_supervisors() == [supervisor.id]
    assert supervisor.role == ClientRole.SUPERVISOR

    bus.disconnect(agent.id)
    assert bus.connected_agents() == []
    assert bus.send_to(agent.id, "pong", {}) is False


def test_authenticate_unknown_subscriber(bus):
    assert not bus.authenticate_agent("missing", "agent-1")
    assert not bus.authenticate_supervisor("missing", "sup-1")
