"""Tests for the console WebSocket channel"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.models.agent import AgentStatus


@pytest.fixture
def test_client(app):
    # HTTP requests and sockets must share the application's event loop
    with TestClient(app) as client:
        yield client


def _authenticate_agent(ws, agent_id):
    ws.send_json({"type": "authenticate_agent", "agent_id": agent_id})
    return ws.receive_json()


def _authenticate_supervisor(ws, supervisor_id="supervisor-1"):
    ws.send_json({"type": "authenticate_supervisor", "supervisor_id": supervisor_id})
    return ws.receive_json()


def test_connect_and_ping(test_client):
    with test_client.websocket_connect("/ws") as ws:
        connected = ws.receive_json()
        assert connected["type"] == "connected"
        assert connected["data"]["client_id"]

        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_unknown_and_invalid_messages_are_ignored(test_client):
    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_json({"type": "dance"})
        ws.send_text("not json")
        ws.send_json({"type": "ping"})

        assert ws.receive_json()["type"] == "pong"


def test_authenticate_unknown_agent(test_client):
    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()

        reply = _authenticate_agent(ws, "missing")

        assert reply["type"] == "error"


def test_agent_receives_incoming_call(test_client, make_group, make_agent):
    downtown = make_group("Downtown", "+15550100")
    agent = make_agent("John Doe", group=downtown)

    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        reply = _authenticate_agent(ws, agent.id)
        assert reply["type"] == "authenticated"
        assert reply["data"]["agent_id"] == agent.id

        response = test_client.post(
            "/webhooks/calls/incoming",
            json={"phone_number": "+15550100", "caller_number": "+15550199"},
        )
        assert response.status_code == 200

        incoming = ws.receive_json()
        assert incoming["type"] == "call_incoming"
        assert incoming["data"]["id"] == response.json()["id"]
        assert incoming["data"]["status"] == "ringing"

        status = ws.receive_json()
        assert status["type"] == "agent_status_updated"
        assert status["data"]["status"] == "in_call"


def test_supervisor_receives_directory_changes(test_client):
    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        assert _authenticate_supervisor(ws)["data"]["role"] == "supervisor"

        test_client.post(
            "/groups",
            json={"name": "Downtown", "location": "Main St", "phone_number": "+15550100"},
        )
        test_client.post(
            "/agents",
            json={
                "name": "John Doe",
                "email": "john.doe@example.com",
                "username": "john.doe",
                "password": "password123",
            },
        )

        assert ws.receive_json()["type"] == "group_created"
        created = ws.receive_json()
        assert created["type"] == "agent_created"
        assert created["data"]["username"] == "john.doe"
        assert "timestamp" in created


def test_agent_does_not_receive_supervisor_events(test_client, make_agent):
    agent = make_agent("John Doe", status=AgentStatus.OFFLINE)

    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        _authenticate_agent(ws, agent.id)

        test_client.post(
            "/groups",
            json={"name": "Downtown", "location": "Main St", "phone_number": "+15550100"},
        )
        ws.send_json({"type": "ping"})

        assert ws.receive_json()["type"] == "pong"


def test_deleting_agent_closes_its_session(test_client, make_agent):
    agent = make_agent("John Doe")

    with test_client.websocket_connect("/ws") as ws:
        ws.receive_json()
        _authenticate_agent(ws, agent.id)

        assert test_client.delete(f"/agents/{agent.id}").status_code == 204

        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_statistics_count_connected_consoles(test_client, services, make_agent):
    agent = make_agent("John Doe")

    with test_client.websocket_connect("/ws") as agent_ws, test_client.websocket_connect("/ws") as supervisor_ws:
        agent_ws.receive_json()
        supervisor_ws.receive_json()
        _authenticate_agent(agent_ws, agent.id)
        _authenticate_supervisor(supervisor_ws)

        stats = test_client.get("/statistics").json()

        assert stats["websocket"] == {"connected_agents": 1, "connected_supervisors": 1}
        assert services.notifications.is_agent_connected(agent.id)
