"""Tests for the Twilio telephony client against a mocked REST client"""

from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from twilio.base.exceptions import TwilioRestException

from app.config import Settings
from app.main import create_app
from app.models.agent import AgentStatus
from app.models.call import CallStatus
from app.telephony.clients.base import ConnectionNotFoundError, TelephonyError
from app.telephony.clients.twilio import TwilioTelephonyClient


def _rest_error(status, code, msg="Twilio error"):
    return TwilioRestException(status, "/2010-04-01/Accounts/AC/Calls/CA123.json", msg=msg, code=code)


@pytest.fixture
def rest():
    rest = MagicMock()
    rest.calls.return_value.update.return_value = MagicMock(sid="CA123")
    return rest


@pytest.fixture
def twilio_client(rest):
    client = TwilioTelephonyClient("AC" + "0" * 32, "token", hold_message="Hold please")
    client.client = rest
    return client


def _update_kwargs(rest):
    return rest.calls.return_value.update.call_args.kwargs


@pytest.mark.asyncio
async def test_answer_puts_caller_on_hold(twilio_client, rest):
    connection_id = await twilio_client.answer("CA123", "https://queue.example.com/webhooks/twilio/status")

    assert connection_id == "CA123"
    rest.calls.assert_called_with("CA123")
    kwargs = _update_kwargs(rest)
    assert "<Say>Hold please</Say>" in kwargs["twiml"]
    assert "<Pause" in kwargs["twiml"]
    assert kwargs["status_callback"] == "https://queue.example.com/webhooks/twilio/status"
    assert kwargs["status_callback_method"] == "POST"


@pytest.mark.asyncio
async def test_transfer_dials_agent_client(twilio_client, rest):
    await twilio_client.transfer_to_identity("CA123", "agent-john")

    rest.calls.assert_called_with("CA123")
    twiml = _update_kwargs(rest)["twiml"]
    assert "<Dial>" in twiml
    assert "<Client>agent-john</Client>" in twiml


@pytest.mark.asyncio
async def test_hangup_completes_call(twilio_client, rest):
    await twilio_client.hangup("CA123")

    assert _update_kwargs(rest) == {"status": "completed"}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,code",
    [
        (404, 20404),
        (400, 21220),
    ],
)
async def test_gone_call_is_connection_not_found(twilio_client, rest, status, code):
    rest.calls.return_value.update.side_effect = _rest_error(status, code)

    with pytest.raises(ConnectionNotFoundError) as exc_info:
        await twilio_client.hangup("CA123")

    assert exc_info.value.code == str(code)


@pytest.mark.asyncio
async def test_other_errors_are_telephony_errors(twilio_client, rest):
    rest.calls.return_value.update.side_effect = _rest_error(401, 20003, "Authenticate")

    with pytest.raises(TelephonyError) as exc_info:
        await twilio_client.transfer_to_identity("CA123", "agent-john")

    assert not isinstance(exc_info.value, ConnectionNotFoundError)
    assert exc_info.value.code == "20003"


@pytest.mark.asyncio
async def test_caller_hangup_releases_agent(twilio_client, rest):
    def update(**kwargs):
        # Twilio refuses to complete a call that already completed
        if kwargs.get("status") == "completed":
            raise _rest_error(400, 21220, "Call is not in-progress. Cannot redirect.")
        return MagicMock(sid="CA123")

    rest.calls.return_value.update.side_effect = update

    app = create_app(Settings(_env_file=None, telephony_provider="twilio"), telephony_client=twilio_client)
    services = app.state.services
    group = services.groups.create(name="Downtown", location="Main St", phone_number="+15550100")
    agent = services.agents.create(
        name="John Doe",
        email="john.doe@example.com",
        username="john.doe",
        password="password123",
    )
    services.groups.add_agent(group.id, agent.id)
    services.agents.update_status(agent.id, AgentStatus.AVAILABLE)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        await client.post(
            "/webhooks/twilio/voice",
            data={"CallSid": "CA123", "From": "+15550199", "To": "+15550100"},
        )
        call = services.router.find_by_incoming_context("CA123")
        answered = await client.post(f"/calls/{call.id}/answer", json={"agent_id": agent.id})
        assert answered.status_code == 200
        assert call.status == CallStatus.CONNECTED

        response = await client.post(
            "/webhooks/twilio/status",
            data={"CallSid": "CA123", "CallStatus": "completed"},
        )

    assert response.status_code == 200
    assert call.status == CallStatus.ENDED
    assert agent.status == AgentStatus.AVAILABLE
    assert agent.current_call_id is None
    assert agent.statistics.total_calls == 1
