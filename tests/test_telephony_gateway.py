"""Tests for the telephony gateway and its provider clients"""

import pytest

from app.config import Settings
from app.models.call import Call
from app.telephony.clients.base import ConnectionNotFoundError, TelephonyError
from app.telephony.clients.fake import FakeTelephonyClient
from app.telephony.clients.twilio import TwilioTelephonyClient
from app.telephony.gateway import TelephonyGateway, get_telephony_gateway


@pytest.fixture
def fake():
    return FakeTelephonyClient()


@pytest.fixture
def gateway(fake):
    return TelephonyGateway(client=fake, callback_url="https://example.com/events", timeout=0.05)


def _call(incoming_context="ctx-1", connection_id=None):
    return Call(
        phone_number="+15550199",
        group_id="group-1",
        external_incoming_context=incoming_context,
        external_connection_id=connection_id,
    )


@pytest.mark.asyncio
async def test_answer_then_handoff(gateway, fake):
    result = await gateway.answer(_call(), "agent-john")

    assert result.success
    assert result.connection_id == "conn-1"
    assert fake.transfers == [("conn-1", "agent-john")]


@pytest.mark.asyncio
async def test_answer_without_identity_skips_handoff(gateway, fake):
    result = await gateway.answer(_call(), None)

    assert result.success
    assert result.connection_id == "conn-1"
    assert fake.transfers == []


@pytest.mark.asyncio
async def test_answer_requires_incoming_context(gateway, fake):
    result = await gateway.answer(_call(incoming_context=None), "agent-john")

    assert not result.success
    assert fake.answered == []


@pytest.mark.asyncio
async def test_answer_rejected(gateway, fake):
    fake.fail_next("answer")

    result = await gateway.answer(_call(), "agent-john")

    assert not result.success
    assert result.connection_id is None


@pytest.mark.asyncio
async def test_answer_times_out(gateway, fake):
    fake.block("answer")

    result = await gateway.answer(_call(), "agent-john")

    assert not result.success
    assert fake.answered == []


@pytest.mark.asyncio
async def test_handoff_failure_returns_connection(gateway, fake):
    fake.fail_next("transfer")

    result = await gateway.answer(_call(), "agent-john")

    assert not result.success
    assert result.connection_id == "conn-1"


@pytest.mark.asyncio
async def test_hangup(gateway, fake):
    fake.active_connections.add("conn-7")

    assert await gateway.hangup(_call(connection_id="conn-7"))
    assert fake.hangups == ["conn-7"]


@pytest.mark.asyncio
async def test_hangup_without_connection_succeeds(gateway, fake):
    assert await gateway.hangup(_call())
    assert fake.hangups == []


@pytest.mark.asyncio
async def test_hangup_connection_not_found_succeeds(gateway, fake):
    fake.fail_next("hangup", ConnectionNotFoundError("Call not found", code="8522"))

    assert await gateway.hangup(_call(connection_id="conn-7"))


@pytest.mark.asyncio
async def test_hangup_rejected(gateway, fake):
    fake.active_connections.add("conn-7")
    fake.fail_next("hangup", TelephonyError("Forbidden", code="403"))

    assert not await gateway.hangup(_call(connection_id="conn-7"))
    assert "conn-7" in fake.active_connections


@pytest.mark.asyncio
async def test_hangup_times_out(gateway, fake):
    fake.active_connections.add("conn-7")
    fake.block("hangup")

    assert not await gateway.hangup(_call(connection_id="conn-7"))


@pytest.mark.asyncio
async def test_local_only_mode():
    gateway = TelephonyGateway(client=None, callback_url="http://localhost:8000/events")

    assert not gateway.is_configured
    assert gateway.provider == "none"
    assert (await gateway.answer(_call(), "agent-john")).success
    assert await gateway.hangup(_call(connection_id="conn-7"))


def test_gateway_factory_providers():
    fake = get_telephony_gateway(Settings(_env_file=None, telephony_provider="fake"))
    none = get_telephony_gateway(Settings(_env_file=None, telephony_provider="none"))
    unconfigured = get_telephony_gateway(
        Settings(_env_file=None, telephony_provider="twilio", twilio_account_sid="", twilio_auth_token="")
    )

    assert isinstance(fake.client, FakeTelephonyClient)
    assert none.client is None
    assert unconfigured.client is None
    assert not unconfigured.is_configured


def test_gateway_factory_builds_twilio_client():
    settings = Settings(
        _env_file=None,
        telephony_provider="twilio",
        twilio_account_sid="AC" + "0" * 32,
        twilio_auth_token="token",
        telephony_callback_base_url="https://queue.example.com",
        telephony_timeout_seconds=3.0,
    )

    gateway = get_telephony_gateway(settings)

    assert isinstance(gateway.client, TwilioTelephonyClient)
    assert gateway.provider == "twilio"
    assert gateway.callback_url == "https://queue.example.com/webhooks/twilio/status"
    assert gateway.timeout == 3.0


def test_gateway_factory_rejects_unknown_provider():
    with pytest.raises(ValueError):
        get_telephony_gateway(Settings(_env_file=None, telephony_provider="carrier-pigeon"))
