"""Test configuration and fixtures"""

from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.main import create_app
from app.models.agent import Agent, AgentStatus
from app.models.group import Group
from app.telephony.clients.fake import FakeTelephonyClient


def make_settings(**overrides) -> Settings:
    values = {
        "telephony_provider": "fake",
        "telephony_timeout_seconds": 1.0,
        "seed_test_agents": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_telephony():
    return FakeTelephonyClient()


@pytest.fixture
def app(settings, fake_telephony):
    return create_app(settings, telephony_client=fake_telephony)


@pytest.fixture
def services(app):
    """Directories, router and bus of the test application"""
    return app.state.services


@pytest.fixture
def agents(services):
    return services.agents


@pytest.fixture
def groups(services):
    return services.groups


@pytest.fixture
def call_router(services):
    return services.router


@pytest.fixture
async def client(app):
    """Create test client for the application"""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def make_group(services):
    """Create a group routed by phone_number"""
    def _make_group(name: str, phone_number: str, **kwargs) -> Group:
        return services.groups.create(
            name=name,
            location=f"{name} office",
            phone_number=phone_number,
            **kwargs,
        )
    return _make_group


@pytest.fixture
def make_agent(services):
    """Create an agent, put it in a group and set its availability"""
    def _make_agent(
        name: str,
        group: Optional[Group] = None,
        status: AgentStatus = AgentStatus.AVAILABLE,
    ) -> Agent:
        username = name.lower().replace(" ", ".")
        agent = services.agents.create(
            name=name,
            email=f"{username}@example.com",
            username=username,
            password="secret",
        )
        if group:
            services.groups.add_agent(group.id, agent.id)
        if status != AgentStatus.OFFLINE:
            services.agents.update_status(agent.id, status)
            services.groups.recompute_for_agent(agent.id)
        return agent
    return _make_agent


@pytest.fixture
def check_invariant(services):
    """IN_CALL, a bound call id and one live assigned call always agree"""
    def _check():
        live_calls = [call for call in services.router.list_calls() if call.is_live]
        for agent in services.agents.list():
            assigned = [call for call in live_calls if call.assigned_agent_id == agent.id]
            if agent.status == AgentStatus.IN_CALL:
                assert agent.current_call_id is not None
                assert [call.id for call in assigned] == [agent.current_call_id]
            else:
                assert agent.current_call_id is None
                assert assigned == []
    return _check
