"""
Service wiring and FastAPI dependency providers
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from app.config import Settings
from app.services.agent_directory import AgentDirectory
from app.services.call_router import CallRouter
from app.services.group_directory import GroupDirectory
from app.services.notifications import NotificationBus
from app.telephony.clients.base import TelephonyClient
from app.telephony.events import TelephonyEventHandler
from app.telephony.gateway import TelephonyGateway, get_telephony_gateway


@dataclass
class Services:
    """Everything a request handler may need, built once per application"""
    settings: Settings
    agents: AgentDirectory
    groups: GroupDirectory
    notifications: NotificationBus
    gateway: TelephonyGateway
    router: CallRouter
    events: TelephonyEventHandler


def build_services(
    settings: Settings,
    telephony_client: Optional[TelephonyClient] = None,
) -> Services:
    agents = AgentDirectory()
    groups = GroupDirectory(agents)
    notifications = NotificationBus(queue_size=settings.notification_queue_size)
    gateway = get_telephony_gateway(settings, client=telephony_client)
    router = CallRouter(
        agents=agents,
        groups=groups,
        gateway=gateway,
        notifications=notifications,
        selection_policy=settings.agent_selection_policy,
    )

    if settings.seed_test_agents:
        agents.seed_test_agents()

    return Services(
        settings=settings,
        agents=agents,
        groups=groups,
        notifications=notifications,
        gateway=gateway,
        router=router,
        events=TelephonyEventHandler(router, notifications),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_agent_directory(request: Request) -> AgentDirectory:
    return get_services(request).agents


def get_group_directory(request: Request) -> GroupDirectory:
    return get_services(request).groups


def get_call_router(request: Request) -> CallRouter:
    return get_services(request).router


def get_notifications(request: Request) -> NotificationBus:
    return get_services(request).notifications


def get_event_handler(request: Request) -> TelephonyEventHandler:
    return get_services(request).events
