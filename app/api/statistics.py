"""Statistics rollup endpoint"""

from fastapi import APIRouter, Depends

from app.dependencies import Services, get_services
from app.models.agent import AgentStatus
from app.models.call import CallStatus

router = APIRouter()


@router.get("")
async def get_statistics(services: Services = Depends(get_services)):
    """Counts by status across agents, groups, calls and live consoles"""
    agents = services.agents.list()
    groups = services.groups.list()
    active_calls = services.router.list_active()

    def agents_with(*statuses):
        return sum(1 for agent in agents if agent.status in statuses)

    def calls_with(status):
        return sum(1 for call in active_calls if call.status == status)

    return {
        "agents": {
            "total": len(agents),
            "available": agents_with(AgentStatus.AVAILABLE),
            "busy": agents_with(AgentStatus.BUSY, AgentStatus.IN_CALL),
            "in_call": agents_with(AgentStatus.IN_CALL),
            "offline": agents_with(AgentStatus.OFFLINE),
        },
        "groups": {
            "total": len(groups),
            "with_overflow": sum(1 for group in groups if group.overflow_enabled),
        },
        "calls": {
            "active": len(active_calls),
            "incoming": calls_with(CallStatus.INCOMING),
            "ringing": calls_with(CallStatus.RINGING),
            "connected": calls_with(CallStatus.CONNECTED),
            "transferred": calls_with(CallStatus.TRANSFERRED),
        },
        "websocket": {
            "connected_agents": len(services.notifications.connected_agents()),
            "connected_supervisors": len(services.notifications.connected_supervisors()),
        },
    }
