"""Domain entities"""

from app.models.agent import Agent, AgentStatistics, AgentStatus
from app.models.group import Group, GroupStatistics
from app.models.call import Call, CallStatus, LIVE_STATUSES

__all__ = [
    "Agent",
    "AgentStatistics",
    "AgentStatus",
    "Group",
    "GroupStatistics",
    "Call",
    "CallStatus",
    "LIVE_STATUSES",
]
