"""Agent entity"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentStatus(str, enum.Enum):
    """Agent availability"""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"
    IN_CALL = "in_call"


@dataclass
class AgentStatistics:
    """Counters folded in when an agent is released from a call"""
    total_calls: int = 0
    total_call_duration: float = 0.0  # seconds
    average_call_duration: float = 0.0
    calls_today: int = 0
    calls_this_week: int = 0
    calls_this_month: int = 0
    last_call_time: Optional[datetime] = None


@dataclass
class Agent:
    """Call center agent"""
    name: str
    email: str
    username: str
    password: str  # plain text, login is not hardened
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: AgentStatus = AgentStatus.OFFLINE
    group_ids: List[str] = field(default_factory=list)
    current_call_id: Optional[str] = None

    # Identity of the agent's own telephony session, bound once it initializes
    telephony_identity: Optional[str] = None

    statistics: AgentStatistics = field(default_factory=AgentStatistics)
    last_activity: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)
