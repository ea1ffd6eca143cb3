"""Group entity"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from app.models.agent import utcnow


@dataclass
class GroupStatistics:
    """Derived from current membership, never mutated independently"""
    total_agents: int = 0
    available_agents: int = 0
    busy_agents: int = 0


@dataclass
class Group:
    """Location-based group reachable on one phone number"""
    name: str
    location: str
    phone_number: str  # E.164, unique across groups
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    agent_ids: List[str] = field(default_factory=list)

    # Overflow search order, consulted only when overflow_enabled
    overflow_group_ids: List[str] = field(default_factory=list)
    overflow_enabled: bool = False

    statistics: GroupStatistics = field(default_factory=GroupStatistics)
    created_at: datetime = field(default_factory=utcnow)
