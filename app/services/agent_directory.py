"""In-memory agent directory: identity, status and per-agent statistics"""

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import structlog

from app.models.agent import Agent, AgentStatistics, AgentStatus, utcnow

logger = structlog.get_logger()

# Fields a partial update may touch. status goes through update_status,
# current_call_id and statistics only through reserve_for_call/release.
UPDATABLE_FIELDS = ("name", "email", "username", "password")

TEST_AGENTS = [
    ("agent-001", "John Doe", "john.doe@example.com", "john.doe"),
    ("agent-002", "Jane Smith", "jane.smith@example.com", "jane.smith"),
    ("agent-003", "Bob Wilson", "bob.wilson@example.com", "bob.wilson"),
]


def fold_call_into_statistics(
    stats: AgentStatistics,
    duration_seconds: float,
    now: datetime,
) -> AgentStatistics:
    """Return statistics with one more completed call of the given duration.

    Bucket counters restart at 1 when the previous call falls outside the
    current day, ISO week or month.
    """
    last = stats.last_call_time
    same_day = last is not None and last.date() == now.date()
    same_week = last is not None and last.isocalendar()[:2] == now.isocalendar()[:2]
    same_month = last is not None and (last.year, last.month) == (now.year, now.month)

    total_duration = stats.total_call_duration + duration_seconds
    return AgentStatistics(
        total_calls=stats.total_calls + 1,
        total_call_duration=total_duration,
        average_call_duration=total_duration / (stats.total_calls + 1),
        calls_today=stats.calls_today + 1 if same_day else 1,
        calls_this_week=stats.calls_this_week + 1 if same_week else 1,
        calls_this_month=stats.calls_this_month + 1 if same_month else 1,
        last_call_time=now,
    )


class AgentDirectory:
    """
    Single source of truth for "who can take a call right now".

    The status/current_call_id pair is only written by reserve_for_call and
    release, each of which runs as one step under the directory lock.
    """

    def __init__(self):
        self._agents: Dict[str, Agent] = {}
        self._lock = threading.RLock()

    def create(
        self,
        name: str,
        email: str,
        username: str,
        password: str,
        agent_id: Optional[str] = None,
    ) -> Agent:
        """Create an agent, always OFFLINE with zeroed statistics"""
        agent = Agent(name=name, email=email, username=username, password=password)
        if agent_id:
            agent.id = agent_id

        with self._lock:
            self._agents[agent.id] = agent

        logger.info("Agent created", agent_id=agent.id, name=agent.name)
        return agent

    def get(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def authenticate(self, username: str, password: str) -> Optional[Agent]:
        for agent in self.list():
            if agent.username == username and agent.password == password:
                return agent
        return None

    def list(self) -> List[Agent]:
        with self._lock:
            return list(self._agents.values())

    def list_by_group(self, group_id: str) -> List[Agent]:
        return [agent for agent in self.list() if group_id in agent.group_ids]

    def list_available_by_group(self, group_id: str) -> List[Agent]:
        return [
            agent
            for agent in self.list_by_group(group_id)
            if agent.status == AgentStatus.AVAILABLE
        ]

    def update(self, agent_id: str, **changes) -> Optional[Agent]:
        """Merge profile fields and stamp last_activity; None if unknown"""
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent:
                return None

            for field_name, value in changes.items():
                if value is not None:
                    setattr(agent, field_name, value)
            agent.last_activity = utcnow()
            return agent

    def update_status(self, agent_id: str, status: AgentStatus) -> Optional[Agent]:
        """
        Set an agent's availability.

        Raises ValueError for transitions that would bypass reservation:
        setting IN_CALL directly, or moving an agent that is IN_CALL.
        """
        if status == AgentStatus.IN_CALL:
            raise ValueError("in_call is only set by assigning a call")

        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent:
                return None

            if agent.status == AgentStatus.IN_CALL:
                raise ValueError(
                    f"Agent {agent_id} is in call {agent.current_call_id}"
                )

            agent.status = status
            agent.last_activity = utcnow()

        logger.info("Agent status updated", agent_id=agent_id, status=status.value)
        return agent

    def set_group_ids(self, agent_id: str, group_ids: Iterable[str]) -> Optional[Agent]:
        """Membership side owned by the group directory"""
        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent:
                return None
            agent.group_ids = list(group_ids)
            agent.last_activity = utcnow()
            return agent

    def bind_telephony_identity(self, agent_id: str, identity: str) -> Optional[Agent]:
        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent:
                return None
            agent.telephony_identity = identity
            agent.last_activity = utcnow()

        logger.info("Telephony identity bound", agent_id=agent_id, identity=identity)
        return agent

    def delete(self, agent_id: str) -> bool:
        with self._lock:
            return self._agents.pop(agent_id, None) is not None

    def reserve_for_call(self, agent_id: str, call_id: str) -> bool:
        """Atomically move an AVAILABLE agent to IN_CALL bound to call_id"""
        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent or agent.status != AgentStatus.AVAILABLE:
                return False

            agent.status = AgentStatus.IN_CALL
            agent.current_call_id = call_id
            agent.last_activity = utcnow()

        logger.info("Agent reserved", agent_id=agent_id, call_id=call_id)
        return True

    def release(
        self,
        agent_id: str,
        duration_seconds: float,
        call_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Return an agent to AVAILABLE and fold the call into its statistics.

        Releasing an agent that is not IN_CALL (or, when call_id is given,
        is bound to a different call) is a no-op success, so a retried or
        late release never double counts. Returns False only for an
        unknown agent.
        """
        with self._lock:
            agent = self._agents.get(agent_id)
            if not agent:
                return False

            if agent.status != AgentStatus.IN_CALL:
                return True
            if call_id is not None and agent.current_call_id != call_id:
                return True

            agent.statistics = fold_call_into_statistics(
                agent.statistics, max(duration_seconds, 0.0), now or utcnow()
            )
            agent.status = AgentStatus.AVAILABLE
            agent.current_call_id = None
            agent.last_activity = utcnow()

        logger.info(
            "Agent released",
            agent_id=agent_id,
            call_id=call_id,
            duration=duration_seconds,
        )
        return True

    def seed_test_agents(self) -> None:
        """Create the well-known development agents"""
        for agent_id, name, email, username in TEST_AGENTS:
            if agent_id not in self._agents:
                self.create(
                    name=name,
                    email=email,
                    username=username,
                    password="password123",
                    agent_id=agent_id,
                )
        logger.info("Initialized test agents", count=len(TEST_AGENTS))
