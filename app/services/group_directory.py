"""In-memory group directory: membership, phone routing and overflow graph"""

import threading
from typing import Dict, List, Optional

import structlog

from app.models.agent import AgentStatus
from app.models.group import Group, GroupStatistics
from app.services.agent_directory import AgentDirectory

logger = structlog.get_logger()

UPDATABLE_FIELDS = ("name", "location", "phone_number", "overflow_enabled", "overflow_group_ids")


class DuplicatePhoneNumberError(ValueError):
    """Phone number already routes to another group"""


class GroupDirectory:
    """Groups keyed by id, with a unique phone-number-to-group mapping"""

    def __init__(self, agents: AgentDirectory):
        self.agents = agents
        self._groups: Dict[str, Group] = {}
        self._lock = threading.RLock()

    def _check_phone_number(self, phone_number: str, exclude_id: Optional[str] = None):
        existing = self.find_by_phone_number(phone_number)
        if existing and existing.id != exclude_id:
            raise DuplicatePhoneNumberError(
                f"Phone number {phone_number} already belongs to group {existing.id}"
            )

    def create(
        self,
        name: str,
        location: str,
        phone_number: str,
        overflow_enabled: bool = False,
        overflow_group_ids: Optional[List[str]] = None,
    ) -> Group:
        with self._lock:
            self._check_phone_number(phone_number)
            group = Group(
                name=name,
                location=location,
                phone_number=phone_number,
                overflow_enabled=overflow_enabled,
                overflow_group_ids=list(overflow_group_ids or []),
            )
            self._groups[group.id] = group

        logger.info(
            "Group created",
            group_id=group.id,
            name=group.name,
            phone_number=group.phone_number,
        )
        return group

    def get(self, group_id: str) -> Optional[Group]:
        return self._groups.get(group_id)

    def list(self) -> List[Group]:
        with self._lock:
            return list(self._groups.values())

    def find_by_phone_number(self, phone_number: str) -> Optional[Group]:
        for group in self.list():
            if group.phone_number == phone_number:
                return group
        return None

    def update(self, group_id: str, **changes) -> Optional[Group]:
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        with self._lock:
            group = self._groups.get(group_id)
            if not group:
                return None

            if changes.get("phone_number"):
                self._check_phone_number(changes["phone_number"], exclude_id=group_id)

            for field_name, value in changes.items():
                if value is None:
                    continue
                if field_name == "overflow_group_ids":
                    value = list(value)
                setattr(group, field_name, value)
            return group

    def delete(self, group_id: str) -> bool:
        """Delete a group and strip it from every member agent"""
        with self._lock:
            if group_id not in self._groups:
                return False

            for agent in self.agents.list_by_group(group_id):
                self.agents.set_group_ids(
                    agent.id, [gid for gid in agent.group_ids if gid != group_id]
                )
            del self._groups[group_id]

        logger.info("Group deleted", group_id=group_id)
        return True

    def add_agent(self, group_id: str, agent_id: str) -> bool:
        with self._lock:
            group = self._groups.get(group_id)
            agent = self.agents.get(agent_id)
            if not group or not agent:
                return False

            if agent_id not in group.agent_ids:
                group.agent_ids.append(agent_id)
            if group_id not in agent.group_ids:
                self.agents.set_group_ids(agent_id, agent.group_ids + [group_id])

            self.recompute_statistics(group_id)
        return True

    def remove_agent(self, group_id: str, agent_id: str) -> bool:
        with self._lock:
            group = self._groups.get(group_id)
            agent = self.agents.get(agent_id)
            if not group or not agent:
                return False

            group.agent_ids = [aid for aid in group.agent_ids if aid != agent_id]
            self.agents.set_group_ids(
                agent_id, [gid for gid in agent.group_ids if gid != group_id]
            )

            self.recompute_statistics(group_id)
        return True

    def evict_agent(self, agent_id: str) -> List[str]:
        """Remove an agent from every group it belongs to"""
        evicted = []
        for group in self.list():
            if agent_id in group.agent_ids:
                self.remove_agent(group.id, agent_id)
                evicted.append(group.id)
        return evicted

    def set_overflow_group_ids(self, group_id: str, overflow_group_ids: List[str]) -> bool:
        with self._lock:
            group = self._groups.get(group_id)
            if not group:
                return False
            group.overflow_group_ids = list(overflow_group_ids)
        return True

    def set_overflow_enabled(self, group_id: str, enabled: bool) -> bool:
        with self._lock:
            group = self._groups.get(group_id)
            if not group:
                return False
            group.overflow_enabled = enabled
        return True

    def recompute_statistics(self, group_id: str) -> Optional[GroupStatistics]:
        group = self._groups.get(group_id)
        if not group:
            return None

        members = self.agents.list_by_group(group_id)
        group.statistics = GroupStatistics(
            total_agents=len(members),
            available_agents=sum(
                1 for agent in members if agent.status == AgentStatus.AVAILABLE
            ),
            busy_agents=sum(
                1
                for agent in members
                if agent.status in (AgentStatus.BUSY, AgentStatus.IN_CALL)
            ),
        )
        return group.statistics

    def recompute_for_agent(self, agent_id: str) -> None:
        agent = self.agents.get(agent_id)
        if not agent:
            return
        for group_id in agent.group_ids:
            self.recompute_statistics(group_id)

    def overflow_candidates(self, group_id: str) -> List[Group]:
        """
        Overflow groups to try, in configured order.

        Only groups that exist and currently have an available agent are
        returned; the first one listed wins. Empty when overflow is off.
        """
        group = self._groups.get(group_id)
        if not group or not group.overflow_enabled:
            return []

        candidates = []
        for overflow_id in group.overflow_group_ids:
            overflow_group = self._groups.get(overflow_id)
            if overflow_group is None or overflow_id == group_id:
                continue
            if self.agents.list_available_by_group(overflow_id):
                candidates.append(overflow_group)
        return candidates
