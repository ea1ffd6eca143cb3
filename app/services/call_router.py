"""
Call router: the call state machine and agent assignment.

Calls move INCOMING -> RINGING -> CONNECTED -> ENDED, with TRANSFERRED as
a reassignment to another agent while live. Agent status changes caused by
calls go through AgentDirectory.reserve_for_call and release only.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from app.models.agent import Agent, utcnow
from app.models.call import Call, CallStatus
from app.schemas.agent import AgentResponse
from app.schemas.call import CallResponse
from app.services.agent_directory import AgentDirectory
from app.services.group_directory import GroupDirectory
from app.services.notifications import NotificationBus
from app.telephony.gateway import TelephonyGateway

logger = structlog.get_logger()


class CallOperationError(str, enum.Enum):
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    GATEWAY_FAILURE = "gateway_failure"


@dataclass
class CallOperationResult:
    """Outcome of a mutating call operation"""
    ok: bool
    call: Optional[Call] = None
    error: Optional[CallOperationError] = None
    detail: str = ""

    @classmethod
    def success(cls, call: Call) -> "CallOperationResult":
        return cls(ok=True, call=call)

    @classmethod
    def failure(
        cls,
        error: CallOperationError,
        detail: str,
        call: Optional[Call] = None,
    ) -> "CallOperationResult":
        return cls(ok=False, call=call, error=error, detail=detail)


class FirstAvailablePolicy:
    """Offer the call to available agents in listing order"""

    def order(self, group_id: str, agents: List[Agent]) -> List[Agent]:
        return agents


class RoundRobinPolicy:
    """Rotate the starting agent per group on every assignment attempt"""

    def __init__(self):
        self._cursor: Dict[str, int] = {}

    def order(self, group_id: str, agents: List[Agent]) -> List[Agent]:
        if not agents:
            return agents
        start = self._cursor.get(group_id, 0) % len(agents)
        self._cursor[group_id] = start + 1
        return agents[start:] + agents[:start]


SELECTION_POLICIES = {
    "first_available": FirstAvailablePolicy,
    "round_robin": RoundRobinPolicy,
}


def call_payload(call: Call) -> Dict[str, Any]:
    return CallResponse.model_validate(call).model_dump(mode="json")


def agent_payload(agent: Agent) -> Dict[str, Any]:
    return AgentResponse.model_validate(agent).model_dump(mode="json")


class CallRouter:
    """Owns every Call record; calls are never deleted, only ended"""

    def __init__(
        self,
        agents: AgentDirectory,
        groups: GroupDirectory,
        gateway: TelephonyGateway,
        notifications: NotificationBus,
        selection_policy: str = "first_available",
    ):
        policy_class = SELECTION_POLICIES.get(selection_policy)
        if not policy_class:
            raise ValueError(f"Unknown agent selection policy: {selection_policy}")

        self.agents = agents
        self.groups = groups
        self.gateway = gateway
        self.notifications = notifications
        self.selection = policy_class()
        self._calls: Dict[str, Call] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, call_id: str) -> asyncio.Lock:
        # Serializes operations on one call across gateway awaits
        call = self._calls.get(call_id)
        if call is not None and call.status == CallStatus.ENDED:
            # Every operation rejects an ENDED call, so nothing is kept for it
            return self._locks.get(call_id) or asyncio.Lock()
        return self._locks.setdefault(call_id, asyncio.Lock())

    # Assignment

    def _reserve_in_group(self, call: Call, group_id: str) -> Optional[Agent]:
        available = self.agents.list_available_by_group(group_id)
        for agent in self.selection.order(group_id, available):
            # Another call may have taken the agent since the listing
            if self.agents.reserve_for_call(agent.id, call.id):
                return agent
        return None

    def _assign(self, call: Call) -> Optional[Agent]:
        agent = self._reserve_in_group(call, call.group_id)
        if agent:
            return agent

        for overflow_group in self.groups.overflow_candidates(call.original_group_id):
            agent = self._reserve_in_group(call, overflow_group.id)
            if agent:
                logger.info(
                    "Call routed to overflow group",
                    call_id=call.id,
                    from_group_id=call.original_group_id,
                    to_group_id=overflow_group.id,
                )
                call.group_id = overflow_group.id
                return agent
        return None

    async def handle_incoming_call(
        self,
        destination_number: str,
        caller_number: str,
        external_context: Optional[Dict[str, Optional[str]]] = None,
    ) -> Optional[Call]:
        """
        Create a call for the group owning destination_number and try to
        assign it. Returns None, without creating a call, for an unmapped
        number. A call nobody can take stays INCOMING for supervisors.
        """
        group = self.groups.find_by_phone_number(destination_number)
        if not group:
            logger.warning("No group for destination number", destination_number=destination_number)
            return None

        external_context = external_context or {}
        call = Call(
            phone_number=caller_number,
            group_id=group.id,
            destination_number=destination_number,
            external_connection_id=external_context.get("connection_id"),
            external_incoming_context=external_context.get("incoming_context"),
        )
        self._calls[call.id] = call
        logger.info(
            "Incoming call",
            call_id=call.id,
            group_id=group.id,
            caller=caller_number,
        )

        agent = self._assign(call)
        if not agent:
            logger.warning("No available agent for call", call_id=call.id, group_id=group.id)
            self.notifications.notify_supervisors("call_unassigned", call_payload(call))
            return call

        call.assigned_agent_id = agent.id
        call.status = CallStatus.RINGING
        self.groups.recompute_for_agent(agent.id)

        logger.info("Call assigned", call_id=call.id, agent_id=agent.id, group_id=call.group_id)
        self.notifications.notify_agent(agent.id, "call_incoming", call_payload(call))
        self.notifications.notify_supervisors("call_incoming", call_payload(call))
        self._notify_agent_status(agent.id)
        return call

    # Lifecycle

    async def answer_call(self, call_id: str, agent_id: str) -> CallOperationResult:
        call = self._calls.get(call_id)
        if not call:
            return CallOperationResult.failure(CallOperationError.NOT_FOUND, "Call not found")

        async with self._lock_for(call_id):
            if call.assigned_agent_id != agent_id:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Call is not assigned to this agent", call
                )
            if call.status != CallStatus.RINGING:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE,
                    f"Call is {call.status.value}, not ringing",
                    call,
                )

            agent = self.agents.get(agent_id)
            result = await self.gateway.answer(call, agent.telephony_identity if agent else None)
            if result.connection_id:
                call.external_connection_id = result.connection_id

            if not result.success:
                return CallOperationResult.failure(
                    CallOperationError.GATEWAY_FAILURE,
                    result.error or "Telephony answer failed",
                    call,
                )

            call.status = CallStatus.CONNECTED
            call.answered_at = utcnow()
            call.wait_time = (call.answered_at - call.start_time).total_seconds()

        logger.info("Call answered", call_id=call.id, agent_id=agent_id, wait_time=call.wait_time)
        self.notifications.broadcast("call_answered", call_payload(call))
        self._notify_agent_status(agent_id)
        return CallOperationResult.success(call)

    async def end_call(self, call_id: str, agent_id: Optional[str] = None) -> CallOperationResult:
        """
        Hang up and release the assigned agent.

        A failed hangup leaves the call and agent untouched. Ending an
        ENDED call is rejected, so an agent is released at most once.
        """
        call = self._calls.get(call_id)
        if not call:
            return CallOperationResult.failure(CallOperationError.NOT_FOUND, "Call not found")

        async with self._lock_for(call_id):
            if call.status == CallStatus.ENDED:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Call already ended", call
                )
            if agent_id and call.assigned_agent_id != agent_id:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Call is not assigned to this agent", call
                )

            if not await self.gateway.hangup(call):
                return CallOperationResult.failure(
                    CallOperationError.GATEWAY_FAILURE, "Telephony hangup failed", call
                )

            call.status = CallStatus.ENDED
            call.end_time = utcnow()
            call.duration = (call.end_time - call.start_time).total_seconds()

            assigned_agent_id = call.assigned_agent_id
            if assigned_agent_id:
                self.agents.release(assigned_agent_id, call.duration, call_id=call.id)
                self.groups.recompute_for_agent(assigned_agent_id)
            self.groups.recompute_statistics(call.group_id)

        # ENDED is terminal; late waiters still hold the old lock and see ENDED
        self._locks.pop(call_id, None)

        logger.info("Call ended", call_id=call.id, agent_id=assigned_agent_id, duration=call.duration)
        self.notifications.broadcast("call_ended", call_payload(call))
        if assigned_agent_id:
            self._notify_agent_status(assigned_agent_id)
        return CallOperationResult.success(call)

    async def transfer_call(
        self,
        call_id: str,
        from_agent_id: str,
        to_agent_id: str,
    ) -> CallOperationResult:
        """Move a live call to another available agent without touching telephony"""
        call = self._calls.get(call_id)
        if not call:
            return CallOperationResult.failure(CallOperationError.NOT_FOUND, "Call not found")
        if not self.agents.get(to_agent_id):
            return CallOperationResult.failure(CallOperationError.NOT_FOUND, "Target agent not found")

        async with self._lock_for(call_id):
            if call.assigned_agent_id != from_agent_id:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Call is not assigned to this agent", call
                )
            if not call.is_live:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE,
                    f"Call is {call.status.value}, cannot transfer",
                    call,
                )
            if from_agent_id == to_agent_id:
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Cannot transfer a call to the same agent", call
                )

            # Reserve the target first so a busy target leaves the origin bound
            if not self.agents.reserve_for_call(to_agent_id, call.id):
                return CallOperationResult.failure(
                    CallOperationError.INVALID_STATE, "Target agent is not available", call
                )

            elapsed = (utcnow() - call.start_time).total_seconds()
            self.agents.release(from_agent_id, elapsed, call_id=call.id)
            call.assigned_agent_id = to_agent_id
            call.status = CallStatus.TRANSFERRED
            self.groups.recompute_for_agent(from_agent_id)
            self.groups.recompute_for_agent(to_agent_id)

        logger.info(
            "Call transferred",
            call_id=call.id,
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
        )
        payload = call_payload(call)
        self.notifications.notify_agent(from_agent_id, "call_transferred_out", payload)
        self.notifications.notify_agent(to_agent_id, "call_transferred_in", payload)
        self.notifications.notify_supervisors("call_transferred", payload)
        self._notify_agent_status(from_agent_id)
        self._notify_agent_status(to_agent_id)
        return CallOperationResult.success(call)

    def clear_external_connection(self, call_id: str) -> Optional[Call]:
        """Control of the call moved to the agent's own telephony session"""
        call = self._calls.get(call_id)
        if call:
            call.external_connection_id = None
        return call

    def _notify_agent_status(self, agent_id: str) -> None:
        agent = self.agents.get(agent_id)
        if not agent:
            return
        payload = agent_payload(agent)
        self.notifications.notify_agent(agent_id, "agent_status_updated", payload)
        self.notifications.notify_supervisors("agent_status_updated", payload)

    # Queries

    def get_call(self, call_id: str) -> Optional[Call]:
        return self._calls.get(call_id)

    def list_calls(self) -> List[Call]:
        return list(self._calls.values())

    def list_active(self) -> List[Call]:
        return [call for call in self._calls.values() if call.status != CallStatus.ENDED]

    def list_by_agent(self, agent_id: str) -> List[Call]:
        return [call for call in self._calls.values() if call.assigned_agent_id == agent_id]

    def list_by_group(self, group_id: str) -> List[Call]:
        return [call for call in self._calls.values() if call.group_id == group_id]

    def find_by_external_connection_id(self, connection_id: str) -> Optional[Call]:
        for call in self._calls.values():
            if call.external_connection_id == connection_id:
                return call
        return None

    def find_by_incoming_context(self, incoming_context: str) -> Optional[Call]:
        for call in self._calls.values():
            if call.external_incoming_context == incoming_context:
                return call
        return None
