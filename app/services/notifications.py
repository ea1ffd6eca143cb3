"""Best-effort fan-out of state changes to agent and supervisor consoles"""

import asyncio
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger()


class ClientRole(str, enum.Enum):
    AGENT = "agent"
    SUPERVISOR = "supervisor"
    UNAUTHENTICATED = "unauthenticated"


# Put on a subscriber queue to ask its writer to close the connection
CLOSE = None


@dataclass
class Subscriber:
    """One connected console and its pending events"""
    queue: asyncio.Queue
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    role: ClientRole = ClientRole.UNAUTHENTICATED
    agent_id: Optional[str] = None
    supervisor_id: Optional[str] = None


def make_message(event_type: str, data: Any) -> Dict[str, Any]:
    return {
        "type": event_type,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class NotificationBus:
    """
    In-memory publish/subscribe for console events.

    Delivery is at-most-once: publishing never blocks, and a subscriber
    whose queue is full misses the event. There is no ordering guarantee
    across subscribers, so consoles reconcile with a full-state query.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Subscriber] = {}

    def connect(self) -> Subscriber:
        subscriber = Subscriber(queue=asyncio.Queue(maxsize=self.queue_size))
        self._subscribers[subscriber.id] = subscriber
        logger.debug("Subscriber connected", subscriber_id=subscriber.id)
        return subscriber

    def disconnect(self, subscriber_id: str) -> None:
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber:
            logger.info(
                "Subscriber disconnected",
                subscriber_id=subscriber_id,
                role=subscriber.role.value,
                agent_id=subscriber.agent_id,
            )

    def authenticate_agent(self, subscriber_id: str, agent_id: str) -> bool:
        subscriber = self._subscribers.get(subscriber_id)
        if not subscriber:
            return False
        subscriber.role = ClientRole.AGENT
        subscriber.agent_id = agent_id
        return True

    def authenticate_supervisor(self, subscriber_id: str, supervisor_id: Optional[str]) -> bool:
        subscriber = self._subscribers.get(subscriber_id)
        if not subscriber:
            return False
        subscriber.role = ClientRole.SUPERVISOR
        subscriber.supervisor_id = supervisor_id
        return True

    def _deliver(self, subscriber: Subscriber, message: Optional[Dict[str, Any]]) -> bool:
        try:
            subscriber.queue.put_nowait(message)
            return True
        except asyncio.QueueFull:
            logger.warning(
                "Subscriber queue full, dropping event",
                subscriber_id=subscriber.id,
                event_type=message["type"] if message else "close",
            )
            return False

    def publish(
        self,
        event_type: str,
        data: Any,
        role: Optional[ClientRole] = None,
        agent_id: Optional[str] = None,
    ) -> int:
        """
        Queue an event for matching subscribers and return how many got it.

        role=None addresses every connected client; agent_id narrows an
        AGENT publish to that agent's sessions.
        """
        message = make_message(event_type, data)
        count = 0
        for subscriber in list(self._subscribers.values()):
            if role is not None and subscriber.role != role:
                continue
            if agent_id is not None and subscriber.agent_id != agent_id:
                continue
            if self._deliver(subscriber, message):
                count += 1

        if count:
            logger.debug("Published event", event_type=event_type, recipients=count)
        return count

    def notify_agent(self, agent_id: str, event_type: str, data: Any) -> int:
        return self.publish(event_type, data, role=ClientRole.AGENT, agent_id=agent_id)

    def notify_supervisors(self, event_type: str, data: Any) -> int:
        return self.publish(event_type, data, role=ClientRole.SUPERVISOR)

    def broadcast(self, event_type: str, data: Any) -> int:
        return self.publish(event_type, data)

    def send_to(self, subscriber_id: str, event_type: str, data: Any) -> bool:
        subscriber = self._subscribers.get(subscriber_id)
        if not subscriber:
            return False
        return self._deliver(subscriber, make_message(event_type, data))

    def disconnect_agent(self, agent_id: str) -> bool:
        """Ask every session of an agent to close"""
        found = False
        for subscriber in list(self._subscribers.values()):
            if subscriber.role == ClientRole.AGENT and subscriber.agent_id == agent_id:
                self._subscribers.pop(subscriber.id, None)
                self._deliver(subscriber, CLOSE)
                found = True
        return found

    def connected_agents(self) -> List[str]:
        return [
            subscriber.agent_id
            for subscriber in self._subscribers.values()
            if subscriber.role == ClientRole.AGENT and subscriber.agent_id
        ]

    def connected_supervisors(self) -> List[str]:
        return [
            subscriber.supervisor_id or subscriber.id
            for subscriber in self._subscribers.values()
            if subscriber.role == ClientRole.SUPERVISOR
        ]

    def is_agent_connected(self, agent_id: str) -> bool:
        return agent_id in self.connected_agents()
