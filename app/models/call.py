"""Call entity"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from app.models.agent import utcnow


class CallStatus(str, enum.Enum):
    """Call lifecycle: incoming -> ringing -> connected -> ended"""
    INCOMING = "incoming"
    RINGING = "ringing"
    CONNECTED = "connected"
    ENDED = "ended"
    TRANSFERRED = "transferred"


# Statuses in which a call holds its assigned agent
LIVE_STATUSES = (CallStatus.RINGING, CallStatus.CONNECTED, CallStatus.TRANSFERRED)


@dataclass
class Call:
    """Inbound call record, owned by the call router"""
    phone_number: str  # caller
    group_id: str
    destination_number: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    original_group_id: Optional[str] = None
    assigned_agent_id: Optional[str] = None
    status: CallStatus = CallStatus.INCOMING

    # Timing (seconds for durations)
    start_time: datetime = field(default_factory=utcnow)
    answered_at: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    wait_time: Optional[float] = None

    # Telephony control plane correlation
    external_connection_id: Optional[str] = None
    external_incoming_context: Optional[str] = None

    def __post_init__(self):
        if self.original_group_id is None:
            self.original_group_id = self.group_id

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES
