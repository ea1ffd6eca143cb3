"""Pydantic schemas for request/response validation"""

from app.schemas.agent import (
    AgentCreate,
    AgentUpdate,
    AgentStatusUpdate,
    AgentResponse,
    AgentStatisticsResponse,
    TelephonyIdentityUpdate,
    LoginRequest,
    LoginResponse,
)
from app.schemas.group import (
    GroupCreate,
    GroupUpdate,
    GroupResponse,
    GroupStatisticsResponse,
    OverflowGroupsUpdate,
    OverflowEnableRequest,
)
from app.schemas.call import (
    CallResponse,
    AnswerCallRequest,
    EndCallRequest,
    TransferCallRequest,
    IncomingCallRequest,
    TokenResponse,
)

__all__ = [
    "AgentCreate",
    "AgentUpdate",
    "AgentStatusUpdate",
    "AgentResponse",
    "AgentStatisticsResponse",
    "TelephonyIdentityUpdate",
    "LoginRequest",
    "LoginResponse",
    "GroupCreate",
    "GroupUpdate",
    "GroupResponse",
    "GroupStatisticsResponse",
    "OverflowGroupsUpdate",
    "OverflowEnableRequest",
    "CallResponse",
    "AnswerCallRequest",
    "EndCallRequest",
    "TransferCallRequest",
    "IncomingCallRequest",
    "TokenResponse",
]
