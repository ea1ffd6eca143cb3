"""Call schemas"""

from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field

from app.models.call import CallStatus


class CallResponse(BaseModel):
    """Call detail response"""
    id: str
    phone_number: str
    destination_number: str
    group_id: str
    original_group_id: Optional[str]
    assigned_agent_id: Optional[str]
    status: CallStatus
    start_time: datetime
    answered_at: Optional[datetime]
    end_time: Optional[datetime]
    duration: Optional[float]
    wait_time: Optional[float]
    external_connection_id: Optional[str]

    class Config:
        from_attributes = True


class AnswerCallRequest(BaseModel):
    agent_id: str


class EndCallRequest(BaseModel):
    agent_id: Optional[str] = None


class TransferCallRequest(BaseModel):
    from_agent_id: str
    to_agent_id: str


class IncomingCallRequest(BaseModel):
    """Direct incoming call notification without telephony context"""
    phone_number: str = Field(validation_alias=AliasChoices("phone_number", "phoneNumber"))
    caller_number: str = Field(validation_alias=AliasChoices("caller_number", "callerNumber"))


class TokenResponse(BaseModel):
    """Telephony access token for an agent's calling session"""
    token: str
    identity: str
    expires_in: int
