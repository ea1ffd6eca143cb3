"""Agent schemas"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, EmailStr

from app.models.agent import AgentStatus


class AgentCreate(BaseModel):
    """Create agent request"""
    name: str
    email: EmailStr
    username: str
    password: str
    group_ids: List[str] = []


class AgentUpdate(BaseModel):
    """Update agent profile request"""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    username: Optional[str] = None
    password: Optional[str] = None


class AgentStatusUpdate(BaseModel):
    """Change agent availability"""
    status: AgentStatus


class TelephonyIdentityUpdate(BaseModel):
    """Bind the agent's telephony session identity"""
    identity: str


class LoginRequest(BaseModel):
    """Agent login request"""
    username: str
    password: str


class AgentStatisticsResponse(BaseModel):
    """Accumulated call statistics"""
    total_calls: int
    total_call_duration: float
    average_call_duration: float
    calls_today: int
    calls_this_week: int
    calls_this_month: int
    last_call_time: Optional[datetime]

    class Config:
        from_attributes = True


class AgentResponse(BaseModel):
    """Agent response (credentials are never returned)"""
    id: str
    name: str
    email: str
    username: str
    status: AgentStatus
    group_ids: List[str]
    current_call_id: Optional[str]
    telephony_identity: Optional[str]
    statistics: AgentStatisticsResponse
    last_activity: datetime
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    """Successful login"""
    agent: AgentResponse
