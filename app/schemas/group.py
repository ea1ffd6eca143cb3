"""Group schemas"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class GroupCreate(BaseModel):
    """Create group request"""
    name: str
    location: str
    phone_number: str
    overflow_enabled: bool = False
    overflow_group_ids: List[str] = []


class GroupUpdate(BaseModel):
    """Update group request"""
    name: Optional[str] = None
    location: Optional[str] = None
    phone_number: Optional[str] = None
    overflow_enabled: Optional[bool] = None
    overflow_group_ids: Optional[List[str]] = None


class OverflowGroupsUpdate(BaseModel):
    """Replace the ordered overflow list"""
    overflow_group_ids: List[str]


class OverflowEnableRequest(BaseModel):
    """Turn overflow routing on or off"""
    enabled: bool


class GroupStatisticsResponse(BaseModel):
    total_agents: int
    available_agents: int
    busy_agents: int

    class Config:
        from_attributes = True


class GroupResponse(BaseModel):
    """Group response"""
    id: str
    name: str
    location: str
    phone_number: str
    agent_ids: List[str]
    overflow_group_ids: List[str]
    overflow_enabled: bool
    statistics: GroupStatisticsResponse
    created_at: datetime

    class Config:
        from_attributes = True
