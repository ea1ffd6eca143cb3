"""Agent API endpoints"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
import structlog

from app.dependencies import (
    get_agent_directory,
    get_group_directory,
    get_notifications,
)
from app.models.agent import AgentStatus
from app.schemas.agent import (
    AgentCreate,
    AgentResponse,
    AgentStatusUpdate,
    AgentUpdate,
    LoginRequest,
    LoginResponse,
    TelephonyIdentityUpdate,
)
from app.services.agent_directory import AgentDirectory
from app.services.call_router import agent_payload
from app.services.group_directory import GroupDirectory
from app.services.notifications import NotificationBus

router = APIRouter()
logger = structlog.get_logger()


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    agents: AgentDirectory = Depends(get_agent_directory),
):
    """Authenticate an agent by username and password"""
    agent = agents.authenticate(request.username, request.password)
    if not agent:
        logger.warning("Failed login attempt", username=request.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    logger.info("Agent logged in", agent_id=agent.id)
    return LoginResponse(agent=AgentResponse.model_validate(agent))


@router.get("", response_model=List[AgentResponse])
async def list_agents(agents: AgentDirectory = Depends(get_agent_directory)):
    return agents.list()


@router.get("/group/{group_id}", response_model=List[AgentResponse])
async def list_agents_by_group(
    group_id: str,
    agents: AgentDirectory = Depends(get_agent_directory),
):
    return agents.list_by_group(group_id)


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(
    agent_id: str,
    agents: AgentDirectory = Depends(get_agent_directory),
):
    agent = agents.get(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.post("", response_model=AgentResponse, status_code=201)
async def create_agent(
    request: AgentCreate,
    agents: AgentDirectory = Depends(get_agent_directory),
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Create an agent, OFFLINE, and add it to the requested groups"""
    for group_id in request.group_ids:
        if not groups.get(group_id):
            raise HTTPException(status_code=404, detail=f"Group {group_id} not found")

    agent = agents.create(
        name=request.name,
        email=request.email,
        username=request.username,
        password=request.password,
    )
    for group_id in request.group_ids:
        groups.add_agent(group_id, agent.id)

    notifications.notify_supervisors("agent_created", agent_payload(agent))
    return agent


@router.put("/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    request: AgentUpdate,
    agents: AgentDirectory = Depends(get_agent_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Update agent profile fields"""
    agent = agents.update(agent_id, **request.model_dump(exclude_unset=True))
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    notifications.notify_supervisors("agent_updated", agent_payload(agent))
    return agent


@router.patch("/{agent_id}/status", response_model=AgentResponse)
async def update_agent_status(
    agent_id: str,
    request: AgentStatusUpdate,
    agents: AgentDirectory = Depends(get_agent_directory),
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Change availability; in_call is only reached by call assignment"""
    try:
        agent = agents.update_status(agent_id, request.status)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    groups.recompute_for_agent(agent_id)

    payload = agent_payload(agent)
    notifications.notify_agent(agent_id, "agent_status_updated", payload)
    notifications.notify_supervisors("agent_status_updated", payload)
    return agent


@router.patch("/{agent_id}/telephony-identity", response_model=AgentResponse)
async def bind_telephony_identity(
    agent_id: str,
    request: TelephonyIdentityUpdate,
    agents: AgentDirectory = Depends(get_agent_directory),
):
    agent = agents.bind_telephony_identity(agent_id, request.identity)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    return agent


@router.delete("/{agent_id}", status_code=204)
async def delete_agent(
    agent_id: str,
    agents: AgentDirectory = Depends(get_agent_directory),
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Delete an agent that is not in a call"""
    agent = agents.get(agent_id)
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")
    if agent.status == AgentStatus.IN_CALL:
        raise HTTPException(
            status_code=409,
            detail=f"Agent is in call {agent.current_call_id}",
        )

    evicted = groups.evict_agent(agent_id)
    agents.delete(agent_id)
    notifications.disconnect_agent(agent_id)

    logger.info("Agent deleted", agent_id=agent_id, groups=evicted)
    notifications.notify_supervisors("agent_deleted", {"agent_id": agent_id})
