"""Group API endpoints"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
import structlog

from app.dependencies import get_group_directory, get_notifications
from app.models.group import Group
from app.schemas.group import (
    GroupCreate,
    GroupResponse,
    GroupUpdate,
    OverflowEnableRequest,
    OverflowGroupsUpdate,
)
from app.services.group_directory import DuplicatePhoneNumberError, GroupDirectory
from app.services.notifications import NotificationBus

router = APIRouter()
logger = structlog.get_logger()


def group_payload(group: Group) -> Dict[str, Any]:
    return GroupResponse.model_validate(group).model_dump(mode="json")


def _check_overflow_ids(groups: GroupDirectory, group_id: str, overflow_group_ids: List[str]):
    for overflow_id in overflow_group_ids:
        if overflow_id == group_id:
            raise HTTPException(status_code=400, detail="A group cannot overflow to itself")
        if not groups.get(overflow_id):
            raise HTTPException(status_code=404, detail=f"Overflow group {overflow_id} not found")


@router.get("", response_model=List[GroupResponse])
async def list_groups(groups: GroupDirectory = Depends(get_group_directory)):
    return groups.list()


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    groups: GroupDirectory = Depends(get_group_directory),
):
    group = groups.get(group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    return group


@router.post("", response_model=GroupResponse, status_code=201)
async def create_group(
    request: GroupCreate,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Create a group routed by its phone number"""
    for overflow_id in request.overflow_group_ids:
        if not groups.get(overflow_id):
            raise HTTPException(status_code=404, detail=f"Overflow group {overflow_id} not found")

    try:
        group = groups.create(
            name=request.name,
            location=request.location,
            phone_number=request.phone_number,
            overflow_enabled=request.overflow_enabled,
            overflow_group_ids=request.overflow_group_ids,
        )
    except DuplicatePhoneNumberError as e:
        raise HTTPException(status_code=409, detail=str(e))

    notifications.notify_supervisors("group_created", group_payload(group))
    return group


@router.put("/{group_id}", response_model=GroupResponse)
async def update_group(
    group_id: str,
    request: GroupUpdate,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    if request.overflow_group_ids is not None:
        _check_overflow_ids(groups, group_id, request.overflow_group_ids)

    try:
        group = groups.update(group_id, **request.model_dump(exclude_unset=True))
    except DuplicatePhoneNumberError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")

    notifications.notify_supervisors("group_updated", group_payload(group))
    return group


@router.delete("/{group_id}", status_code=204)
async def delete_group(
    group_id: str,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Delete a group and remove it from its members"""
    if not groups.delete(group_id):
        raise HTTPException(status_code=404, detail="Group not found")

    notifications.notify_supervisors("group_deleted", {"group_id": group_id})


@router.post("/{group_id}/agents/{agent_id}", response_model=GroupResponse)
async def add_agent_to_group(
    group_id: str,
    agent_id: str,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    if not groups.add_agent(group_id, agent_id):
        raise HTTPException(status_code=404, detail="Group or agent not found")

    group = groups.get(group_id)
    notifications.notify_supervisors(
        "agent_added_to_group",
        {"group_id": group_id, "agent_id": agent_id, "group": group_payload(group)},
    )
    return group


@router.delete("/{group_id}/agents/{agent_id}", response_model=GroupResponse)
async def remove_agent_from_group(
    group_id: str,
    agent_id: str,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    if not groups.remove_agent(group_id, agent_id):
        raise HTTPException(status_code=404, detail="Group or agent not found")

    group = groups.get(group_id)
    notifications.notify_supervisors(
        "agent_removed_from_group",
        {"group_id": group_id, "agent_id": agent_id, "group": group_payload(group)},
    )
    return group


@router.put("/{group_id}/overflow", response_model=GroupResponse)
async def set_overflow_groups(
    group_id: str,
    request: OverflowGroupsUpdate,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    """Replace the ordered list of overflow groups"""
    if not groups.get(group_id):
        raise HTTPException(status_code=404, detail="Group not found")
    _check_overflow_ids(groups, group_id, request.overflow_group_ids)

    groups.set_overflow_group_ids(group_id, request.overflow_group_ids)
    group = groups.get(group_id)

    logger.info("Overflow groups updated", group_id=group_id, overflow_group_ids=group.overflow_group_ids)
    notifications.notify_supervisors("overflow_groups_updated", group_payload(group))
    return group


@router.patch("/{group_id}/overflow/enable", response_model=GroupResponse)
async def set_overflow_enabled(
    group_id: str,
    request: OverflowEnableRequest,
    groups: GroupDirectory = Depends(get_group_directory),
    notifications: NotificationBus = Depends(get_notifications),
):
    if not groups.set_overflow_enabled(group_id, request.enabled):
        raise HTTPException(status_code=404, detail="Group not found")

    group = groups.get(group_id)
    logger.info("Overflow status updated", group_id=group_id, enabled=request.enabled)
    notifications.notify_supervisors("overflow_status_updated", group_payload(group))
    return group
