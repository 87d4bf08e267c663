"""
Group router.

Create and list groups and manage their members.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ..dependencies import get_current_user, get_group_service
from ..models import User
from ..schemas import GroupCreate, GroupResponse, MemberAdd
from ..services.group_service import GroupService

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post(
    "",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create group",
)
def create_group(
    request: GroupCreate,
    current_user: User = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service),
):
    """Create a group; the caller becomes its owner."""
    group = group_service.create(current_user, request.name)
    return GroupResponse.from_group(group, group_service.member_users(group))


@router.get("", response_model=List[GroupResponse], summary="List groups")
def list_groups(
    current_user: User = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service),
):
    """List the groups the caller belongs to."""
    return [
        GroupResponse.from_group(group, group_service.member_users(group))
        for group in group_service.list(current_user)
    ]


@router.get("/{group_id}", response_model=GroupResponse, summary="Get group")
def get_group(
    group_id: str,
    current_user: User = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service),
):
    group = group_service.get(current_user, group_id)
    return GroupResponse.from_group(group, group_service.member_users(group))


@router.post(
    "/{group_id}/members",
    response_model=GroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add member",
)
def add_member(
    group_id: str,
    request: MemberAdd,
    current_user: User = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service),
):
    """Add a registered user by email. Owner only."""
    group = group_service.add_member(current_user, group_id, request.email)
    return GroupResponse.from_group(group, group_service.member_users(group))


@router.delete(
    "/{group_id}/members/{user_id}",
    response_model=GroupResponse,
    summary="Remove member",
)
def remove_member(
    group_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    group_service: GroupService = Depends(get_group_service),
):
    """Remove a member. Owner only; the owner cannot be removed."""
    group = group_service.remove_member(current_user, group_id, user_id)
    return GroupResponse.from_group(group, group_service.member_users(group))
