"""
Group service.

Groups are named sets of users that splits can be scoped to. The creator is
the group's owner and the only one allowed to change its membership.
"""

from typing import Dict, List

from ..domain.entities import GroupRole
from ..domain.exceptions import Conflict, NotFound, PermissionDenied, ValidationFailed
from ..logging_config import get_logger
from ..models import Group, GroupMember, User
from ..repositories.interfaces import IGroupRepository, IUserRepository

logger = get_logger(__name__)


class GroupService:
    """Group creation and membership management."""

    def __init__(self, groups: IGroupRepository, users: IUserRepository):
        self.groups = groups
        self.users = users

    def create(self, user: User, name: str) -> Group:
        """
        Create a group owned by ``user``.

        Raises:
            ValidationFailed: If the name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Validation failed", errors={"name": ["Name is required"]})

        group = Group(name=name, created_by=user.id)
        self.groups.add(group)
        self.groups.add_member(
            GroupMember(group_id=group.id, user_id=user.id, role=GroupRole.OWNER)
        )
        self.groups.commit()

        logger.info("Group created", group_id=group.id, owner_id=user.id)
        return group

    def list(self, user: User) -> List[Group]:
        """Groups the user belongs to."""
        return self.groups.list_for_user(user.id)

    def get(self, user: User, group_id: str) -> Group:
        """
        Load a group visible to ``user``.

        Non-members get a 404 so group ids do not leak.

        Raises:
            NotFound: If the group does not exist or the user is not a member
        """
        group = self.groups.get(group_id)
        if group is None or self.groups.get_member(group.id, user.id) is None:
            raise NotFound("Group", group_id)
        return group

    def add_member(self, user: User, group_id: str, email: str) -> Group:
        """
        Add a registered user to the group by email.

        Raises:
            NotFound: If the group or the email is unknown
            PermissionDenied: If ``user`` is not the owner
            Conflict: If the user is already a member
        """
        group = self.get(user, group_id)
        self._require_owner(group, user)

        new_user = self.users.get_by_email(email or "")
        if new_user is None:
            raise NotFound("User", email)

        if self.groups.get_member(group.id, new_user.id) is not None:
            raise Conflict("User is already a member of this group")

        self.groups.add_member(
            GroupMember(group_id=group.id, user_id=new_user.id, role=GroupRole.MEMBER)
        )
        self.groups.commit()

        logger.info("Group member added", group_id=group.id, user_id=new_user.id)
        return group

    def remove_member(self, user: User, group_id: str, member_user_id: str) -> Group:
        """
        Remove a member from the group.

        Raises:
            NotFound: If the group or the membership does not exist
            PermissionDenied: If ``user`` is not the owner
            ValidationFailed: If the owner tries to remove themselves
        """
        group = self.get(user, group_id)
        self._require_owner(group, user)

        member = self.groups.get_member(group.id, member_user_id)
        if member is None:
            raise NotFound("Group member", member_user_id)
        if GroupRole(member.role) is GroupRole.OWNER:
            raise ValidationFailed("The group owner cannot be removed")

        self.groups.remove_member(member)
        self.groups.commit()

        logger.info("Group member removed", group_id=group.id, user_id=member_user_id)
        return group

    def member_users(self, group: Group) -> Dict[str, User]:
        """Users of every member, keyed by id."""
        return self.users.get_many(member.user_id for member in group.members)

    def _require_owner(self, group: Group, user: User) -> None:
        member = self.groups.get_member(group.id, user.id)
        if member is None or GroupRole(member.role) is not GroupRole.OWNER:
            raise PermissionDenied("Only the group owner can manage members")
