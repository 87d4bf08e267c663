"""
Repository interfaces (Abstract Base Classes).

Define the contracts for user, receipt, group and split persistence
independent of the underlying storage mechanism. Entities reference each
other through ids; lookups always go through these interfaces.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from ..models import Group, GroupMember, ItemAssignment, Receipt, ReceiptItem, Split, User


class IRepository(ABC):
    """Common unit-of-work operations shared by every repository."""

    @abstractmethod
    def commit(self) -> None:
        """Persist all pending changes."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard all pending changes."""


class IUserRepository(IRepository):
    """Repository interface for registered users."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[User]:
        """
        Find a user by id.

        Args:
            user_id: User UUID

        Returns:
            User if found, None otherwise
        """

    @abstractmethod
    def get_by_email(self, email: str) -> Optional[User]:
        """
        Find a user by email, ignoring case.

        Args:
            email: Email address in any case

        Returns:
            User if found, None otherwise
        """

    @abstractmethod
    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Load several users at once, keyed by id. Unknown ids are skipped."""

    @abstractmethod
    def add(self, user: User) -> User:
        """Stage a new user for insertion."""


class IReceiptRepository(IRepository):
    """Repository interface for receipts and their line items."""

    @abstractmethod
    def get(self, receipt_id: str) -> Optional[Receipt]:
        """Find a receipt by id regardless of owner."""

    @abstractmethod
    def get_for_user(self, receipt_id: str, user_id: str) -> Optional[Receipt]:
        """
        Find a receipt owned by the given user.

        Returns:
            Receipt if it exists and belongs to ``user_id``, None otherwise
        """

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Receipt]:
        """List a user's receipts, newest first."""

    @abstractmethod
    def add(self, receipt: Receipt) -> Receipt:
        """Stage a new receipt for insertion."""

    @abstractmethod
    def replace_items(self, receipt: Receipt, items: List[ReceiptItem]) -> None:
        """Replace every line item of a receipt."""

    @abstractmethod
    def has_splits(self, receipt_id: str) -> bool:
        """Whether any split references the receipt."""

    @abstractmethod
    def delete(self, receipt: Receipt) -> None:
        """Delete a receipt together with its items and splits."""


class IGroupRepository(IRepository):
    """Repository interface for groups and memberships."""

    @abstractmethod
    def get(self, group_id: str) -> Optional[Group]:
        """Find a group by id."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> List[Group]:
        """List the groups a user is a member of."""

    @abstractmethod
    def get_member(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        """Find one membership row."""

    @abstractmethod
    def member_ids(self, group_id: str) -> List[str]:
        """User ids of every member, in join order."""

    @abstractmethod
    def add(self, group: Group) -> Group:
        """Stage a new group for insertion."""

    @abstractmethod
    def add_member(self, member: GroupMember) -> GroupMember:
        """Stage a new membership for insertion."""

    @abstractmethod
    def remove_member(self, member: GroupMember) -> None:
        """Delete a membership."""


class ISplitRepository(IRepository):
    """Repository interface for splits and item assignments."""

    @abstractmethod
    def get(self, split_id: str) -> Optional[Split]:
        """Find a split by id."""

    @abstractmethod
    def list_for_receipt(self, receipt_id: str) -> List[Split]:
        """List the splits of a receipt, oldest first."""

    @abstractmethod
    def add(self, split: Split) -> Split:
        """Stage a new split (with its assignments) for insertion."""

    @abstractmethod
    def replace_assignments(self, split: Split, assignments: List[ItemAssignment]) -> None:
        """Replace every assignment of a split."""

    @abstractmethod
    def delete(self, split: Split) -> None:
        """Delete a split and its assignments."""
