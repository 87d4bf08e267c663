"""
SQLAlchemy implementations of the repository interfaces.

Each repository wraps the request-scoped session. Writes are staged and
flushed; callers decide when to commit.
"""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import Group, GroupMember, ItemAssignment, Receipt, ReceiptItem, Split, User
from .interfaces import (
    IGroupRepository,
    IReceiptRepository,
    ISplitRepository,
    IUserRepository,
)

logger = get_logger(__name__)


class SqlAlchemyRepository:
    """Shared session handling."""

    def __init__(self, db: Session):
        """
        Initialize repository.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def commit(self) -> None:
        try:
            self.db.commit()
        except Exception as e:
            logger.error("Commit failed, rolling back", error=str(e))
            self.db.rollback()
            raise

    def rollback(self) -> None:
        self.db.rollback()


class SqlUserRepository(SqlAlchemyRepository, IUserRepository):
    """SQLAlchemy user repository."""

    def get(self, user_id: str) -> Optional[User]:
        return self.db.get(User, str(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.db.scalars(stmt).first()

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = {str(user_id) for user_id in user_ids}
        if not ids:
            return {}
        users = self.db.scalars(select(User).where(User.id.in_(ids))).all()
        return {user.id: user for user in users}

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user


class SqlReceiptRepository(SqlAlchemyRepository, IReceiptRepository):
    """SQLAlchemy receipt repository."""

    def get(self, receipt_id: str) -> Optional[Receipt]:
        return self.db.get(Receipt, str(receipt_id))

    def get_for_user(self, receipt_id: str, user_id: str) -> Optional[Receipt]:
        stmt = select(Receipt).where(
            Receipt.id == str(receipt_id), Receipt.user_id == str(user_id)
        )
        return self.db.scalars(stmt).first()

    def list_for_user(self, user_id: str) -> List[Receipt]:
        stmt = (
            select(Receipt)
            .where(Receipt.user_id == str(user_id))
            .order_by(Receipt.created_at.desc(), Receipt.id)
        )
        return list(self.db.scalars(stmt).all())

    def add(self, receipt: Receipt) -> Receipt:
        self.db.add(receipt)
        self.db.flush()
        return receipt

    def replace_items(self, receipt: Receipt, items: List[ReceiptItem]) -> None:
        receipt.items.clear()
        self.db.flush()
        receipt.items.extend(items)
        self.db.flush()

    def has_splits(self, receipt_id: str) -> bool:
        stmt = select(func.count(Split.id)).where(Split.receipt_id == str(receipt_id))
        return self.db.scalar(stmt) > 0

    def delete(self, receipt: Receipt) -> None:
        # Assignments point at items, so splits have to go first.
        for split in list(receipt.splits):
            self.db.delete(split)
        self.db.flush()
        self.db.expire(receipt, ["splits"])
        self.db.delete(receipt)
        self.db.flush()


class SqlGroupRepository(SqlAlchemyRepository, IGroupRepository):
    """SQLAlchemy group repository."""

    def get(self, group_id: str) -> Optional[Group]:
        return self.db.get(Group, str(group_id))

    def list_for_user(self, user_id: str) -> List[Group]:
        stmt = (
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.user_id == str(user_id))
            .order_by(Group.created_at, Group.id)
        )
        return list(self.db.scalars(stmt).all())

    def get_member(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        stmt = select(GroupMember).where(
            GroupMember.group_id == str(group_id), GroupMember.user_id == str(user_id)
        )
        return self.db.scalars(stmt).first()

    def member_ids(self, group_id: str) -> List[str]:
        stmt = (
            select(GroupMember.user_id)
            .where(GroupMember.group_id == str(group_id))
            .order_by(GroupMember.joined_at, GroupMember.id)
        )
        return list(self.db.scalars(stmt).all())

    def add(self, group: Group) -> Group:
        self.db.add(group)
        self.db.flush()
        return group

    def add_member(self, member: GroupMember) -> GroupMember:
        self.db.add(member)
        self.db.flush()
        return member

    def remove_member(self, member: GroupMember) -> None:
        self.db.delete(member)
        self.db.flush()


class SqlSplitRepository(SqlAlchemyRepository, ISplitRepository):
    """SQLAlchemy split repository."""

    def get(self, split_id: str) -> Optional[Split]:
        return self.db.get(Split, str(split_id))

    def list_for_receipt(self, receipt_id: str) -> List[Split]:
        stmt = (
            select(Split)
            .where(Split.receipt_id == str(receipt_id))
            .order_by(Split.created_at, Split.id)
        )
        return list(self.db.scalars(stmt).all())

    def add(self, split: Split) -> Split:
        self.db.add(split)
        self.db.flush()
        return split

    def replace_assignments(self, split: Split, assignments: List[ItemAssignment]) -> None:
        split.assignments.clear()
        self.db.flush()
        split.assignments.extend(assignments)
        self.db.flush()

    def delete(self, split: Split) -> None:
        self.db.delete(split)
        self.db.flush()
