"""
Database models for the Splittat API.

This module defines SQLAlchemy ORM models for users, receipts and their line
items, groups and memberships, and splits with their item assignments.
Relationships are one-directional collections from owner to owned rows;
everything else is referenced through explicit foreign-key columns.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from .domain.entities import GroupRole, ProcessingStage, ReceiptStatus, SplitType

Base: Any = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _string_enum(enum_cls):
    """Persist enum members by their string value."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=20,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class User(Base):
    """
    Registered user.

    Attributes:
        id: UUID primary key
        email: Unique, stored lower-cased
        password_hash: bcrypt hash
        first_name: Given name
        last_name: Family name
        created_at: Registration timestamp
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class Receipt(Base):
    """
    Uploaded receipt and its parsed totals.

    ``status`` is always the coarse projection of ``stage``; see
    ``ProcessingStage.status``.
    """

    __tablename__ = "receipts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    merchant_name = Column(String(200), nullable=True)
    date = Column(Date, nullable=True)
    total = Column(Numeric(18, 2), default=0, nullable=False)
    tax = Column(Numeric(18, 2), nullable=True)
    tip = Column(Numeric(18, 2), nullable=True)
    image_url = Column(String(500), nullable=False)
    status = Column(
        _string_enum(ReceiptStatus), default=ReceiptStatus.PROCESSING, nullable=False
    )
    stage = Column(
        _string_enum(ProcessingStage), default=ProcessingStage.UPLOADED, nullable=False
    )
    ocr_confidence = Column(Numeric(5, 4), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    items = relationship(
        "ReceiptItem",
        order_by="ReceiptItem.line_number",
        cascade="all, delete-orphan",
    )
    splits = relationship(
        "Split",
        order_by="Split.created_at",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_receipts_user_created", "user_id", "created_at"),)

    def set_stage(self, stage: ProcessingStage) -> None:
        """Move to ``stage`` and keep the coarse status in step."""
        self.stage = stage
        self.status = stage.status


class ReceiptItem(Base):
    """One parsed line of a receipt: unit price times quantity."""

    __tablename__ = "receipt_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    receipt_id = Column(
        String(36),
        ForeignKey("receipts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    name = Column(String(200), nullable=False)
    price = Column(Numeric(18, 2), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    line_number = Column(Integer, nullable=False)


class Group(Base):
    """Named collection of users; the creator is its owner."""

    __tablename__ = "groups"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    created_by = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    members = relationship(
        "GroupMember",
        order_by="GroupMember.joined_at",
        cascade="all, delete-orphan",
    )


class GroupMember(Base):
    """Membership of one user in one group."""

    __tablename__ = "group_members"

    id = Column(String(36), primary_key=True, default=_new_id)
    group_id = Column(
        String(36), ForeignKey("groups.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    role = Column(_string_enum(GroupRole), default=GroupRole.MEMBER, nullable=False)
    joined_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )


class Split(Base):
    """One resolution of who owes what for a receipt."""

    __tablename__ = "splits"

    id = Column(String(36), primary_key=True, default=_new_id)
    receipt_id = Column(
        String(36),
        ForeignKey("receipts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    group_id = Column(
        String(36),
        ForeignKey("groups.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    created_by = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    split_type = Column(_string_enum(SplitType), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    assignments = relationship(
        "ItemAssignment",
        order_by="ItemAssignment.position",
        cascade="all, delete-orphan",
    )


class ItemAssignment(Base):
    """Share of one receipt item attributed to one user within a split."""

    __tablename__ = "item_assignments"

    id = Column(String(36), primary_key=True, default=_new_id)
    split_id = Column(
        String(36), ForeignKey("splits.id", ondelete="CASCADE"), index=True, nullable=False
    )
    receipt_item_id = Column(
        String(36),
        ForeignKey("receipt_items.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    percentage = Column(Numeric(5, 4), default=1, nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)
    position = Column(Integer, default=0, nullable=False)
