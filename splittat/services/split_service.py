"""
Split service.

Persists the output of the allocation engine. A split belongs to a Ready
receipt, may be scoped to a group, and stays editable: replacing it re-runs
the allocation with new instructions.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..domain import allocation
from ..domain.entities import (
    AllocationLine,
    ItemCost,
    ItemInstruction,
    ReceiptStatus,
    SplitType,
    UserTotal,
)
from ..domain.exceptions import AllocationError, Conflict, NotFound, ValidationFailed
from ..logging_config import get_logger
from ..metrics import track_split
from ..models import ItemAssignment, Receipt, Split, User
from ..repositories.interfaces import (
    IGroupRepository,
    IReceiptRepository,
    ISplitRepository,
    IUserRepository,
)

logger = get_logger(__name__)


@dataclass
class SplitSummary:
    """Per-user totals of one split."""

    split: Split
    receipt: Receipt
    totals: List[UserTotal]
    users: Dict[str, User] = field(default_factory=dict)
    balanced: bool = True

    @property
    def grand_total(self) -> Decimal:
        return sum((total.total for total in self.totals), allocation.ZERO)

    @property
    def difference(self) -> Decimal:
        """What the participants owe beyond the receipt total. Only Custom splits can be off."""
        return self.grand_total - (self.receipt.total or allocation.ZERO)


class SplitService:
    """Split creation, replacement, deletion and aggregation."""

    def __init__(
        self,
        splits: ISplitRepository,
        receipts: IReceiptRepository,
        groups: IGroupRepository,
        users: IUserRepository,
    ):
        self.splits = splits
        self.receipts = receipts
        self.groups = groups
        self.users = users

    def create(
        self,
        user: User,
        receipt_id: str,
        split_type: SplitType,
        group_id: Optional[str] = None,
        participants: Optional[Sequence[str]] = None,
        items: Optional[Sequence[ItemInstruction]] = None,
    ) -> Split:
        """
        Split one of the user's receipts.

        Args:
            user: Receipt owner
            receipt_id: Receipt to split
            split_type: Allocation strategy
            group_id: Optional group the split is scoped to
            participants: User ids taking part; defaults to the group members
            items: Per-item share instructions (not used by Equal)

        Returns:
            Persisted split with its assignments

        Raises:
            NotFound: If the receipt or group is not visible to the user
            Conflict: If the receipt is not Ready
            ValidationFailed: If participants are unknown or outside the group
            AllocationError: If the instructions do not allocate every item
        """
        receipt = self._owned_receipt(user, receipt_id)

        split = Split(
            receipt_id=receipt.id,
            group_id=group_id,
            created_by=user.id,
            split_type=split_type,
        )
        split.assignments.extend(
            self._allocate(user, receipt, split_type, group_id, participants, items)
        )
        self.splits.add(split)
        self.splits.commit()

        logger.info(
            "Split created",
            split_id=split.id,
            receipt_id=receipt.id,
            split_type=split_type.value,
            assignments=len(split.assignments),
        )
        track_split(split_type.value, True)
        return split

    def list_for_receipt(self, user: User, receipt_id: str) -> List[Split]:
        """
        List the splits of one of the user's receipts.

        Raises:
            NotFound: If the receipt is not the user's
        """
        receipt = self.receipts.get_for_user(receipt_id, user.id)
        if receipt is None:
            raise NotFound("Receipt", receipt_id)
        return self.splits.list_for_receipt(receipt.id)

    def get(self, user: User, split_id: str) -> Split:
        """
        Load a split visible to ``user``.

        The receipt owner and every user with a share in the split can see
        it.

        Raises:
            NotFound: If the split does not exist or is not visible
        """
        split = self.splits.get(split_id)
        if split is None:
            raise NotFound("Split", split_id)

        receipt = self.receipts.get(split.receipt_id)
        is_owner = receipt is not None and receipt.user_id == user.id
        is_participant = any(a.user_id == user.id for a in split.assignments)
        if not (is_owner or is_participant):
            raise NotFound("Split", split_id)
        return split

    def replace(
        self,
        user: User,
        split_id: str,
        split_type: SplitType,
        group_id: Optional[str] = None,
        participants: Optional[Sequence[str]] = None,
        items: Optional[Sequence[ItemInstruction]] = None,
    ) -> Split:
        """
        Re-run the allocation of an existing split with new instructions.

        Raises:
            NotFound: If the split is not the user's to change
            Conflict: If the receipt is no longer Ready
            AllocationError: If the instructions do not allocate every item
        """
        split = self._owned_split(user, split_id)
        receipt = self._owned_receipt(user, split.receipt_id)

        assignments = self._allocate(user, receipt, split_type, group_id, participants, items)
        split.split_type = split_type
        split.group_id = group_id
        self.splits.replace_assignments(split, assignments)
        self.splits.commit()

        logger.info("Split replaced", split_id=split.id, split_type=split_type.value)
        track_split(split_type.value, True)
        return split

    def delete(self, user: User, split_id: str) -> None:
        """
        Delete a split and its assignments.

        Raises:
            NotFound: If the split is not the user's to delete
        """
        split = self._owned_split(user, split_id)
        self.splits.delete(split)
        self.splits.commit()
        logger.info("Split deleted", split_id=split_id)

    def summary(self, user: User, split_id: str) -> SplitSummary:
        """
        Aggregate a split per user, sharing tax and tip proportionally.

        Raises:
            NotFound: If the split is not visible to the user
        """
        split = self.get(user, split_id)
        receipt = self.receipts.get(split.receipt_id)
        if receipt is None:
            raise NotFound("Receipt", split.receipt_id)

        lines = _lines(split)
        totals = allocation.summarize(lines, tax=receipt.tax, tip=receipt.tip)

        try:
            self.verify(split, receipt)
            balanced = True
        except AllocationError as e:
            logger.warning("Stored split does not reconcile", split_id=split.id, error=e.message)
            balanced = False

        return SplitSummary(
            split=split,
            receipt=receipt,
            totals=totals,
            users=self.users.get_many(total.user_id for total in totals),
            balanced=balanced,
        )

    def verify(self, split: Split, receipt: Receipt) -> None:
        """
        Re-check the stored assignments against the receipt items.

        Raises:
            AllocationError: If any item is not fully allocated
        """
        allocation.verify(_lines(split), _item_costs(receipt), SplitType(split.split_type))

    def _allocate(
        self,
        user: User,
        receipt: Receipt,
        split_type: SplitType,
        group_id: Optional[str],
        participants: Optional[Sequence[str]],
        items: Optional[Sequence[ItemInstruction]],
    ) -> List[ItemAssignment]:
        if ReceiptStatus(receipt.status) is not ReceiptStatus.READY:
            raise Conflict("Receipt must be Ready before it can be split")

        participant_ids = self._resolve_participants(user, group_id, participants)
        self._require_known_users(participant_ids, items or [])

        try:
            lines = allocation.allocate(
                split_type,
                _item_costs(receipt),
                participants=participant_ids,
                instructions=items,
            )
        except AllocationError:
            track_split(split_type.value, False)
            raise

        return [
            ItemAssignment(
                receipt_item_id=line.item_id,
                user_id=line.user_id,
                percentage=line.percentage,
                amount=line.amount,
                position=position,
            )
            for position, line in enumerate(lines)
        ]

    def _resolve_participants(
        self, user: User, group_id: Optional[str], participants: Optional[Sequence[str]]
    ) -> List[str]:
        requested = [str(p) for p in participants] if participants is not None else None

        if group_id is None:
            return requested or []

        group = self.groups.get(group_id)
        if group is None or self.groups.get_member(group.id, user.id) is None:
            raise NotFound("Group", group_id)

        member_ids = self.groups.member_ids(group.id)
        if requested is None:
            return member_ids

        outsiders = [p for p in requested if p not in member_ids]
        if outsiders:
            raise ValidationFailed(
                "All participants must be members of the group",
                errors={"participants": [f"{p} is not a group member" for p in outsiders]},
            )
        return requested

    def _require_known_users(
        self, participant_ids: Sequence[str], items: Sequence[ItemInstruction]
    ) -> None:
        ids = set(participant_ids)
        for instruction in items:
            ids.update(str(share.user_id) for share in instruction.shares)

        known = self.users.get_many(ids)
        unknown = sorted(ids - set(known))
        if unknown:
            raise ValidationFailed(
                "Unknown participants",
                errors={"participants": [f"User {u} does not exist" for u in unknown]},
            )

    def _owned_receipt(self, user: User, receipt_id: str) -> Receipt:
        receipt = self.receipts.get_for_user(receipt_id, user.id)
        if receipt is None:
            raise NotFound("Receipt", receipt_id)
        return receipt

    def _owned_split(self, user: User, split_id: str) -> Split:
        split = self.splits.get(split_id)
        if split is None or self.receipts.get_for_user(split.receipt_id, user.id) is None:
            raise NotFound("Split", split_id)
        return split


def _item_costs(receipt: Receipt) -> List[ItemCost]:
    return [ItemCost(item.id, item.price, item.quantity) for item in receipt.items]


def _lines(split: Split) -> List[AllocationLine]:
    return [
        AllocationLine(a.receipt_item_id, a.user_id, a.percentage, a.amount)
        for a in split.assignments
    ]
