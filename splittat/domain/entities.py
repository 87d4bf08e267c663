"""
Domain entities for receipts and splits.

Enum-backed status, role and strategy types plus the value objects the
allocation engine works with. These are framework-agnostic; the ORM persists
the enums by their string values.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, List, Optional


class ReceiptStatus(str, Enum):
    """Coarse receipt status exposed to clients."""

    PROCESSING = "Processing"
    READY = "Ready"
    FAILED = "Failed"


class ProcessingStage(str, Enum):
    """Detailed processing step of a receipt."""

    UPLOADED = "Uploaded"
    OCR_IN_PROGRESS = "OcrInProgress"
    OCR_COMPLETED = "OcrCompleted"
    PARSE_FAILED = "ParseFailed"
    READY = "Ready"
    FAILED = "Failed"

    @property
    def status(self) -> ReceiptStatus:
        """Project the stage onto the coarse status."""
        return _STAGE_STATUS[self]

    @property
    def is_terminal(self) -> bool:
        return self.status is not ReceiptStatus.PROCESSING

    def can_transition_to(self, target: "ProcessingStage") -> bool:
        return target in _STAGE_TRANSITIONS[self]


_STAGE_STATUS: Dict[ProcessingStage, ReceiptStatus] = {
    ProcessingStage.UPLOADED: ReceiptStatus.PROCESSING,
    ProcessingStage.OCR_IN_PROGRESS: ReceiptStatus.PROCESSING,
    ProcessingStage.OCR_COMPLETED: ReceiptStatus.PROCESSING,
    ProcessingStage.READY: ReceiptStatus.READY,
    ProcessingStage.PARSE_FAILED: ReceiptStatus.FAILED,
    ProcessingStage.FAILED: ReceiptStatus.FAILED,
}

_STAGE_TRANSITIONS: Dict[ProcessingStage, FrozenSet[ProcessingStage]] = {
    ProcessingStage.UPLOADED: frozenset(
        {ProcessingStage.OCR_IN_PROGRESS, ProcessingStage.FAILED}
    ),
    ProcessingStage.OCR_IN_PROGRESS: frozenset(
        {ProcessingStage.OCR_COMPLETED, ProcessingStage.FAILED}
    ),
    ProcessingStage.OCR_COMPLETED: frozenset(
        {ProcessingStage.READY, ProcessingStage.PARSE_FAILED, ProcessingStage.FAILED}
    ),
    ProcessingStage.READY: frozenset(),
    ProcessingStage.PARSE_FAILED: frozenset(),
    ProcessingStage.FAILED: frozenset(),
}

TERMINAL_STATUS_VALUES = frozenset(
    {
        ReceiptStatus.READY.value,
        ReceiptStatus.FAILED.value,
        ProcessingStage.PARSE_FAILED.value,
    }
)


class GroupRole(str, Enum):
    """Role of a user within a group."""

    OWNER = "Owner"
    MEMBER = "Member"


class SplitType(str, Enum):
    """Strategy used to allocate a receipt among participants."""

    EQUAL = "Equal"
    BY_ITEM = "ByItem"
    PERCENTAGE = "Percentage"
    CUSTOM = "Custom"


@dataclass(frozen=True)
class ItemCost:
    """Cost basis of one receipt line: unit price times quantity."""

    item_id: str
    price: Decimal
    quantity: int = 1

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class ShareInstruction:
    """
    One participant's requested share of an item.

    Exactly one of ``percentage`` / ``amount`` is meaningful depending on the
    strategy; ByItem accepts neither (even split among the chosen users).
    """

    user_id: str
    percentage: Optional[Decimal] = None
    amount: Optional[Decimal] = None


@dataclass(frozen=True)
class ItemInstruction:
    """Requested allocation for one item."""

    item_id: str
    shares: List[ShareInstruction] = field(default_factory=list)


@dataclass(frozen=True)
class AllocationLine:
    """Computed share of one item attributed to one user."""

    item_id: str
    user_id: str
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class UserTotal:
    """Per-user aggregation of a split, including tax and tip."""

    user_id: str
    items_subtotal: Decimal
    tax: Decimal
    tip: Decimal

    @property
    def total(self) -> Decimal:
        return self.items_subtotal + self.tax + self.tip
