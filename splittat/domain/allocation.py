"""
Split allocation engine.

Turns a receipt's line items plus a split strategy into item assignments:
one line per (item, user) carrying the fractional share of the item and the
money amount it represents. All arithmetic is done in Decimal.

For every item the produced percentages sum to exactly 1.0000 and the amounts
sum to the item subtotal (Custom keeps the requested amounts, which are only
required to reconcile within one cent). Rounding remainders are absorbed by
the last participant of each item, so non-last shares are always rounded down
and the last share can never go negative.
"""

from collections import OrderedDict
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .entities import (
    AllocationLine,
    ItemCost,
    ItemInstruction,
    ShareInstruction,
    SplitType,
    UserTotal,
)
from .exceptions import AllocationError

CENT = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.0001")
PERCENTAGE_TOLERANCE = Decimal("0.0001")
AMOUNT_TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")


def to_money(value, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Quantize a value to cents."""
    return Decimal(str(value)).quantize(CENT, rounding=rounding)


def to_fraction(value, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Quantize a share to four decimal places (0.0001 == 0.01%)."""
    return Decimal(str(value)).quantize(PERCENT_QUANTUM, rounding=rounding)


def allocate(
    split_type: SplitType,
    items: Sequence[ItemCost],
    participants: Optional[Sequence[str]] = None,
    instructions: Optional[Sequence[ItemInstruction]] = None,
) -> List[AllocationLine]:
    """
    Allocate every item of a receipt among participants.

    Args:
        split_type: Strategy to apply
        items: Cost basis of each receipt line
        participants: Users taking part. Required for Equal; for the other
            strategies, when given, every share must name one of them.
        instructions: Per-item shares for ByItem, Percentage and Custom

    Returns:
        Allocation lines ordered by item, then by participant order

    Raises:
        AllocationError: If the instructions cannot be allocated consistently
    """
    if not items:
        raise AllocationError("Receipt has no items to split")

    participant_list = _unique_participants(participants or [])

    if split_type is SplitType.EQUAL:
        if not participant_list:
            raise AllocationError("At least one participant is required")
        lines: List[AllocationLine] = []
        for item in items:
            lines.extend(_even_lines(item, participant_list))
        return lines

    by_item = _index_instructions(items, instructions or [])
    allowed = set(participant_list)

    lines = []
    for item in items:
        shares = by_item[item.item_id]
        _check_shares(item, shares, allowed)

        if split_type is SplitType.BY_ITEM:
            lines.extend(_by_item_lines(item, shares))
        elif split_type is SplitType.PERCENTAGE:
            lines.extend(_percentage_lines(item, shares))
        elif split_type is SplitType.CUSTOM:
            lines.extend(_custom_lines(item, shares))
        else:
            raise AllocationError(f"Unsupported split type: {split_type}")

    return lines


def verify(
    lines: Iterable[AllocationLine],
    items: Sequence[ItemCost],
    split_type: SplitType,
) -> None:
    """
    Re-check the allocation invariants of a stored split.

    Raises:
        AllocationError: On the first item whose shares do not reconcile
    """
    percentages: Dict[str, Decimal] = {item.item_id: ZERO for item in items}
    amounts: Dict[str, Decimal] = {item.item_id: ZERO for item in items}

    for line in lines:
        if line.item_id not in percentages:
            raise AllocationError("Assignment references an unknown item", line.item_id)
        percentages[line.item_id] += line.percentage
        amounts[line.item_id] += line.amount

    amount_tolerance = AMOUNT_TOLERANCE if split_type is SplitType.CUSTOM else ZERO
    for item in items:
        if abs(percentages[item.item_id] - ONE) > PERCENTAGE_TOLERANCE:
            raise AllocationError(
                f"Item {item.item_id} is allocated {percentages[item.item_id]} instead of 1.0",
                item.item_id,
            )
        if abs(amounts[item.item_id] - to_money(item.subtotal)) > amount_tolerance:
            raise AllocationError(
                f"Item {item.item_id} amounts do not add up to {to_money(item.subtotal)}",
                item.item_id,
            )


def summarize(
    lines: Sequence[AllocationLine],
    tax: Optional[Decimal] = None,
    tip: Optional[Decimal] = None,
) -> List[UserTotal]:
    """
    Aggregate allocation lines per user and distribute tax and tip.

    Tax and tip are shared in proportion to each user's item subtotal (evenly
    if every subtotal is zero). The last user absorbs the rounding remainder
    so the totals reconcile exactly to items + tax + tip.

    Args:
        lines: Allocation lines of one split
        tax: Receipt tax, if any
        tip: Receipt tip, if any

    Returns:
        One UserTotal per user, in order of first appearance
    """
    subtotals: "OrderedDict[str, Decimal]" = OrderedDict()
    for line in lines:
        subtotals[line.user_id] = subtotals.get(line.user_id, ZERO) + line.amount

    if not subtotals:
        return []

    tax_shares = _proportional(to_money(tax or ZERO), subtotals)
    tip_shares = _proportional(to_money(tip or ZERO), subtotals)

    return [
        UserTotal(
            user_id=user_id,
            items_subtotal=to_money(subtotal),
            tax=tax_shares[user_id],
            tip=tip_shares[user_id],
        )
        for user_id, subtotal in subtotals.items()
    ]


def _unique_participants(participants: Sequence[str]) -> List[str]:
    seen = OrderedDict()
    for user_id in participants:
        seen.setdefault(str(user_id), None)
    return list(seen)


def _index_instructions(
    items: Sequence[ItemCost], instructions: Sequence[ItemInstruction]
) -> Dict[str, List[ShareInstruction]]:
    known = {item.item_id for item in items}
    by_item: Dict[str, List[ShareInstruction]] = {}

    for instruction in instructions:
        item_id = str(instruction.item_id)
        if item_id not in known:
            raise AllocationError(f"Item {item_id} is not on this receipt", item_id)
        if item_id in by_item:
            raise AllocationError(f"Item {item_id} is listed more than once", item_id)
        by_item[item_id] = list(instruction.shares)

    for item in items:
        if not by_item.get(item.item_id):
            raise AllocationError(f"Item {item.item_id} is not assigned", item.item_id)

    return by_item


def _check_shares(
    item: ItemCost, shares: Sequence[ShareInstruction], allowed: set
) -> None:
    seen = set()
    for share in shares:
        user_id = str(share.user_id)
        if user_id in seen:
            raise AllocationError(
                f"User {user_id} appears twice on item {item.item_id}", item.item_id
            )
        seen.add(user_id)
        if allowed and user_id not in allowed:
            raise AllocationError(
                f"User {user_id} is not a participant in this split", item.item_id
            )
        if share.percentage is not None and not ZERO <= share.percentage <= ONE:
            raise AllocationError(
                "Percentages must be between 0 and 1", item.item_id
            )
        if share.amount is not None and share.amount < ZERO:
            raise AllocationError("Amounts cannot be negative", item.item_id)


def _even_lines(item: ItemCost, users: Sequence[str]) -> List[AllocationLine]:
    count = len(users)
    cost = to_money(item.subtotal)
    percentage = to_fraction(ONE / count, rounding=ROUND_DOWN)
    amount = to_money(cost / count, rounding=ROUND_DOWN)
    return _with_remainder(
        item, users, [percentage] * count, [amount] * count, cost
    )


def _by_item_lines(
    item: ItemCost, shares: Sequence[ShareInstruction]
) -> List[AllocationLine]:
    weighted = [share for share in shares if share.percentage is not None]
    if not weighted:
        return _even_lines(item, [str(share.user_id) for share in shares])
    if len(weighted) != len(shares):
        raise AllocationError(
            "Either give every user on an item a share or none of them", item.item_id
        )
    return _percentage_lines(item, shares)


def _percentage_lines(
    item: ItemCost, shares: Sequence[ShareInstruction]
) -> List[AllocationLine]:
    if any(share.percentage is None for share in shares):
        raise AllocationError("Every share needs a percentage", item.item_id)

    requested = [to_fraction(share.percentage) for share in shares]
    if abs(sum(requested, ZERO) - ONE) > PERCENTAGE_TOLERANCE:
        raise AllocationError(
            f"Percentages for item {item.item_id} must add up to 100%", item.item_id
        )

    percentages = _close_percentages(requested)
    cost = to_money(item.subtotal)
    amounts = [to_money(cost * pct, rounding=ROUND_DOWN) for pct in percentages]
    users = [str(share.user_id) for share in shares]
    return _with_remainder(item, users, percentages, amounts, cost)


def _custom_lines(
    item: ItemCost, shares: Sequence[ShareInstruction]
) -> List[AllocationLine]:
    if any(share.amount is None for share in shares):
        raise AllocationError("Every share needs an amount", item.item_id)

    cost = to_money(item.subtotal)
    amounts = [to_money(share.amount) for share in shares]
    if abs(sum(amounts, ZERO) - cost) > AMOUNT_TOLERANCE:
        raise AllocationError(
            f"Amounts for item {item.item_id} must add up to {cost}", item.item_id
        )

    users = [str(share.user_id) for share in shares]
    # Shares follow the amounts actually charged, not the item cost.
    charged = sum(amounts, ZERO)
    if charged == ZERO:
        percentages = [to_fraction(ONE / len(shares), rounding=ROUND_DOWN)] * len(shares)
    else:
        percentages = [
            to_fraction(amount / charged, rounding=ROUND_DOWN) for amount in amounts
        ]

    return [
        AllocationLine(item.item_id, user_id, percentage, amount)
        for user_id, percentage, amount in zip(
            users, _close_percentages(percentages), amounts
        )
    ]


def _close_percentages(percentages: Sequence[Decimal]) -> List[Decimal]:
    """Make the shares sum to exactly 1 by adjusting the last one."""
    head = list(percentages[:-1])
    last = ONE - sum(head, ZERO)
    if last < ZERO:
        # Rounding pushed the leading shares past 100%; take it off the largest.
        largest = head.index(max(head))
        head[largest] += last
        last = ZERO
    return head + [last]


def _with_remainder(
    item: ItemCost,
    users: Sequence[str],
    percentages: Sequence[Decimal],
    amounts: Sequence[Decimal],
    cost: Decimal,
) -> List[AllocationLine]:
    percentages = list(percentages)
    amounts = list(amounts)
    percentages[-1] = ONE - sum(percentages[:-1], ZERO)
    amounts[-1] = cost - sum(amounts[:-1], ZERO)
    return [
        AllocationLine(item.item_id, user_id, percentage, amount)
        for user_id, percentage, amount in zip(users, percentages, amounts)
    ]


def _proportional(
    extra: Decimal, weights: "OrderedDict[str, Decimal]"
) -> Dict[str, Decimal]:
    users = list(weights)
    total_weight = sum(weights.values(), ZERO)

    shares: Dict[str, Decimal] = {}
    for user_id in users[:-1]:
        if total_weight == ZERO:
            share = extra / len(users)
        else:
            share = extra * weights[user_id] / total_weight
        shares[user_id] = to_money(share, rounding=ROUND_DOWN)

    shares[users[-1]] = extra - sum(shares.values(), ZERO)
    return shares
