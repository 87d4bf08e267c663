"""
Tests for the split allocation engine.

Covers the four strategies, rounding behaviour, validation failures and the
per-user aggregation of tax and tip.
"""

from decimal import Decimal

import pytest

from splittat.domain.allocation import allocate, summarize, verify
from splittat.domain.entities import (
    AllocationLine,
    ItemCost,
    ItemInstruction,
    ShareInstruction,
    SplitType,
)
from splittat.domain.exceptions import AllocationError

D = Decimal


def _per_item(lines, field):
    totals = {}
    for line in lines:
        totals[line.item_id] = totals.get(line.item_id, D("0")) + getattr(line, field)
    return totals


def _per_user(lines):
    totals = {}
    for line in lines:
        totals[line.user_id] = totals.get(line.user_id, D("0")) + line.amount
    return totals


class TestEqualSplit:
    """Test the Equal strategy."""

    def test_two_items_two_users(self):
        """Items of 10 and 20 split between two users give 15 each."""
        items = [ItemCost("a", D("10.00")), ItemCost("b", D("20.00"))]

        lines = allocate(SplitType.EQUAL, items, participants=["u1", "u2"])

        assert len(lines) == 4
        assert all(line.percentage == D("0.5") for line in lines)
        amounts = {(line.item_id, line.user_id): line.amount for line in lines}
        assert amounts[("a", "u1")] == D("5.00")
        assert amounts[("a", "u2")] == D("5.00")
        assert amounts[("b", "u1")] == D("10.00")
        assert amounts[("b", "u2")] == D("10.00")
        assert sum(_per_user(lines).values()) == D("30.00")

    def test_remainder_goes_to_last_participant(self):
        items = [ItemCost("a", D("10.00"))]

        lines = allocate(SplitType.EQUAL, items, participants=["u1", "u2", "u3"])

        assert [line.amount for line in lines] == [D("3.33"), D("3.33"), D("3.34")]
        assert [line.percentage for line in lines] == [
            D("0.3333"),
            D("0.3333"),
            D("0.3334"),
        ]
        assert sum(line.percentage for line in lines) == D("1")

    def test_quantity_multiplies_price(self):
        items = [ItemCost("a", D("2.50"), quantity=4)]

        lines = allocate(SplitType.EQUAL, items, participants=["u1", "u2"])

        assert [line.amount for line in lines] == [D("5.00"), D("5.00")]

    def test_duplicate_participants_are_collapsed(self):
        lines = allocate(
            SplitType.EQUAL, [ItemCost("a", D("9.00"))], participants=["u1", "u1", "u2"]
        )

        assert [line.user_id for line in lines] == ["u1", "u2"]

    def test_requires_participants(self):
        with pytest.raises(AllocationError, match="At least one participant"):
            allocate(SplitType.EQUAL, [ItemCost("a", D("1.00"))], participants=[])

    def test_requires_items(self):
        with pytest.raises(AllocationError, match="no items"):
            allocate(SplitType.EQUAL, [], participants=["u1"])

    @pytest.mark.parametrize("count", [3, 6, 7, 9])
    def test_every_item_fully_allocated(self, count):
        items = [ItemCost("a", D("0.01")), ItemCost("b", D("99.99")), ItemCost("c", D("0"))]
        users = [f"u{i}" for i in range(count)]

        lines = allocate(SplitType.EQUAL, items, participants=users)

        for item in items:
            assert _per_item(lines, "percentage")[item.item_id] == D("1")
            assert _per_item(lines, "amount")[item.item_id] == item.subtotal
        assert all(line.amount >= 0 for line in lines)


class TestByItemSplit:
    """Test the ByItem strategy."""

    def test_items_go_to_chosen_users(self):
        items = [ItemCost("a", D("12.00")), ItemCost("b", D("8.00"))]
        instructions = [
            ItemInstruction("a", [ShareInstruction("u1")]),
            ItemInstruction("b", [ShareInstruction("u1"), ShareInstruction("u2")]),
        ]

        lines = allocate(SplitType.BY_ITEM, items, ["u1", "u2"], instructions)

        assert _per_user(lines) == {"u1": D("16.00"), "u2": D("4.00")}

    def test_weighted_shares(self):
        items = [ItemCost("a", D("10.00"))]
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=D("0.25")),
                    ShareInstruction("u2", percentage=D("0.75")),
                ],
            )
        ]

        lines = allocate(SplitType.BY_ITEM, items, instructions=instructions)

        assert [line.amount for line in lines] == [D("2.50"), D("7.50")]

    def test_mixing_weighted_and_even_shares_fails(self):
        instructions = [
            ItemInstruction(
                "a",
                [ShareInstruction("u1", percentage=D("0.5")), ShareInstruction("u2")],
            )
        ]

        with pytest.raises(AllocationError):
            allocate(SplitType.BY_ITEM, [ItemCost("a", D("4.00"))], instructions=instructions)

    def test_unassigned_item_fails(self):
        items = [ItemCost("a", D("1.00")), ItemCost("b", D("2.00"))]
        instructions = [ItemInstruction("a", [ShareInstruction("u1")])]

        with pytest.raises(AllocationError, match="Item b is not assigned") as exc_info:
            allocate(SplitType.BY_ITEM, items, instructions=instructions)

        assert exc_info.value.item_id == "b"

    def test_unknown_item_fails(self):
        instructions = [
            ItemInstruction("a", [ShareInstruction("u1")]),
            ItemInstruction("zzz", [ShareInstruction("u1")]),
        ]

        with pytest.raises(AllocationError, match="not on this receipt"):
            allocate(SplitType.BY_ITEM, [ItemCost("a", D("1.00"))], instructions=instructions)

    def test_item_listed_twice_fails(self):
        instructions = [
            ItemInstruction("a", [ShareInstruction("u1")]),
            ItemInstruction("a", [ShareInstruction("u2")]),
        ]

        with pytest.raises(AllocationError, match="more than once"):
            allocate(SplitType.BY_ITEM, [ItemCost("a", D("1.00"))], instructions=instructions)

    def test_duplicate_user_on_item_fails(self):
        instructions = [ItemInstruction("a", [ShareInstruction("u1"), ShareInstruction("u1")])]

        with pytest.raises(AllocationError, match="appears twice"):
            allocate(SplitType.BY_ITEM, [ItemCost("a", D("1.00"))], instructions=instructions)

    def test_user_outside_participants_fails(self):
        instructions = [ItemInstruction("a", [ShareInstruction("stranger")])]

        with pytest.raises(AllocationError, match="not a participant"):
            allocate(
                SplitType.BY_ITEM,
                [ItemCost("a", D("1.00"))],
                participants=["u1"],
                instructions=instructions,
            )


class TestPercentageSplit:
    """Test the Percentage strategy."""

    def test_shares_applied_per_item(self):
        items = [ItemCost("a", D("100.00"))]
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=D("0.6")),
                    ShareInstruction("u2", percentage=D("0.4")),
                ],
            )
        ]

        lines = allocate(SplitType.PERCENTAGE, items, instructions=instructions)

        assert [line.amount for line in lines] == [D("60.00"), D("40.00")]

    def test_thirds_reconcile_exactly(self):
        items = [ItemCost("a", D("10.00"))]
        third = D("0.3333")
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=third),
                    ShareInstruction("u2", percentage=third),
                    ShareInstruction("u3", percentage=D("0.3334")),
                ],
            )
        ]

        lines = allocate(SplitType.PERCENTAGE, items, instructions=instructions)

        assert sum(line.percentage for line in lines) == D("1")
        assert sum(line.amount for line in lines) == D("10.00")

    def test_within_tolerance_is_closed_on_last_share(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=D("0.5")),
                    ShareInstruction("u2", percentage=D("0.4999")),
                ],
            )
        ]

        lines = allocate(
            SplitType.PERCENTAGE, [ItemCost("a", D("1.00"))], instructions=instructions
        )

        assert lines[-1].percentage == D("0.5")

    def test_shares_must_sum_to_one(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=D("0.5")),
                    ShareInstruction("u2", percentage=D("0.3")),
                ],
            )
        ]

        with pytest.raises(AllocationError, match="must add up to 100%"):
            allocate(SplitType.PERCENTAGE, [ItemCost("a", D("1.00"))], instructions=instructions)

    def test_negative_share_fails(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", percentage=D("-0.5")),
                    ShareInstruction("u2", percentage=D("1.5")),
                ],
            )
        ]

        with pytest.raises(AllocationError, match="between 0 and 1"):
            allocate(SplitType.PERCENTAGE, [ItemCost("a", D("1.00"))], instructions=instructions)

    def test_missing_percentage_fails(self):
        instructions = [ItemInstruction("a", [ShareInstruction("u1")])]

        with pytest.raises(AllocationError, match="needs a percentage"):
            allocate(SplitType.PERCENTAGE, [ItemCost("a", D("1.00"))], instructions=instructions)


class TestCustomSplit:
    """Test the Custom strategy."""

    def test_amounts_kept_and_percentages_derived(self):
        items = [ItemCost("a", D("10.00"))]
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("7.00")),
                    ShareInstruction("u2", amount=D("3.00")),
                ],
            )
        ]

        lines = allocate(SplitType.CUSTOM, items, instructions=instructions)

        assert [line.amount for line in lines] == [D("7.00"), D("3.00")]
        assert [line.percentage for line in lines] == [D("0.7"), D("0.3")]

    def test_one_cent_tolerance(self):
        items = [ItemCost("a", D("10.00"))]
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("3.33")),
                    ShareInstruction("u2", amount=D("3.33")),
                    ShareInstruction("u3", amount=D("3.33")),
                ],
            )
        ]

        lines = allocate(SplitType.CUSTOM, items, instructions=instructions)

        assert abs(sum(line.amount for line in lines) - D("10.00")) <= D("0.01")
        assert sum(line.percentage for line in lines) == D("1")

    def test_amounts_off_by_more_than_a_cent_fail(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("5.00")),
                    ShareInstruction("u2", amount=D("4.98")),
                ],
            )
        ]

        with pytest.raises(AllocationError, match="must add up to 10.00"):
            allocate(SplitType.CUSTOM, [ItemCost("a", D("10.00"))], instructions=instructions)

    def test_negative_amount_fails(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("-1.00")),
                    ShareInstruction("u2", amount=D("11.00")),
                ],
            )
        ]

        with pytest.raises(AllocationError, match="cannot be negative"):
            allocate(SplitType.CUSTOM, [ItemCost("a", D("10.00"))], instructions=instructions)

    def test_zero_cost_item_splits_percentages_evenly(self):
        instructions = [
            ItemInstruction(
                "a",
                [ShareInstruction("u1", amount=D("0")), ShareInstruction("u2", amount=D("0"))],
            )
        ]

        lines = allocate(SplitType.CUSTOM, [ItemCost("a", D("0"))], instructions=instructions)

        assert [line.percentage for line in lines] == [D("0.5"), D("0.5")]

    def test_percentages_follow_charged_amounts_within_tolerance(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("0.01")),
                    ShareInstruction("u2", amount=D("0.01")),
                ],
            )
        ]

        lines = allocate(SplitType.CUSTOM, [ItemCost("a", D("0.01"))], instructions=instructions)

        assert [line.amount for line in lines] == [D("0.01"), D("0.01")]
        assert [line.percentage for line in lines] == [D("0.5"), D("0.5")]

    def test_no_charged_user_gets_zero_share(self):
        instructions = [
            ItemInstruction(
                "a",
                [
                    ShareInstruction("u1", amount=D("5.01")),
                    ShareInstruction("u2", amount=D("5.00")),
                ],
            )
        ]

        lines = allocate(SplitType.CUSTOM, [ItemCost("a", D("10.00"))], instructions=instructions)

        assert all(line.percentage > 0 for line in lines)
        assert sum(line.percentage for line in lines) == D("1")
        assert lines[0].percentage > lines[1].percentage


class TestVerify:
    """Test re-checking stored allocations."""

    def test_accepts_engine_output(self):
        items = [ItemCost("a", D("10.00")), ItemCost("b", D("0.05"))]
        lines = allocate(SplitType.EQUAL, items, participants=["u1", "u2", "u3"])

        verify(lines, items, SplitType.EQUAL)

    def test_rejects_partial_allocation(self):
        items = [ItemCost("a", D("10.00"))]
        lines = [AllocationLine("a", "u1", D("0.5"), D("5.00"))]

        with pytest.raises(AllocationError):
            verify(lines, items, SplitType.EQUAL)

    def test_custom_tolerates_one_cent(self):
        items = [ItemCost("a", D("10.00"))]
        lines = [
            AllocationLine("a", "u1", D("0.5"), D("5.00")),
            AllocationLine("a", "u2", D("0.5"), D("4.99")),
        ]

        verify(lines, items, SplitType.CUSTOM)
        with pytest.raises(AllocationError):
            verify(lines, items, SplitType.PERCENTAGE)


class TestSummarize:
    """Test per-user aggregation with tax and tip."""

    def test_tax_and_tip_proportional_to_subtotal(self):
        lines = [
            AllocationLine("a", "u1", D("1"), D("30.00")),
            AllocationLine("b", "u2", D("1"), D("10.00")),
        ]

        totals = summarize(lines, tax=D("4.00"), tip=D("8.00"))

        by_user = {total.user_id: total for total in totals}
        assert by_user["u1"].tax == D("3.00")
        assert by_user["u1"].tip == D("6.00")
        assert by_user["u2"].tax == D("1.00")
        assert by_user["u2"].tip == D("2.00")
        assert by_user["u1"].total == D("39.00")
        assert by_user["u2"].total == D("13.00")

    def test_totals_reconcile_to_receipt_total(self):
        items = [ItemCost("a", D("10.00")), ItemCost("b", D("20.00"))]
        lines = allocate(SplitType.EQUAL, items, participants=["u1", "u2", "u3"])

        totals = summarize(lines, tax=D("2.47"), tip=D("5.00"))

        assert sum(total.total for total in totals) == D("37.47")

    def test_zero_subtotals_share_extras_evenly(self):
        lines = [
            AllocationLine("a", "u1", D("0.5"), D("0")),
            AllocationLine("a", "u2", D("0.5"), D("0")),
        ]

        totals = summarize(lines, tax=D("1.01"))

        assert [total.tax for total in totals] == [D("0.50"), D("0.51")]

    def test_no_lines(self):
        assert summarize([], tax=D("1.00")) == []
