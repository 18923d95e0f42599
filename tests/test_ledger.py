"""Tests for check ledger totals."""

import random

import pytest

from splitcheck.editing import edit_item, edit_split
from splitcheck.ledger import compute_check_ledger, summarize_contributor


class TestComputeLedger:
    """Totals paid, owing and balance per contributor."""

    def test_ten_dollars_split_three_ways(self, make_form, context):
        """One buyer pays $10.00 for an item everyone shares equally."""
        form = make_form(items=[(1000, 0, [1, 1, 1])])

        ledger = compute_check_ledger(form, context)

        assert ledger.total_cost == 1000
        assert [c.total_paid for c in ledger.contributors] == [1000, 0, 0]
        assert [c.total_owing for c in ledger.contributors] == [334, 333, 333]
        assert [c.balance for c in ledger.contributors] == [666, -333, -333]
        assert ledger.is_closed

    def test_totals_accumulate_across_items(self, make_form, context):
        form = make_form(
            items=[
                (1000, 0, [1, 1, 1]),
                (600, 1, [0, 1, 1]),
                (250, 2, [1, 0, 0]),
            ]
        )

        ledger = compute_check_ledger(form, context)

        assert ledger.total_cost == 1850
        assert [c.total_paid for c in ledger.contributors] == [1000, 600, 250]
        assert [c.total_owing for c in ledger.contributors] == [584, 633, 633]

    def test_contributor_names_and_ids(self, make_form, context):
        ledger = compute_check_ledger(make_form(), context)
        assert [c.name for c in ledger.contributors] == ["Alice", "Bob", "Carol"]
        assert [c.contributor_id for c in ledger.contributors] == ["c0", "c1", "c2"]

    def test_empty_check(self, make_form, context):
        ledger = compute_check_ledger(make_form(names=[], items=[]), context)
        assert ledger.total_cost == 0
        assert ledger.contributors == []

    def test_zero_split_cost_is_unallocated(self, make_form, context):
        form = make_form(names=["Alice", "Bob"], items=[(500, 1, [0, 0])])

        ledger = compute_check_ledger(form, context)

        assert ledger.total_cost == 500
        assert [c.total_paid for c in ledger.contributors] == [0, 500]
        assert [c.total_owing for c in ledger.contributors] == [0, 0]
        assert ledger.unallocated == 500
        assert not ledger.is_closed

    def test_buyer_out_of_range_is_unassigned(self, make_form, context):
        form = make_form(names=["Alice", "Bob"], items=[(400, 5, [1, 1])])

        ledger = compute_check_ledger(form, context)

        assert [c.total_paid for c in ledger.contributors] == [0, 0]
        assert ledger.unassigned_paid == 400
        assert not ledger.is_closed

    def test_uses_values_being_edited(self, make_form, context):
        """Totals follow the displayed text before anything is committed."""
        form = make_form(items=[(1000, 0, [1, 1, 1])])
        form = edit_item(form, 0, "cost", "$20.00", context)
        form = edit_split(form, 0, 2, "2", context)

        ledger = compute_check_ledger(form, context)

        assert ledger.total_cost == 2000
        assert [c.total_owing for c in ledger.contributors] == [500, 500, 1000]

    def test_malformed_cost_counts_as_zero(self, make_form, context):
        form = make_form(items=[(1000, 0, [1, 1, 1])])
        form = edit_item(form, 0, "cost", "abc", context)
        assert compute_check_ledger(form, context).total_cost == 0

    def test_very_long_cost_text(self, make_form, context):
        form = make_form(items=[(1000, 0, [1, 1, 1])])
        form = edit_item(form, 0, "cost", "1" * 30, context)
        form = edit_split(form, 0, 1, "9" * 40, context)

        ledger = compute_check_ledger(form, context)

        assert ledger.total_cost == int("1" * 30) * 100
        assert sum(c.total_owing for c in ledger.contributors) == ledger.total_cost

    @pytest.mark.parametrize("seed", range(10))
    def test_paid_and_owing_both_sum_to_total(self, make_form, context, seed):
        rng = random.Random(seed)
        count = rng.randint(1, 6)
        items = []
        for _ in range(rng.randint(0, 12)):
            split = [rng.randint(0, 4) for _ in range(count)]
            split[rng.randrange(count)] += 1
            items.append((rng.randint(0, 500_000), rng.randrange(count), split))
        form = make_form(names=[f"P{i}" for i in range(count)], items=items)

        ledger = compute_check_ledger(form, context)

        assert sum(c.total_paid for c in ledger.contributors) == ledger.total_cost
        assert sum(c.total_owing for c in ledger.contributors) == ledger.total_cost
        assert sum(c.balance for c in ledger.contributors) == 0


class TestSummarizeContributor:
    """Item-by-item breakdown for one contributor."""

    @pytest.fixture
    def form(self, make_form):
        return make_form(items=[(1000, 0, [1, 1, 1]), (600, 1, [0, 1, 1])])

    def test_buyer_summary_skips_items_not_involved(self, form, context):
        summary = summarize_contributor(
            form.contributors, form.items, 0, context.locale, context.currency
        )

        assert summary.name == "Alice"
        assert [line.item_id for line in summary.lines] == ["i0"]
        assert summary.lines[0].paid == 1000
        assert summary.lines[0].owing == 334
        assert summary.total_paid == 1000
        assert summary.total_owing == 334
        assert summary.balance == 666

    def test_owing_only_summary(self, form, context):
        summary = summarize_contributor(
            form.contributors, form.items, 2, context.locale, context.currency
        )

        assert [line.owing for line in summary.lines] == [333, 300]
        assert summary.total_paid == 0
        assert summary.balance == -633

    def test_unknown_contributor(self, form, context):
        with pytest.raises(IndexError):
            summarize_contributor(
                form.contributors, form.items, 5, context.locale, context.currency
            )
