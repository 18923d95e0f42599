"""Per-contributor paid/owing/balance totals for a check.

Totals are computed from the values currently shown (the dirty side of each
field), so they follow every keystroke regardless of commit timing.
"""

import logging
from collections.abc import Sequence

from .allocator import allocate
from .formatter import parse_currency_amount, parse_ratio_amount
from .models import (
    CheckForm,
    ContributorForm,
    ContributorSummary,
    ContributorTotals,
    EditContext,
    ItemForm,
    LedgerSummary,
    SummaryLine,
)

logger = logging.getLogger(__name__)


def item_cost(item: ItemForm, locale: str, currency: str) -> int:
    """Current cost of an item in minor units."""
    return parse_currency_amount(locale, currency, item.cost.dirty)


def item_weights(item: ItemForm, locale: str) -> list[int]:
    """Current split ratios of an item, one per contributor."""
    return [parse_ratio_amount(locale, split.dirty) for split in item.split]


def compute_ledger(
    contributors: Sequence[ContributorForm],
    items: Sequence[ItemForm],
    locale: str,
    currency: str,
) -> LedgerSummary:
    """
    Compute check totals in one pass over the items.

    For each item:
    1. Add its cost to the check total
    2. Credit the cost to the buyer's total paid
    3. Allocate the cost over the split ratios and add each share to the
       matching contributor's total owing

    Items whose ratios are all 0 owe nothing to anyone; their cost is kept in
    `unallocated`. Costs credited to a buyer index with no contributor are
    kept in `unassigned_paid`.

    Args:
        contributors: Contributors in display order
        items: Items, each with one split entry per contributor
        locale: Locale used to parse cost and split text
        currency: Currency code of the check

    Returns:
        Ledger summary with one ContributorTotals per contributor
    """
    summary = LedgerSummary(
        currency=currency,
        contributors=[
            ContributorTotals(
                contributor_id=contributor.id, name=contributor.name.dirty
            )
            for contributor in contributors
        ],
    )
    totals = summary.contributors

    for item in items:
        cost = item_cost(item, locale, currency)
        summary.total_cost += cost

        buyer = item.buyer.dirty
        if 0 <= buyer < len(totals):
            totals[buyer].total_paid += cost
        else:
            summary.unassigned_paid += cost

        weights = item_weights(item, locale)
        if sum(weights) == 0:
            summary.unallocated += cost
            continue

        for index, share in enumerate(allocate(cost, weights)):
            totals[index].total_owing += share

    if not summary.is_closed:
        logger.debug(
            f"Ledger not closed: unassigned_paid={summary.unassigned_paid}, "
            f"unallocated={summary.unallocated}"
        )

    return summary


def compute_check_ledger(form: CheckForm, context: EditContext) -> LedgerSummary:
    """Compute the ledger of a whole check form."""
    return compute_ledger(
        form.contributors, form.items, context.locale, context.currency
    )


def summarize_contributor(
    contributors: Sequence[ContributorForm],
    items: Sequence[ItemForm],
    contributor_index: int,
    locale: str,
    currency: str,
) -> ContributorSummary:
    """
    Break one contributor's totals down by item.

    Only items the contributor bought or owes a share of are listed.

    Raises:
        IndexError: If contributor_index does not name a contributor
    """
    if not 0 <= contributor_index < len(contributors):
        raise IndexError(f"No contributor at index {contributor_index}")

    contributor = contributors[contributor_index]
    summary = ContributorSummary(
        contributor_id=contributor.id,
        name=contributor.name.dirty,
        currency=currency,
    )

    for item in items:
        cost = item_cost(item, locale, currency)
        paid = cost if item.buyer.dirty == contributor_index else 0
        owing = allocate(cost, item_weights(item, locale))[contributor_index]
        if paid == 0 and owing == 0:
            continue

        summary.lines.append(
            SummaryLine(
                item_id=item.id,
                item_name=item.name.dirty,
                cost=cost,
                paid=paid,
                owing=owing,
            )
        )
        summary.total_paid += paid
        summary.total_owing += owing

    return summary
