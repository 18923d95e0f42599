"""Conversion between remote CheckDocuments and local CheckForms."""

from typing import Any

from .editing import FieldPath
from .formatter import (
    format_currency,
    format_integer,
    parse_currency_amount,
    parse_ratio_amount,
)
from .models import (
    CheckDocument,
    CheckForm,
    ContributorForm,
    ContributorRecord,
    DirtyClean,
    EditContext,
    ItemForm,
    ItemRecord,
)


def contributor_to_form(record: ContributorRecord) -> ContributorForm:
    return ContributorForm(id=record.id, name=DirtyClean[str].synced(record.name))


def item_to_form(
    record: ItemRecord, contributor_count: int, context: EditContext
) -> ItemForm:
    """
    Hydrate one stored item.

    The split is padded with ratio 0 or truncated so it always has exactly
    one entry per contributor.
    """
    ratios = record.split[:contributor_count]
    ratios = ratios + [0] * (contributor_count - len(ratios))
    return ItemForm(
        id=record.id,
        name=DirtyClean[str].synced(record.name),
        cost=DirtyClean[str].synced(
            format_currency(context.locale, max(record.cost, 0), context.currency)
        ),
        buyer=DirtyClean[int].synced(record.buyer),
        split=[
            DirtyClean[str].synced(format_integer(context.locale, max(ratio, 0)))
            for ratio in ratios
        ],
    )


def check_to_form(document: CheckDocument, context: EditContext) -> CheckForm:
    """Hydrate a form from a snapshot; every field starts Synced."""
    contributor_count = len(document.contributors)
    return CheckForm(
        title=DirtyClean[str].synced(document.title),
        contributors=[
            contributor_to_form(contributor) for contributor in document.contributors
        ],
        items=[
            item_to_form(item, contributor_count, context) for item in document.items
        ],
        updated_at=document.updated_at,
    )


def normalize_value(path: FieldPath, value: Any, context: EditContext) -> Any:
    """
    Normalize a display value before it is committed.

    Costs and ratios are parsed and reformatted, so malformed text becomes
    the formatted zero. Names are kept as typed.
    """
    leaf = path[2] if path[0] == "items" else path[-1]
    if leaf == "cost":
        amount = parse_currency_amount(context.locale, context.currency, value)
        return format_currency(context.locale, amount, context.currency)
    if leaf == "split":
        return format_integer(context.locale, parse_ratio_amount(context.locale, value))
    if leaf == "buyer":
        return int(value)
    return str(value)


def contributors_to_records(form: CheckForm) -> list[ContributorRecord]:
    """Stored contributors, built from clean values."""
    return [
        ContributorRecord(id=contributor.id, name=contributor.name.clean)
        for contributor in form.contributors
    ]


def items_to_records(form: CheckForm, context: EditContext) -> list[ItemRecord]:
    """Stored items, built from clean values."""
    return [
        ItemRecord(
            id=item.id,
            name=item.name.clean,
            cost=parse_currency_amount(
                context.locale, context.currency, item.cost.clean
            ),
            buyer=item.buyer.clean,
            split=[
                parse_ratio_amount(context.locale, split.clean) for split in item.split
            ],
        )
        for item in form.items
    ]


def form_to_fields(
    form: CheckForm, context: EditContext, fields: list[str]
) -> dict[str, Any]:
    """
    Build a partial update for the named top-level fields.

    Values come from the clean side of the form, so uncommitted edits in
    other fields of the same array are never written along with a commit.
    """
    update: dict[str, Any] = {}
    for field in fields:
        if field == "title":
            update["title"] = form.title.clean
        elif field == "contributors":
            update["contributors"] = [
                record.model_dump() for record in contributors_to_records(form)
            ]
        elif field == "items":
            update["items"] = [
                record.model_dump() for record in items_to_records(form, context)
            ]
        else:
            raise KeyError(f"Not a form field: {field}")
    return update
