"""Dirty/clean edit model.

Every editable field is a DirtyClean pair and is in one of two states:

- Synced: dirty == clean, nothing to write
- Pending: dirty != clean, a local edit waits for its commit

The functions here are pure: they take a CheckForm and return a new one,
leaving the input untouched. Edits from a session without write access are
rejected by returning the form unchanged.
"""

import logging
from typing import Any, Literal, TypeAlias

from .formatter import format_currency, format_integer
from .models import CheckForm, ContributorForm, DirtyClean, EditContext, ItemForm

logger = logging.getLogger(__name__)

ItemField = Literal["name", "cost", "buyer"]

# ("title",) | ("contributors", i, "name") | ("items", i, field)
# | ("items", i, "split", j)
FieldPath: TypeAlias = tuple[Any, ...]


def title_path() -> FieldPath:
    return ("title",)


def contributor_name_path(contributor_index: int) -> FieldPath:
    return ("contributors", contributor_index, "name")


def item_path(item_index: int, field: ItemField) -> FieldPath:
    return ("items", item_index, field)


def split_path(item_index: int, split_index: int) -> FieldPath:
    return ("items", item_index, "split", split_index)


def get_field(form: CheckForm, path: FieldPath) -> DirtyClean:
    """
    Resolve a field path to its DirtyClean pair.

    Raises:
        KeyError: If the path does not name an editable field
        IndexError: If an index in the path is out of range
    """
    match path:
        case ("title",):
            return form.title
        case ("contributors", int(index), "name"):
            return form.contributors[index].name
        case ("items", int(index), "name" | "cost" | "buyer" as field):
            field_value: DirtyClean = getattr(form.items[index], field)
            return field_value
        case ("items", int(index), "split", int(split_index)):
            return form.items[index].split[split_index]
    raise KeyError(f"Not an editable field: {path!r}")


def top_level_field(path: FieldPath) -> str:
    """Name of the document field a commit to this path must rewrite."""
    return str(path[0])


def is_pending(form: CheckForm, path: FieldPath) -> bool:
    """True if the field has an uncommitted local edit."""
    return get_field(form, path).pending


def is_committable(form: CheckForm, path: FieldPath, context: EditContext) -> bool:
    """True if ending the edit of this field should write to the store."""
    return context.write_access and is_pending(form, path)


def pending_paths(form: CheckForm) -> list[FieldPath]:
    """Every field of the form that currently has an uncommitted edit."""
    paths: list[FieldPath] = []
    if form.title.pending:
        paths.append(title_path())
    for index, contributor in enumerate(form.contributors):
        if contributor.name.pending:
            paths.append(contributor_name_path(index))
    for index, item in enumerate(form.items):
        for field in ("name", "cost", "buyer"):
            if getattr(item, field).pending:
                paths.append(item_path(index, field))
        for split_index, split in enumerate(item.split):
            if split.pending:
                paths.append(split_path(index, split_index))
    return paths


def edit_field(
    form: CheckForm, path: FieldPath, value: Any, context: EditContext
) -> CheckForm:
    """
    Apply a local edit to the dirty side of a field.

    Names (title, contributor and item names) are truncated to
    context.name_max_length characters.

    Args:
        form: Current form state
        path: Field to edit
        value: New display value (text, or a contributor index for buyer)
        context: Editing session context

    Returns:
        New form with the edit applied, or the same form if the session is
        read-only
    """
    if not context.write_access:
        logger.debug(f"Rejected edit of {path!r}: no write access")
        return form

    if path[-1] in ("title", "name"):
        value = str(value)[: context.name_max_length]

    new_form = form.model_copy(deep=True)
    get_field(new_form, path).dirty = value
    return new_form


def edit_title(form: CheckForm, value: str, context: EditContext) -> CheckForm:
    return edit_field(form, title_path(), value, context)


def edit_contributor_name(
    form: CheckForm, contributor_index: int, value: str, context: EditContext
) -> CheckForm:
    return edit_field(form, contributor_name_path(contributor_index), value, context)


def edit_item(
    form: CheckForm,
    item_index: int,
    field: ItemField,
    value: Any,
    context: EditContext,
) -> CheckForm:
    return edit_field(form, item_path(item_index, field), value, context)


def edit_split(
    form: CheckForm,
    item_index: int,
    split_index: int,
    value: str,
    context: EditContext,
) -> CheckForm:
    return edit_field(form, split_path(item_index, split_index), value, context)


def mark_committed(form: CheckForm, path: FieldPath, value: Any) -> CheckForm:
    """
    Record a successful write: both sides of the field become `value`.

    `value` is the normalized form of what was written, so the visible text
    is reformatted at the same time.
    """
    new_form = form.model_copy(deep=True)
    field = get_field(new_form, path)
    field.clean = value
    field.dirty = value
    return new_form


def merge_remote_value(field: DirtyClean, remote: Any) -> DirtyClean:
    """
    Fold a value from a remote snapshot into a field.

    A Synced field takes the remote value on both sides. A Pending field only
    takes it as its new clean value, so the user's in-flight edit survives.
    """
    if field.pending:
        return field.model_copy(update={"clean": remote})
    return field.model_copy(update={"clean": remote, "dirty": remote})


# ============================================================================
# Structural edits
# ============================================================================
#
# Adding or removing a contributor changes the length of every item's split
# array, so these are applied to the whole form at once and never staged as
# dirty values.


def add_contributor(
    form: CheckForm, contributor_id: str, name: str, context: EditContext
) -> CheckForm:
    """Append a contributor; every item gets a ratio 1 split entry for them."""
    if not context.write_access:
        logger.debug("Rejected add contributor: no write access")
        return form

    ratio = format_integer(context.locale, 1)
    new_form = form.model_copy(deep=True)
    new_form.contributors.append(
        ContributorForm(
            id=contributor_id,
            name=DirtyClean[str].synced(name[: context.name_max_length]),
        )
    )
    for item in new_form.items:
        item.split.append(DirtyClean[str].synced(ratio))
    return new_form


def _shift_buyer(buyer: int, removed_index: int) -> int:
    if buyer == removed_index:
        return 0
    if buyer > removed_index:
        return buyer - 1
    return buyer


def delete_contributor(
    form: CheckForm, contributor_index: int, context: EditContext
) -> CheckForm:
    """
    Remove a contributor and their split entry from every item.

    Items bought by the removed contributor fall back to buyer 0; buyers after
    it move down one index so they keep pointing at the same person.
    """
    if not context.write_access:
        logger.debug("Rejected delete contributor: no write access")
        return form
    if not 0 <= contributor_index < len(form.contributors):
        raise IndexError(f"No contributor at index {contributor_index}")

    new_form = form.model_copy(deep=True)
    del new_form.contributors[contributor_index]
    for item in new_form.items:
        del item.split[contributor_index]
        item.buyer.clean = _shift_buyer(item.buyer.clean, contributor_index)
        item.buyer.dirty = _shift_buyer(item.buyer.dirty, contributor_index)
    return new_form


def add_item(
    form: CheckForm, item_id: str, name: str, context: EditContext
) -> CheckForm:
    """Append an item costing 0, bought by contributor 0, split evenly."""
    if not context.write_access:
        logger.debug("Rejected add item: no write access")
        return form

    cost = format_currency(context.locale, 0, context.currency)
    ratio = format_integer(context.locale, 1)
    new_form = form.model_copy(deep=True)
    new_form.items.append(
        ItemForm(
            id=item_id,
            name=DirtyClean[str].synced(name[: context.name_max_length]),
            cost=DirtyClean[str].synced(cost),
            buyer=DirtyClean[int].synced(0),
            split=[DirtyClean[str].synced(ratio) for _ in new_form.contributors],
        )
    )
    return new_form


def delete_item(form: CheckForm, item_index: int, context: EditContext) -> CheckForm:
    if not context.write_access:
        logger.debug("Rejected delete item: no write access")
        return form
    if not 0 <= item_index < len(form.items):
        raise IndexError(f"No item at index {item_index}")

    new_form = form.model_copy(deep=True)
    del new_form.items[item_index]
    return new_form


def set_clean(form: CheckForm, path: FieldPath, value: Any) -> CheckForm:
    """Advance only the clean side of a field, keeping a newer local edit."""
    new_form = form.model_copy(deep=True)
    get_field(new_form, path).clean = value
    return new_form


def _remap_index(
    index: int, from_ids: list[str], to_ids: list[str], default: int
) -> int:
    if 0 <= index < len(from_ids) and from_ids[index] in to_ids:
        return to_ids.index(from_ids[index])
    return default


def revert_structural_edit(
    before: CheckForm, applied: CheckForm, current: CheckForm
) -> CheckForm:
    """
    Undo a structural edit whose write failed.

    Args:
        before: Form the structural edit was applied to
        applied: Form the structural edit produced
        current: Form now, possibly with field edits made after `applied`

    Returns:
        `current` with the contributors and items of `before`. Entries that
        survived the edit keep their current values; a buyer changed since
        the edit is mapped back by contributor id.
    """
    current_contributors = {c.id: c for c in current.contributors}
    current_items = {item.id: item for item in current.items}
    applied_items = {item.id: item for item in applied.items}
    current_order = [c.id for c in current.contributors]
    before_order = [c.id for c in before.contributors]

    contributors = [current_contributors.get(c.id, c) for c in before.contributors]

    items = []
    for item in before.items:
        now = current_items.get(item.id)
        if now is None:
            items.append(item)
            continue

        splits = dict(zip(current_order, now.split, strict=False))
        split = [
            splits.get(contributor_id, entry)
            for contributor_id, entry in zip(before_order, item.split, strict=True)
        ]

        buyer = item.buyer
        applied_item = applied_items.get(item.id)
        if applied_item is None or now.buyer != applied_item.buyer:
            buyer = DirtyClean[int](
                clean=item.buyer.clean,
                dirty=_remap_index(
                    now.buyer.dirty, current_order, before_order, item.buyer.dirty
                ),
            )

        items.append(now.model_copy(update={"buyer": buyer, "split": split}))

    return current.model_copy(update={"contributors": contributors, "items": items})
