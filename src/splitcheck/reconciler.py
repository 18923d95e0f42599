"""Reconciliation of a local CheckForm with its remote CheckDocument.

The Reconciler owns one editing session on one check:

- hydrate: build the form from a snapshot (everything Synced)
- commit_field: write one pending field and advance its clean value
- apply_remote_snapshot: fold another session's changes in without
  clobbering the local user's in-flight edits
- structural edits: add/delete contributors and items, written immediately

Write failures never raise out of the reconciler: they are logged and
reported through the notifier, leaving the form editable.
"""

import logging
import time
from collections.abc import Callable

from .editing import (
    FieldPath,
    add_contributor,
    add_item,
    delete_contributor,
    delete_item,
    edit_field,
    get_field,
    mark_committed,
    merge_remote_value,
    pending_paths,
    revert_structural_edit,
    set_clean,
    top_level_field,
)
from .exceptions import (
    DocumentNotFoundError,
    DocumentRemovedError,
    PermissionDeniedError,
    StoreError,
)
from .ledger import compute_check_ledger, summarize_contributor
from .models import (
    CheckDocument,
    CheckForm,
    ContributorForm,
    ContributorSummary,
    DirtyClean,
    EditContext,
    ItemForm,
    LedgerSummary,
    Notification,
    Snapshot,
)
from .store import DocumentStore, Unsubscribe, generate_uid
from .strings import DEFAULT_STRINGS, interpolate_string, validate_strings
from .transformer import check_to_form, form_to_fields, normalize_value

logger = logging.getLogger(__name__)

Notifier = Callable[[Notification], None]


def now_ms() -> int:
    """Current time in epoch milliseconds, the format of updated_at."""
    return int(time.time() * 1000)


def merge_document(
    form: CheckForm, document: CheckDocument, context: EditContext
) -> CheckForm:
    """
    Fold a remote document into a form.

    Contributors and items are matched by id and take the remote order.
    Matched fields go through merge_remote_value, so pending edits keep their
    dirty value. Entries that only exist remotely arrive Synced; entries
    missing remotely are dropped. Split entries are matched by contributor id
    so a remote contributor change cannot shift a pending ratio onto someone
    else.
    """
    remote = check_to_form(document, context)
    local_contributors = {c.id: c for c in form.contributors}
    local_items = {item.id: item for item in form.items}
    local_order = [c.id for c in form.contributors]
    remote_order = [c.id for c in remote.contributors]

    contributors = []
    for contributor in remote.contributors:
        local = local_contributors.get(contributor.id)
        if local is None:
            contributors.append(contributor)
            continue
        contributors.append(
            ContributorForm(
                id=contributor.id,
                name=merge_remote_value(local.name, contributor.name.clean),
            )
        )

    items = []
    for item in remote.items:
        local_item = local_items.get(item.id)
        if local_item is None:
            items.append(item)
            continue

        local_splits = dict(zip(local_order, local_item.split, strict=False))
        split: list[DirtyClean] = []
        for contributor_id, remote_split in zip(remote_order, item.split, strict=True):
            local_split = local_splits.get(contributor_id)
            if local_split is None:
                split.append(remote_split)
            else:
                split.append(merge_remote_value(local_split, remote_split.clean))

        items.append(
            ItemForm(
                id=item.id,
                name=merge_remote_value(local_item.name, item.name.clean),
                cost=merge_remote_value(local_item.cost, item.cost.clean),
                buyer=merge_remote_value(local_item.buyer, item.buyer.clean),
                split=split,
            )
        )

    return CheckForm(
        title=merge_remote_value(form.title, remote.title.clean),
        contributors=contributors,
        items=items,
        updated_at=document.updated_at,
    )


class Reconciler:
    """One editing session on one check."""

    def __init__(
        self,
        store: DocumentStore,
        check_id: str,
        context: EditContext,
        notify: Notifier | None = None,
        on_removed: Callable[[], None] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Initialize the reconciler.

        Args:
            store: Document store holding the check
            check_id: Id of the check being edited
            context: Locale, currency, access and strings for this session
            notify: Receives non-blocking user notifications
            on_removed: Called once if the check is deleted or access is lost
            clock: Source of updated_at timestamps
        """
        self.store = store
        self.check_id = check_id
        self.context = context
        self.strings = validate_strings(context.strings or DEFAULT_STRINGS)
        self.form = CheckForm(title=DirtyClean[str].synced(""))
        self.removed = False
        self._notify = notify
        self._on_removed = on_removed
        self._clock = clock
        self._unsubscribe: Unsubscribe | None = None
        self._structural_pending = False

    @classmethod
    async def open(
        cls, store: DocumentStore, check_id: str, context: EditContext, **kwargs
    ) -> "Reconciler":
        """
        Load a check and hydrate a reconciler for it.

        Raises:
            DocumentNotFoundError: If the check does not exist
        """
        document = await store.get_document(check_id)
        if document is None:
            raise DocumentNotFoundError(check_id)
        reconciler = cls(store, check_id, context, **kwargs)
        reconciler.hydrate(document)
        return reconciler

    # ========================================================================
    # Snapshots
    # ========================================================================

    def hydrate(self, document: CheckDocument) -> CheckForm:
        """Replace the form with one built from a snapshot."""
        self.form = check_to_form(document, self.context)
        return self.form

    def apply_remote_snapshot(self, snapshot: Snapshot) -> bool:
        """
        Fold a remote snapshot into the form.

        Returns:
            True if the snapshot was applied, False if it was ignored because
            it only reflects this session's own pending writes

        Raises:
            DocumentRemovedError: If the snapshot says the check is gone
        """
        if self.removed:
            return False
        if snapshot.has_pending_writes:
            logger.debug(f"Ignoring snapshot of check {self.check_id} with own writes")
            return False
        if snapshot.document is None:
            self._mark_removed()
            raise DocumentRemovedError(self.check_id)

        self.form = merge_document(self.form, snapshot.document, self.context)
        return True

    def listen(self):
        """Subscribe to remote changes of the check."""
        if self._unsubscribe is not None or self.removed:
            return
        unsubscribe = self.store.subscribe(
            self.check_id, self._handle_snapshot, self._handle_error
        )
        if self.removed:
            # Document was already gone in the initial snapshot
            unsubscribe()
        else:
            self._unsubscribe = unsubscribe

    def close(self):
        """Stop listening to remote changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _handle_snapshot(self, snapshot: Snapshot):
        try:
            self.apply_remote_snapshot(snapshot)
        except DocumentRemovedError:
            logger.info(f"Check {self.check_id} was removed, stopped listening")

    def _handle_error(self, error: Exception):
        if isinstance(error, PermissionDeniedError):
            logger.warning(f"Lost access to check {self.check_id}: {error}")
            self._mark_removed()
            return
        logger.error(f"Subscription error on check {self.check_id}: {error}")
        self._report("error", str(error))

    def _mark_removed(self):
        if self.removed:
            return
        self.removed = True
        self.close()
        if self._on_removed is not None:
            self._on_removed()

    def _report(self, level: str, message: str):
        if self._notify is not None:
            self._notify(Notification(level=level, message=message))

    # ========================================================================
    # Field edits
    # ========================================================================

    def edit(self, path: FieldPath, value) -> bool:
        """
        Apply a local edit to a field's dirty value.

        Returns:
            False if the edit was rejected (read-only session or removed check)
        """
        if self.removed:
            return False
        new_form = edit_field(self.form, path, value, self.context)
        if new_form is self.form:
            return False
        self.form = new_form
        return True

    def _path_ids(self, path: FieldPath) -> tuple:
        """Replace the indexes in a path with the ids they point at."""
        match path:
            case ("contributors", int(index), field):
                return ("contributors", self.form.contributors[index].id, field)
            case ("items", int(index), "split", int(split_index)):
                contributor_id = self.form.contributors[split_index].id
                return ("items", self.form.items[index].id, "split", contributor_id)
            case ("items", int(index), field):
                return ("items", self.form.items[index].id, field)
        return path

    def _path_from_ids(self, ids: tuple) -> FieldPath | None:
        """Resolve an id path against the current form; None if it is gone."""
        contributor_ids = [c.id for c in self.form.contributors]
        item_ids = [item.id for item in self.form.items]
        match ids:
            case ("contributors", contributor_id, field):
                if contributor_id not in contributor_ids:
                    return None
                return ("contributors", contributor_ids.index(contributor_id), field)
            case ("items", item_id, "split", contributor_id):
                if item_id not in item_ids or contributor_id not in contributor_ids:
                    return None
                return (
                    "items",
                    item_ids.index(item_id),
                    "split",
                    contributor_ids.index(contributor_id),
                )
            case ("items", item_id, field):
                if item_id not in item_ids:
                    return None
                return ("items", item_ids.index(item_id), field)
        return ids

    async def commit_field(self, path: FieldPath) -> bool:
        """
        Commit a field when its edit ends (blur or explicit save).

        Steps:
        1. Skip if the session is read-only or the field is Synced, and defer
           while a structural edit is outstanding
        2. Normalize the dirty value through the value parser
        3. Write the whole top-level field it belongs to, plus updated_at
        4. On success, set the field's clean value to the normalized value

        On failure the dirty value is kept so the user can retry.

        Returns:
            True if a write succeeded, False if nothing was written
        """
        if self.removed or not self.context.write_access:
            logger.debug(f"Rejected commit of {path!r}")
            return False
        if self._structural_pending:
            # The form holds arrays the store has not confirmed yet
            logger.debug(f"Deferred commit of {path!r}: structural edit pending")
            return False

        field = get_field(self.form, path)
        if not field.pending:
            return False

        committed_dirty = field.dirty
        normalized = normalize_value(path, committed_dirty, self.context)
        ids = self._path_ids(path)
        top_level = top_level_field(path)

        candidate = mark_committed(self.form, path, normalized)
        timestamp = self._clock()
        fields = form_to_fields(candidate, self.context, [top_level])
        fields["updated_at"] = timestamp

        try:
            await self.store.update_fields(self.check_id, fields)
        except StoreError as e:
            logger.error(f"Failed to commit {path!r} on check {self.check_id}: {e}")
            self._report("error", str(e))
            return False

        # The form may have changed while the write was outstanding
        current_path = self._path_from_ids(ids)
        if current_path is not None:
            current = get_field(self.form, current_path)
            if current.dirty == committed_dirty:
                self.form = mark_committed(self.form, current_path, normalized)
            else:
                self.form = set_clean(self.form, current_path, normalized)
        self.form = self.form.model_copy(update={"updated_at": timestamp})

        logger.info(f"Committed {top_level} of check {self.check_id}")
        return True

    async def commit_pending(self) -> int:
        """Commit every pending field; returns how many writes succeeded."""
        committed = 0
        for path in pending_paths(self.form):
            if await self.commit_field(path):
                committed += 1
        return committed

    # ========================================================================
    # Structural edits
    # ========================================================================

    async def _structural_edit(
        self,
        description: str,
        mutate: Callable[[CheckForm], CheckForm],
        fields: list[str],
    ) -> bool:
        """
        Apply a structural edit locally and write the resulting arrays.

        Only one structural edit may be outstanding at a time; a second one is
        rejected, and field commits wait until it settles. A failed write
        restores the contributors and items arrays as they were before the
        edit, keeping field edits made while the write was outstanding.
        """
        if self.removed or not self.context.write_access:
            logger.debug(f"Rejected {description}: read-only or removed")
            return False
        if self._structural_pending:
            logger.debug(f"Rejected {description}: another structural edit pending")
            return False

        self._structural_pending = True
        try:
            before = self.form
            applied = mutate(before)
            self.form = applied
            timestamp = self._clock()
            update = form_to_fields(self.form, self.context, fields)
            update["updated_at"] = timestamp

            try:
                await self.store.update_fields(self.check_id, update)
            except StoreError as e:
                logger.error(f"Failed to {description} on check {self.check_id}: {e}")
                self.form = revert_structural_edit(before, applied, self.form)
                self._report("error", str(e))
                return False

            self.form = self.form.model_copy(update={"updated_at": timestamp})
            logger.info(f"Applied {description} on check {self.check_id}")
            return True
        finally:
            self._structural_pending = False

    def _default_name(self, key: str, index: int) -> str:
        return interpolate_string(self.strings[key], {"index": str(index)})

    async def add_contributor(self, name: str | None = None) -> bool:
        """Add a contributor at the end; every item gets a ratio 1 split."""
        contributor_id = generate_uid()

        def mutate(form: CheckForm) -> CheckForm:
            default = self._default_name("contributorIndex", len(form.contributors) + 1)
            return add_contributor(form, contributor_id, name or default, self.context)

        return await self._structural_edit(
            "add contributor", mutate, ["contributors", "items"]
        )

    async def delete_contributor(self, contributor_index: int) -> bool:
        """Remove a contributor along with their split entries."""
        if not 0 <= contributor_index < len(self.form.contributors):
            logger.debug(f"Rejected delete contributor {contributor_index}: no index")
            return False

        return await self._structural_edit(
            "delete contributor",
            lambda form: delete_contributor(form, contributor_index, self.context),
            ["contributors", "items"],
        )

    async def add_item(self, name: str | None = None) -> bool:
        """Add an item costing 0, split evenly between all contributors."""
        item_id = generate_uid()

        def mutate(form: CheckForm) -> CheckForm:
            default = self._default_name("itemIndex", len(form.items) + 1)
            return add_item(form, item_id, name or default, self.context)

        return await self._structural_edit("add item", mutate, ["items"])

    async def delete_item(self, item_index: int) -> bool:
        if not 0 <= item_index < len(self.form.items):
            logger.debug(f"Rejected delete item {item_index}: no such index")
            return False

        return await self._structural_edit(
            "delete item",
            lambda form: delete_item(form, item_index, self.context),
            ["items"],
        )

    # ========================================================================
    # Totals
    # ========================================================================

    def ledger(self) -> LedgerSummary:
        """Totals for the form as currently shown."""
        return compute_check_ledger(self.form, self.context)

    def summary(self, contributor_index: int) -> ContributorSummary:
        """Item-by-item breakdown for one contributor."""
        return summarize_contributor(
            self.form.contributors,
            self.form.items,
            contributor_index,
            self.context.locale,
            self.context.currency,
        )
