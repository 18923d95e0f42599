"""Tests for the document stores."""

import pytest
from conftest import make_document

from splitcheck.exceptions import DocumentNotFoundError, StoreWriteError
from splitcheck.models import CheckDocument
from splitcheck.store import MemoryStore, SqliteStore, apply_update, generate_uid


@pytest.fixture
def sqlite_store(tmp_path):
    """Create a temporary database."""
    store = SqliteStore(tmp_path / "test.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield MemoryStore()
        return
    with SqliteStore(tmp_path / "test.db") as store:
        yield store


class TestApplyUpdate:
    def test_replaces_top_level_fields(self):
        document = make_document(items=[(1000, 0, [1, 1, 1])])

        updated = apply_update(document, {"title": "Brunch", "updated_at": 5})

        assert updated.title == "Brunch"
        assert updated.updated_at == 5
        assert updated.items == document.items

    def test_unknown_field_is_rejected(self):
        with pytest.raises(StoreWriteError, match="total"):
            apply_update(make_document(), {"total": 10})

    def test_invalid_value_is_rejected(self):
        with pytest.raises(StoreWriteError):
            apply_update(make_document(), {"items": [{"id": "i0", "cost": "a lot"}]})


class TestDocumentStore:
    """Behaviour shared by every store."""

    async def test_create_and_get(self, any_store):
        check_id = any_store.create_document(make_document(items=[(50, 1, [0, 1, 1])]))

        document = await any_store.get_document(check_id)

        assert document == make_document(items=[(50, 1, [0, 1, 1])])

    async def test_get_missing(self, any_store):
        assert await any_store.get_document(generate_uid()) is None

    async def test_update_fields(self, any_store):
        check_id = any_store.create_document(make_document())

        await any_store.update_fields(check_id, {"title": "Brunch"})

        document = await any_store.get_document(check_id)
        assert document.title == "Brunch"
        assert [c.name for c in document.contributors] == ["Alice", "Bob", "Carol"]

    async def test_update_missing_check(self, any_store):
        with pytest.raises(StoreWriteError):
            await any_store.update_fields("nope", {"title": "Brunch"})

    async def test_update_unknown_field(self, any_store):
        check_id = any_store.create_document(make_document())
        with pytest.raises(StoreWriteError):
            await any_store.update_fields(check_id, {"owner_id": "u1"})

    async def test_subscribe_delivers_current_and_later_snapshots(self, any_store):
        check_id = any_store.create_document(make_document())
        snapshots = []

        unsubscribe = any_store.subscribe(check_id, snapshots.append, pytest.fail)
        await any_store.update_fields(check_id, {"title": "Brunch"})
        unsubscribe()
        await any_store.update_fields(check_id, {"title": "Supper"})

        assert [s.document.title for s in snapshots] == ["Dinner", "Brunch"]
        assert not any(s.has_pending_writes for s in snapshots)

    async def test_delete_notifies_subscribers(self, any_store):
        check_id = any_store.create_document(make_document())
        snapshots = []
        any_store.subscribe(check_id, snapshots.append, pytest.fail)

        any_store.delete_document(check_id)

        assert snapshots[-1].document is None
        assert await any_store.get_document(check_id) is None

    async def test_failing_handler_does_not_break_write(self, any_store):
        check_id = any_store.create_document(make_document())
        errors = []
        snapshots = []

        def broken_handler(snapshot):
            if snapshot.document.title == "Brunch":
                raise ValueError("render failed")

        any_store.subscribe(check_id, broken_handler, errors.append)
        any_store.subscribe(check_id, snapshots.append, pytest.fail)
        await any_store.update_fields(check_id, {"title": "Brunch"})

        assert [str(e) for e in errors] == ["render failed"]
        assert snapshots[-1].document.title == "Brunch"
        assert (await any_store.get_document(check_id)).title == "Brunch"

    def test_unsubscribe_forgets_check(self, any_store):
        check_id = any_store.create_document(make_document())
        first = any_store.subscribe(check_id, lambda snapshot: None, pytest.fail)
        second = any_store.subscribe(check_id, lambda snapshot: None, pytest.fail)

        first()
        assert check_id in any_store._subscriptions._listeners
        second()
        second()

        assert check_id not in any_store._subscriptions._listeners

    def test_delete_missing(self, any_store):
        with pytest.raises(DocumentNotFoundError):
            any_store.delete_document("nope")

    def test_subscribe_to_missing_check(self, any_store):
        snapshots = []
        any_store.subscribe("nope", snapshots.append, pytest.fail)
        assert snapshots[0].document is None


class TestMemoryStore:
    def test_documents_are_copied(self):
        store = MemoryStore()
        document = make_document()
        check_id = store.create_document(document, check_id="fixed")

        document.title = "Changed"

        assert check_id == "fixed"
        assert store._documents["fixed"].title == "Dinner"

    def test_push_snapshot_with_pending_writes(self):
        store = MemoryStore()
        check_id = store.create_document(make_document())
        snapshots = []
        store.subscribe(check_id, snapshots.append, pytest.fail)

        store.push_snapshot(check_id, has_pending_writes=True)

        assert snapshots[-1].has_pending_writes

    def test_fail_subscriptions(self):
        store = MemoryStore()
        check_id = store.create_document(make_document())
        errors = []
        store.subscribe(check_id, lambda snapshot: None, errors.append)

        store.fail_subscriptions(check_id, RuntimeError("offline"))

        assert [str(e) for e in errors] == ["offline"]
        assert store.subscriber_count(check_id) == 1


class TestSqliteStore:
    def test_list_documents(self, sqlite_store):
        first = sqlite_store.create_document(CheckDocument(title="First"))
        second = sqlite_store.create_document(CheckDocument(title="Second"))

        listed = dict(sqlite_store.list_documents())

        assert set(listed) == {first, second}
        assert listed[second].title == "Second"

    async def test_documents_persist_across_connections(self, tmp_path):
        db_path = tmp_path / "test.db"
        with SqliteStore(db_path) as store:
            check_id = store.create_document(make_document())
            await store.update_fields(check_id, {"title": "Brunch"})

        with SqliteStore(db_path) as store:
            document = await store.get_document(check_id)

        assert document.title == "Brunch"
