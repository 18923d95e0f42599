"""Document store contract and the stores shipped with SplitCheck.

The reconciler only talks to a store through DocumentStore. Writes replace
whole top-level fields; nested fields are never patched on their own.
"""

import json
import logging
import sqlite3
import uuid
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .exceptions import DocumentNotFoundError, StoreError, StoreWriteError
from .models import CheckDocument, Snapshot

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[Snapshot], None]
ErrorHandler = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

UPDATABLE_FIELDS = frozenset(
    {
        "contributors",
        "editor",
        "invite",
        "items",
        "owner",
        "title",
        "updated_at",
        "viewer",
    }
)


def generate_uid() -> str:
    """Generate an id for a new check, contributor or item."""
    return uuid.uuid4().hex


class DocumentStore(Protocol):
    """What the core needs from the persistence/sync layer."""

    async def get_document(self, check_id: str) -> CheckDocument | None: ...

    def subscribe(
        self,
        check_id: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe: ...

    async def update_fields(self, check_id: str, fields: dict[str, Any]) -> None: ...


def apply_update(document: CheckDocument, fields: dict[str, Any]) -> CheckDocument:
    """
    Apply a partial update to a document.

    Raises:
        StoreWriteError: If a field is unknown or a value is invalid
    """
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise StoreWriteError(f"Fields cannot be updated: {', '.join(unknown)}")

    data = document.model_dump()
    data.update(fields)
    try:
        return CheckDocument.model_validate(data)
    except ValidationError as e:
        raise StoreWriteError(f"Invalid update: {e}") from e


class _Subscriptions:
    """Listener bookkeeping shared by the concrete stores."""

    def __init__(self):
        self._listeners: dict[str, list[tuple[SnapshotHandler, ErrorHandler]]] = {}

    def add(
        self, check_id: str, on_snapshot: SnapshotHandler, on_error: ErrorHandler
    ) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        self._listeners.setdefault(check_id, []).append(entry)

        def unsubscribe():
            listeners = self._listeners.get(check_id, [])
            if entry in listeners:
                listeners.remove(entry)
            if not listeners:
                self._listeners.pop(check_id, None)

        return unsubscribe

    def notify(self, check_id: str, snapshot: Snapshot):
        # Copy: handlers may unsubscribe while being notified
        for on_snapshot, on_error in list(self._listeners.get(check_id, [])):
            try:
                on_snapshot(snapshot)
            except Exception as e:
                # Handler errors go to on_error, never back to the writer
                logger.error(f"Snapshot handler failed for check {check_id}: {e}")
                on_error(e)

    def fail(self, check_id: str, error: Exception):
        for _on_snapshot, on_error in list(self._listeners.get(check_id, [])):
            on_error(error)

    def count(self, check_id: str) -> int:
        return len(self._listeners.get(check_id, []))


class MemoryStore:
    """In-process document store.

    Subscribers get the current snapshot on subscribe and a new one after
    every write or deletion.
    """

    def __init__(self):
        self._documents: dict[str, CheckDocument] = {}
        self._subscriptions = _Subscriptions()

    def create_document(
        self, document: CheckDocument, check_id: str | None = None
    ) -> str:
        """Store a new document and return its id."""
        check_id = check_id or generate_uid()
        self._documents[check_id] = document.model_copy(deep=True)
        return check_id

    def delete_document(self, check_id: str):
        """Delete a document and tell subscribers it is gone."""
        if self._documents.pop(check_id, None) is None:
            raise DocumentNotFoundError(check_id)
        self._subscriptions.notify(check_id, Snapshot(document=None))

    def push_snapshot(self, check_id: str, has_pending_writes: bool = False):
        """Deliver the current state of a document to its subscribers."""
        self._subscriptions.notify(
            check_id,
            Snapshot(
                document=self._copy(check_id), has_pending_writes=has_pending_writes
            ),
        )

    def fail_subscriptions(self, check_id: str, error: Exception):
        """Report an error to every subscriber of a document."""
        self._subscriptions.fail(check_id, error)

    def subscriber_count(self, check_id: str) -> int:
        return self._subscriptions.count(check_id)

    def _copy(self, check_id: str) -> CheckDocument | None:
        document = self._documents.get(check_id)
        return document.model_copy(deep=True) if document else None

    async def get_document(self, check_id: str) -> CheckDocument | None:
        return self._copy(check_id)

    def subscribe(
        self,
        check_id: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        unsubscribe = self._subscriptions.add(check_id, on_snapshot, on_error)
        on_snapshot(Snapshot(document=self._copy(check_id)))
        return unsubscribe

    async def update_fields(self, check_id: str, fields: dict[str, Any]) -> None:
        document = self._documents.get(check_id)
        if document is None:
            raise StoreWriteError(f"Check {check_id} does not exist")

        self._documents[check_id] = apply_update(document, fields)
        logger.debug(f"Updated check {check_id}: {', '.join(sorted(fields))}")
        self.push_snapshot(check_id)


class SqliteStore:
    """SQLite-backed document store.

    Documents are kept as JSON, one row per check. Subscriptions only see
    writes made through this instance.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._subscriptions = _Subscriptions()
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS checks (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                modified_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )
        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _load(self, check_id: str) -> CheckDocument | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT data FROM checks WHERE id = ?", (check_id,))
        row = cursor.fetchone()
        if not row:
            return None
        return CheckDocument.model_validate(json.loads(row["data"]))

    def _save(self, check_id: str, document: CheckDocument):
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO checks (id, data, modified_at)
            VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                modified_at = excluded.modified_at
            """,
            (check_id, document.model_dump_json(), datetime.now().isoformat()),
        )
        self.conn.commit()

    def create_document(
        self, document: CheckDocument, check_id: str | None = None
    ) -> str:
        """Store a new document and return its id."""
        check_id = check_id or generate_uid()
        self._save(check_id, document)
        return check_id

    def delete_document(self, check_id: str):
        """Delete a document and tell subscribers it is gone."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM checks WHERE id = ?", (check_id,))
        self.conn.commit()
        if cursor.rowcount == 0:
            raise DocumentNotFoundError(check_id)
        self._subscriptions.notify(check_id, Snapshot(document=None))

    def list_documents(self) -> list[tuple[str, CheckDocument]]:
        """All checks, most recently modified first."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT id, data FROM checks ORDER BY modified_at DESC")
        return [
            (row["id"], CheckDocument.model_validate(json.loads(row["data"])))
            for row in cursor.fetchall()
        ]

    async def get_document(self, check_id: str) -> CheckDocument | None:
        return self._load(check_id)

    def subscribe(
        self,
        check_id: str,
        on_snapshot: SnapshotHandler,
        on_error: ErrorHandler,
    ) -> Unsubscribe:
        unsubscribe = self._subscriptions.add(check_id, on_snapshot, on_error)
        try:
            on_snapshot(Snapshot(document=self._load(check_id)))
        except sqlite3.Error as e:
            on_error(StoreError(f"Failed to read check {check_id}: {e}"))
        return unsubscribe

    async def update_fields(self, check_id: str, fields: dict[str, Any]) -> None:
        try:
            document = self._load(check_id)
            if document is None:
                raise StoreWriteError(f"Check {check_id} does not exist")
            updated = apply_update(document, fields)
            self._save(check_id, updated)
        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to update check {check_id}: {e}") from e

        logger.debug(f"Updated check {check_id}: {', '.join(sorted(fields))}")
        self._subscriptions.notify(check_id, Snapshot(document=updated))
