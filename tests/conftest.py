"""Shared fixtures for SplitCheck tests."""

import asyncio

import pytest

from splitcheck.exceptions import StoreWriteError
from splitcheck.models import (
    CheckDocument,
    ContributorRecord,
    EditContext,
    ItemRecord,
)
from splitcheck.store import MemoryStore
from splitcheck.transformer import check_to_form

TIMESTAMP = 1_700_000_000_000


class RecordingStore(MemoryStore):
    """MemoryStore that records write attempts and can fail or hold them."""

    def __init__(self):
        super().__init__()
        self.writes: list[dict] = []
        self.fail_writes = False
        self.gate: asyncio.Event | None = None

    async def update_fields(self, check_id, fields):
        self.writes.append(fields)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_writes:
            raise StoreWriteError("network unavailable")
        await super().update_fields(check_id, fields)


def make_document(
    names: list[str] | None = None,
    items: list[tuple[int, int, list[int]]] | None = None,
) -> CheckDocument:
    """Build a check; items are (cost, buyer, split) tuples."""
    names = ["Alice", "Bob", "Carol"] if names is None else names
    items = [] if items is None else items
    return CheckDocument(
        title="Dinner",
        contributors=[
            ContributorRecord(id=f"c{index}", name=name)
            for index, name in enumerate(names)
        ],
        items=[
            ItemRecord(
                id=f"i{index}",
                name=f"Item {index + 1}",
                cost=cost,
                buyer=buyer,
                split=split,
            )
            for index, (cost, buyer, split) in enumerate(items)
        ],
        updated_at=TIMESTAMP - 1000,
    )


@pytest.fixture
def context():
    """A writable en-US session."""
    return EditContext(locale="en-US", currency="USD", write_access=True, access_rank=0)


@pytest.fixture
def read_only_context():
    return EditContext(
        locale="en-US", currency="USD", write_access=False, access_rank=2
    )


@pytest.fixture
def make_form(context):
    """Hydrate a form from make_document arguments."""

    def _make_form(names=None, items=None):
        return check_to_form(make_document(names, items), context)

    return _make_form


@pytest.fixture
def store():
    return RecordingStore()
