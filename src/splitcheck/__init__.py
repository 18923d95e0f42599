"""SplitCheck - Split shared bills between contributors by arbitrary ratios."""

__version__ = "0.1.0"

from .allocator import allocate
from .config import Settings, load_settings
from .formatter import (
    format_currency,
    format_integer,
    parse_currency_amount,
    parse_ratio_amount,
)
from .ledger import compute_ledger, summarize_contributor
from .models import (
    CheckDocument,
    CheckForm,
    DirtyClean,
    EditContext,
    LedgerSummary,
    Snapshot,
)
from .reconciler import Reconciler
from .store import DocumentStore, MemoryStore, SqliteStore

__all__ = [
    "allocate",
    "Settings",
    "load_settings",
    "format_currency",
    "format_integer",
    "parse_currency_amount",
    "parse_ratio_amount",
    "compute_ledger",
    "summarize_contributor",
    "CheckDocument",
    "CheckForm",
    "DirtyClean",
    "EditContext",
    "LedgerSummary",
    "Snapshot",
    "Reconciler",
    "DocumentStore",
    "MemoryStore",
    "SqliteStore",
]
