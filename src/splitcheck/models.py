"""Pydantic domain models for SplitCheck."""

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

# ============================================================================
# Remote document models
# ============================================================================


class CheckUser(BaseModel):
    """A user listed in one of a check's access maps."""

    display_name: str | None = None
    email: str | None = None
    photo_url: str | None = None


class InviteSettings(BaseModel):
    """Invite link settings for a check."""

    id: str = ""
    required: bool = False  # True = restricted, only listed users may edit
    type: Literal["editor", "viewer"] = "editor"


class ContributorRecord(BaseModel):
    """A contributor as stored in the remote document."""

    id: str
    name: str


class ItemRecord(BaseModel):
    """An item as stored in the remote document."""

    id: str
    name: str
    cost: int = 0  # minor units
    buyer: int = 0  # index into contributors
    split: list[int] = Field(default_factory=list)


class CheckDocument(BaseModel):
    """A check as held by the document store.

    Only whole top-level fields are ever written; see DocumentStore.
    """

    title: str = ""
    contributors: list[ContributorRecord] = Field(default_factory=list)
    items: list[ItemRecord] = Field(default_factory=list)
    invite: InviteSettings = Field(default_factory=InviteSettings)
    owner: dict[str, CheckUser] = Field(default_factory=dict)
    editor: dict[str, CheckUser] = Field(default_factory=dict)
    viewer: dict[str, CheckUser] = Field(default_factory=dict)
    updated_at: int | None = None  # epoch milliseconds

    @property
    def restricted(self) -> bool:
        """Whether editing is limited to users in the access maps."""
        return self.invite.required


class Snapshot(BaseModel):
    """A document snapshot delivered by a store subscription."""

    document: CheckDocument | None
    has_pending_writes: bool = False  # reflects this session's own writes


# ============================================================================
# Local form models
# ============================================================================


class DirtyClean(BaseModel, Generic[T]):
    """An editable value paired with its last persisted value.

    - clean: last value confirmed written to or read from the store
    - dirty: value currently shown and edited locally
    """

    clean: T
    dirty: T

    @classmethod
    def synced(cls, value: T) -> "DirtyClean[T]":
        """Create a value with no pending edit."""
        return cls(clean=value, dirty=value)

    @property
    def pending(self) -> bool:
        """True while a local edit has not been committed."""
        return self.dirty != self.clean


class ContributorForm(BaseModel):
    """Editable contributor state."""

    id: str
    name: DirtyClean[str]


class ItemForm(BaseModel):
    """Editable item state.

    Cost and split values hold display text; they are parsed when totals are
    computed and normalized when committed.
    """

    id: str
    name: DirtyClean[str]
    cost: DirtyClean[str]
    buyer: DirtyClean[int]
    split: list[DirtyClean[str]] = Field(default_factory=list)


class CheckForm(BaseModel):
    """Editable state of a whole check, hydrated from a CheckDocument."""

    title: DirtyClean[str]
    contributors: list[ContributorForm] = Field(default_factory=list)
    items: list[ItemForm] = Field(default_factory=list)
    updated_at: int | None = None


# ============================================================================
# Session models
# ============================================================================


class EditContext(BaseModel):
    """Everything an editing session needs that comes from outside the core.

    Access is decided elsewhere; the core only branches on these values.
    """

    locale: str = "en-US"
    currency: str = "USD"
    write_access: bool = False
    access_rank: int = 2  # 0 = owner, 1 = editor, 2 = viewer
    strings: dict[str, str] = Field(default_factory=dict)
    name_max_length: int = 255


class Notification(BaseModel):
    """A non-blocking message for the user."""

    level: Literal["info", "success", "error"]
    message: str


# ============================================================================
# Ledger models
# ============================================================================


class ContributorTotals(BaseModel):
    """Totals for one contributor, in minor units."""

    contributor_id: str
    name: str
    total_paid: int = 0
    total_owing: int = 0

    @property
    def balance(self) -> int:
        """Positive = owed money back, negative = owes money."""
        return self.total_paid - self.total_owing


class LedgerSummary(BaseModel):
    """Totals for a whole check.

    unassigned_paid holds cost whose buyer index points at no contributor;
    unallocated holds cost of items whose split ratios sum to 0.
    """

    currency: str
    total_cost: int = 0
    contributors: list[ContributorTotals] = Field(default_factory=list)
    unassigned_paid: int = 0
    unallocated: int = 0

    @property
    def is_closed(self) -> bool:
        """True when every unit of cost is both paid and owed by someone."""
        return self.unassigned_paid == 0 and self.unallocated == 0


class SummaryLine(BaseModel):
    """One item's contribution to a single contributor's totals."""

    item_id: str
    item_name: str
    cost: int
    paid: int
    owing: int


class ContributorSummary(BaseModel):
    """Item-by-item breakdown of one contributor's totals."""

    contributor_id: str
    name: str
    currency: str
    lines: list[SummaryLine] = Field(default_factory=list)
    total_paid: int = 0
    total_owing: int = 0

    @property
    def balance(self) -> int:
        return self.total_paid - self.total_owing
