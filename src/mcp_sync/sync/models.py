"""Pydantic models for the configuration synchronization engine.

Defines the core data contracts used across all sync modules:

- ``CanonicalEntry``: Schema-neutral definition of one MCP server.
- ``RawRecord``: One store-native record (key plus JSON body).
- ``ChangeState`` / ``SyncStatus``: Classification of one name.
- ``SyncItem`` / ``SyncPlan``: Result of an analysis run.
- ``ApplyOutcome`` / ``EntryWrite`` / ``ApplyReport``: Result of an apply.

All models are frozen (immutable) and serialise cleanly to JSON.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class StoreId(str, Enum):
    """Identity of one side of a synchronized store pair."""

    A = "a"
    B = "b"

    @property
    def other(self) -> StoreId:
        """The opposite store of the pair."""
        return StoreId.B if self is StoreId.A else StoreId.A


class Transport(str, Enum):
    """How a client reaches the server."""

    LOCAL = "local"
    REMOTE = "remote"


class CanonicalEntry(BaseModel):
    """Normalized representation of one server definition.

    Attributes:
        name: Unique identifier within its store.
        enabled: Whether the server is active.
        transport: ``local`` (spawned process) or ``remote`` (URL).
        argv: Executable followed by its arguments (local only).
        endpoint_url: Server URL (remote only).
        environment: Environment variables passed to the process.
        headers: HTTP headers sent to a remote server.
    """

    name: str = Field(min_length=1)
    enabled: bool = True
    transport: Transport
    argv: list[str] = Field(default_factory=list)
    endpoint_url: str | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_transport_shape(self) -> CanonicalEntry:
        if self.transport == Transport.LOCAL:
            if not self.argv or not self.argv[0]:
                raise ValueError("local entry requires a non-empty argv")
            if self.endpoint_url is not None:
                raise ValueError("local entry cannot have an endpoint_url")
        else:
            if not self.endpoint_url:
                raise ValueError("remote entry requires an endpoint_url")
            if self.argv:
                raise ValueError("remote entry cannot have argv")
        return self

    def content_signature(self) -> tuple:
        """Identity used for duplicate detection (environment ignored)."""
        if self.transport == Transport.LOCAL:
            return (self.transport.value, tuple(self.argv))
        return (self.transport.value, self.endpoint_url)


class RawRecord(BaseModel):
    """A store-native record: the key it lives under and its JSON body."""

    key: str
    body: dict[str, Any]

    model_config = {"frozen": True}


class MalformedRecord(BaseModel):
    """A raw record that could not be normalized.

    Attributes:
        store: Store the record came from.
        name: Canonical name the record would have had.
        key: Raw key of the offending record.
        reason: Why normalization failed.
    """

    store: StoreId
    name: str | None = None
    key: str | None = None
    reason: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class SyncStatus(str, Enum):
    """Named change state of one entry relative to the other store."""

    SYNCED = "synced"
    CREATED_IN_A = "created_in_a"
    CREATED_IN_B = "created_in_b"
    UPDATED_IN_A = "updated_in_a"
    UPDATED_IN_B = "updated_in_b"
    DELETED_FROM_A = "deleted_from_a"
    DELETED_FROM_B = "deleted_from_b"
    CONFLICT = "conflict"


class ChangeState(BaseModel):
    """Store-agnostic classification facts for one name.

    Attributes:
        present_in: Stores that currently hold the name.
        changed_in: Present stores whose value differs from the baseline.
            Without a baseline every present store counts as changed.
        has_baseline: Whether a previously-synced value exists.
        in_agreement: Whether every present value is identical.
    """

    present_in: frozenset[StoreId]
    changed_in: frozenset[StoreId] = frozenset()
    has_baseline: bool = False
    in_agreement: bool = True

    model_config = {"frozen": True}


class DiffTag(str, Enum):
    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


class DiffLine(BaseModel):
    """One line of a line-level diff."""

    tag: DiffTag
    content: str

    model_config = {"frozen": True}


class ComparisonMode(str, Enum):
    """How a conflict is rendered side by side."""

    RAW = "raw"
    AS_A = "as-a"
    AS_B = "as-b"


class SyncItem(BaseModel):
    """One row of a sync plan.

    Attributes:
        name: Canonical entry name.
        status: Named classification.
        state: Underlying store-agnostic classification facts.
        action_description: Human text describing the proposed action.
        entry_a: Canonical value in store A, if present.
        entry_b: Canonical value in store B, if present.
        key_a: Raw key the entry lives under in store A.
        key_b: Raw key the entry lives under in store B.
        raw_a_json: Pretty JSON of store A's raw record.
        raw_b_json: Pretty JSON of store B's raw record.
        a_as_b_json: Store A's entry re-expressed in store B's schema.
        b_as_a_json: Store B's entry re-expressed in store A's schema.
        unified_diff: Classic unified diff text (conflicts only).
        diff_lines: Structured diff lines (conflicts only).
        additions: Number of inserted lines in ``diff_lines``.
        deletions: Number of deleted lines in ``diff_lines``.
        content_matches: Names in the opposite store with identical content.
        render_errors: Preview rendering failures for this item.
    """

    name: str
    status: SyncStatus
    state: ChangeState
    action_description: str
    entry_a: CanonicalEntry | None = None
    entry_b: CanonicalEntry | None = None
    key_a: str | None = None
    key_b: str | None = None
    raw_a_json: str | None = None
    raw_b_json: str | None = None
    a_as_b_json: str | None = None
    b_as_a_json: str | None = None
    unified_diff: str | None = None
    diff_lines: list[DiffLine] | None = None
    additions: int = 0
    deletions: int = 0
    content_matches: list[str] = Field(default_factory=list)
    render_errors: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    def entry_in(self, store: StoreId) -> CanonicalEntry | None:
        """Return the canonical value held by *store*."""
        return self.entry_a if store == StoreId.A else self.entry_b

    def key_in(self, store: StoreId) -> str | None:
        """Return the raw key used by *store*."""
        return self.key_a if store == StoreId.A else self.key_b

    @property
    def has_duplicates(self) -> bool:
        return bool(self.content_matches)


class SyncPlan(BaseModel):
    """Classified, name-ordered result of one analysis run."""

    pair_id: str
    items: list[SyncItem] = Field(default_factory=list)
    malformed: list[MalformedRecord] = Field(default_factory=list)

    model_config = {"frozen": True}

    def get(self, name: str) -> SyncItem | None:
        """Return the item for *name*, or ``None`` if absent."""
        for item in self.items:
            if item.name == name:
                return item
        return None

    def by_status(self, *statuses: SyncStatus) -> list[SyncItem]:
        """Items whose status is one of *statuses*."""
        return [i for i in self.items if i.status in statuses]

    @property
    def conflicts(self) -> list[SyncItem]:
        return self.by_status(SyncStatus.CONFLICT)

    @property
    def incoming_a(self) -> list[SyncItem]:
        """Items that would change store A (store A should take them)."""
        return self.by_status(
            SyncStatus.CREATED_IN_B,
            SyncStatus.UPDATED_IN_B,
            SyncStatus.DELETED_FROM_B,
        )

    @property
    def incoming_b(self) -> list[SyncItem]:
        """Items that would change store B (store B should take them)."""
        return self.by_status(
            SyncStatus.CREATED_IN_A,
            SyncStatus.UPDATED_IN_A,
            SyncStatus.DELETED_FROM_A,
        )

    @property
    def is_synced(self) -> bool:
        return all(i.status == SyncStatus.SYNCED for i in self.items)


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


class SyncMode(str, Enum):
    """Direction policy for an apply call.

    The multi-store modes are reserved and currently rejected.
    """

    BIDIRECTIONAL = "bidirectional"
    ONE_WAY = "one-way"
    MULTI_SOURCE = "multi-source"
    MULTI_TARGET = "multi-target"


class ApplyAction(str, Enum):
    UPSERT_A = "upsert_a"
    UPSERT_B = "upsert_b"
    SKIP = "skip"


class EntryWrite(BaseModel):
    """Instruction for the persistence layer to upsert one record.

    Attributes:
        store: Store the record belongs to.
        name: Canonical entry name.
        record: Store-native key and body to write.
        replaces_key: Existing key to remove when it differs from
            ``record.key`` (e.g. when the disabled prefix changes).
    """

    store: StoreId
    name: str
    record: RawRecord
    replaces_key: str | None = None

    model_config = {"frozen": True}


class ApplyOutcome(BaseModel):
    """Result of applying one selected name."""

    name: str
    status: SyncStatus | None = None
    action: ApplyAction
    success: bool
    error: str | None = None
    note: str | None = None

    model_config = {"frozen": True}


class ApplyReport(BaseModel):
    """Aggregate result of one apply call.

    Attributes:
        pair_id: Store-pair identity the apply ran against.
        mode: Sync mode used.
        source: Authoritative store in one-way mode.
        destination: Overwritten store in one-way mode.
        outcomes: Per-name results, ordered by name.
        writes: Store-native upserts for the persistence layer.
        started_at: ISO 8601 timestamp when the apply started.
        completed_at: ISO 8601 timestamp when the apply completed.
    """

    pair_id: str
    mode: SyncMode
    source: StoreId | None = None
    destination: StoreId | None = None
    outcomes: list[ApplyOutcome] = Field(default_factory=list)
    writes: list[EntryWrite] = Field(default_factory=list)
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def applied(self) -> list[ApplyOutcome]:
        """Outcomes that produced a write."""
        return [
            o
            for o in self.outcomes
            if o.success and o.action != ApplyAction.SKIP
        ]

    @property
    def skipped(self) -> list[ApplyOutcome]:
        return [
            o
            for o in self.outcomes
            if o.success and o.action == ApplyAction.SKIP
        ]

    @property
    def failed(self) -> list[ApplyOutcome]:
        return [o for o in self.outcomes if not o.success]

    def writes_for(self, store: StoreId) -> list[EntryWrite]:
        """Writes targeting *store*."""
        return [w for w in self.writes if w.store == store]

    def summary(self) -> str:
        """Format a one-block summary of the apply run.

        Returns:
            Multi-line summary string with counts by outcome.
        """
        lines = [
            f"Apply report for pair '{self.pair_id}' ({self.mode.value})",
            f"  Written to A: {len(self.writes_for(StoreId.A))}",
            f"  Written to B: {len(self.writes_for(StoreId.B))}",
            f"  Skipped:      {len(self.skipped)}",
            f"  Failed:       {len(self.failed)}",
            f"  Total:        {len(self.outcomes)}",
        ]
        return "\n".join(lines)
