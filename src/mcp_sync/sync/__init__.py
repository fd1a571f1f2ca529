"""MCP server configuration sync engine.

Public API for reconciling the MCP server entries of two configuration
stores that use incompatible schemas (Claude ``mcpServers`` and OpenCode
``mcp``).

Architecture
------------
The engine uses **baseline-based reconciliation**: both stores are
normalized into ``CanonicalEntry`` values and each side is compared with
the last value known to be identical on both sides.  Without a baseline,
differing values are always reported as conflicts.

The engine never performs I/O on configuration files.  It consumes
already-parsed records and returns store-native ``EntryWrite``
instructions; see ``mcp_sync.stores`` for the document layer.

Modules:

- ``engine``      -- ``SyncEngine``: analysis and apply for one pair.
- ``normalizer``  -- ``SchemaNormalizer``, ``ClaudeSchema``,
  ``OpenCodeSchema``: native records to canonical entries and back.
- ``baseline``    -- ``MemoryBaselineStore``, ``JsonBaselineStore``.
- ``classifier``  -- ``DiffClassifier``: per-name change state.
- ``duplicates``  -- ``DuplicateDetector``: same content, other name.
- ``differ``      -- ``ConflictRenderer``: diffs and schema previews.
- ``planner``     -- ``SyncPlanBuilder`` and ``resolve_conflict``.
- ``applier``     -- ``SyncApplier``: selected names to store writes.
- ``models``      -- Core data contracts.
- ``errors``      -- Exception hierarchy.
- ``reporter``    -- Human-readable and JSON formatting.

Usage example
-------------
::

    from mcp_sync.sync import StoreId, SyncEngine, format_sync_plan

    engine = SyncEngine(pair_id="laptop")
    plan = engine.analyze(claude_doc["mcpServers"], opencode_doc["mcp"])
    print(format_sync_plan(plan, "Claude", "OpenCode"))

    report = engine.apply(
        plan,
        {"web-search"},
        resolutions={"db": StoreId.A},
    )
    for write in report.writes:
        ...  # persist write.record into the store named by write.store
"""

from .applier import SyncApplier
from .baseline import BaselineStore, JsonBaselineStore, MemoryBaselineStore
from .classifier import DiffClassifier
from .differ import ConflictRenderer
from .duplicates import DuplicateDetector
from .engine import SyncEngine, schema_for
from .errors import (
    ApplyFailure,
    MalformedEntry,
    SerializationFailure,
    SyncEngineError,
    UnsupportedMode,
)
from .models import (
    ApplyReport,
    CanonicalEntry,
    ComparisonMode,
    EntryWrite,
    StoreId,
    SyncItem,
    SyncMode,
    SyncPlan,
    SyncStatus,
    Transport,
)
from .normalizer import ClaudeSchema, OpenCodeSchema, SchemaNormalizer
from .planner import SyncPlanBuilder, resolve_conflict
from .reporter import (
    format_apply_report,
    format_conflict_diff,
    format_sync_plan,
    plan_to_json,
    report_to_json,
)

__all__ = [
    "ApplyFailure",
    "ApplyReport",
    "BaselineStore",
    "CanonicalEntry",
    "ClaudeSchema",
    "ComparisonMode",
    "ConflictRenderer",
    "DiffClassifier",
    "DuplicateDetector",
    "EntryWrite",
    "JsonBaselineStore",
    "MalformedEntry",
    "MemoryBaselineStore",
    "OpenCodeSchema",
    "SchemaNormalizer",
    "SerializationFailure",
    "StoreId",
    "SyncApplier",
    "SyncEngine",
    "SyncEngineError",
    "SyncItem",
    "SyncMode",
    "SyncPlan",
    "SyncPlanBuilder",
    "SyncStatus",
    "Transport",
    "UnsupportedMode",
    "format_apply_report",
    "format_conflict_diff",
    "format_sync_plan",
    "plan_to_json",
    "report_to_json",
    "resolve_conflict",
]
