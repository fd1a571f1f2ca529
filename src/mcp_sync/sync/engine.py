"""Sync engine facade bound to one store pair.

The ``SyncEngine`` ties together normalizer, baseline, classifier,
duplicate detector, renderer, plan builder and applier.  An analysis run:

1. Normalizes the raw records of both stores into snapshots.
2. Excludes names with a malformed record on either side.
3. Classifies every remaining name against the baseline.
4. Looks up probable duplicates under a different name.
5. Renders raw JSON for every item, plus diffs and previews for conflicts.
6. Returns the name-ordered ``SyncPlan``.

Analysis is read-only.  ``apply`` delegates to ``SyncApplier`` and is the
only operation that updates the baseline.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any

from mcp_sync.config_schema import PairConfig, StoreConfig
from mcp_sync.sync.applier import SyncApplier
from mcp_sync.sync.baseline import (
    BaselineStore,
    JsonBaselineStore,
    MemoryBaselineStore,
)
from mcp_sync.sync.classifier import (
    DiffClassifier,
    describe_status,
    status_for,
)
from mcp_sync.sync.differ import ConflictRenderer
from mcp_sync.sync.duplicates import DuplicateDetector
from mcp_sync.sync.models import (
    ApplyReport,
    ChangeState,
    ComparisonMode,
    DiffLine,
    StoreId,
    SyncItem,
    SyncMode,
    SyncPlan,
    SyncStatus,
)
from mcp_sync.sync.normalizer import (
    ClaudeSchema,
    OpenCodeSchema,
    SchemaNormalizer,
    Snapshot,
    StoreSchema,
)
from mcp_sync.sync.planner import SyncPlanBuilder

logger = logging.getLogger(__name__)


def schema_for(store: StoreConfig, label: str | None = None) -> StoreSchema:
    """Build the schema described by a store's configuration."""
    if store.format == "claude":
        return ClaudeSchema(
            disabled_prefix=store.disabled_prefix,
            prefix_disabling=store.prefix_disabling,
            platform=store.platform,
            label=label or "Claude",
        )
    return OpenCodeSchema(
        platform=store.platform, label=label or "OpenCode"
    )


class SyncEngine:
    """Analyze and apply changes for one store pair.

    Args:
        pair_id: Stable store-pair identity (e.g. a machine identifier).
        normalizer: Schemas of both stores (defaults to Claude/OpenCode).
        baseline: Baseline store (defaults to an in-memory store).
    """

    def __init__(
        self,
        pair_id: str,
        normalizer: SchemaNormalizer | None = None,
        baseline: BaselineStore | None = None,
    ) -> None:
        self.pair_id = pair_id
        self.normalizer = normalizer or SchemaNormalizer()
        self.baseline = (
            baseline if baseline is not None else MemoryBaselineStore()
        )

        self.renderer = ConflictRenderer(self.normalizer)
        self.builder = SyncPlanBuilder(pair_id)
        self.applier = SyncApplier(self.normalizer, self.baseline, pair_id)

    @classmethod
    def from_pair(
        cls, pair: PairConfig, baseline: BaselineStore | None = None
    ) -> SyncEngine:
        """Create an engine from a pair config.

        Without an explicit *baseline*, a ``JsonBaselineStore`` in the
        pair's state directory is used.
        """
        normalizer = SchemaNormalizer(
            schema_for(pair.store_a), schema_for(pair.store_b)
        )
        return cls(
            pair.pair_id,
            normalizer,
            (
                baseline
                if baseline is not None
                else JsonBaselineStore(pair.state_path)
            ),
        )

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(
        self,
        raw_a: Mapping[str, Any] | None,
        raw_b: Mapping[str, Any] | None,
    ) -> SyncPlan:
        """Classify every server of both stores.

        Args:
            raw_a: Raw records of store A keyed by native key.
            raw_b: Raw records of store B keyed by native key.

        Returns:
            The ``SyncPlan``.  Malformed records are listed in
            ``SyncPlan.malformed`` and their names are left out of the items.
        """
        snap_a = self.normalizer.normalize_snapshot(StoreId.A, raw_a)
        snap_b = self.normalizer.normalize_snapshot(StoreId.B, raw_b)

        excluded = snap_a.malformed_names | snap_b.malformed_names
        entries_a = {
            n: e for n, e in snap_a.entries.items() if n not in excluded
        }
        entries_b = {
            n: e for n, e in snap_b.entries.items() if n not in excluded
        }

        classifier = DiffClassifier(
            lambda name: self.baseline.get(self.pair_id, name)
        )
        states = classifier.classify(entries_a, entries_b)
        detector = DuplicateDetector(entries_a, entries_b)

        items = [
            self._build_item(name, state, snap_a, snap_b, detector)
            for name, state in states.items()
        ]
        plan = self.builder.build(
            items, malformed=[*snap_a.malformed, *snap_b.malformed]
        )

        if logger.isEnabledFor(logging.DEBUG):
            counts = Counter(item.status.value for item in plan.items)
            logger.debug(
                "Analyzed pair '%s': %s (%d malformed)",
                self.pair_id,
                dict(sorted(counts.items())),
                len(plan.malformed),
            )
        return plan

    def _build_item(
        self,
        name: str,
        state: ChangeState,
        snap_a: Snapshot,
        snap_b: Snapshot,
        detector: DuplicateDetector,
    ) -> SyncItem:
        status = status_for(state)
        entry_a = snap_a.entries.get(name)
        entry_b = snap_b.entries.get(name)

        if (
            status == SyncStatus.CONFLICT
            and entry_a is not None
            and entry_b is not None
        ):
            rendered = self.renderer.render_conflict(
                name, snap_a.raw[name], snap_b.raw[name], entry_a, entry_b
            )
        else:
            errors: list[str] = []
            rendered = {
                "raw_a_json": self.renderer.raw_json(
                    name, snap_a.raw.get(name), errors
                ),
                "raw_b_json": self.renderer.raw_json(
                    name, snap_b.raw.get(name), errors
                ),
                "render_errors": errors,
            }

        matches = detector.content_matches(name, status)
        description = describe_status(status, name)
        if status == SyncStatus.CONFLICT and len(state.present_in) == 1:
            (kept,) = state.present_in
            description = (
                f"Conflict in {name}: changed in {kept.value.upper()}, "
                f"removed from {kept.other.value.upper()}"
            )
        if matches:
            description += (
                f" -- same content as {', '.join(matches)}, "
                "possibly a duplicate under another name"
            )

        return SyncItem(
            name=name,
            status=status,
            state=state,
            action_description=description,
            entry_a=entry_a,
            entry_b=entry_b,
            key_a=snap_a.keys.get(name),
            key_b=snap_b.keys.get(name),
            content_matches=matches,
            **rendered,
        )

    def compare(
        self, item: SyncItem, mode: ComparisonMode
    ) -> list[DiffLine] | None:
        """Diff lines for *item* in the chosen comparison mode."""
        return self.renderer.compare(item, mode)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def apply(
        self,
        plan: SyncPlan,
        selected: Iterable[str],
        mode: SyncMode = SyncMode.BIDIRECTIONAL,
        source: StoreId | None = None,
        destination: StoreId | None = None,
        resolutions: Mapping[str, StoreId] | None = None,
    ) -> ApplyReport:
        """Apply the selected names of *plan*.  See ``SyncApplier.apply``."""
        report = self.applier.apply(
            plan,
            selected,
            mode=mode,
            source=source,
            destination=destination,
            resolutions=resolutions,
        )
        logger.info(
            "Applied pair '%s': %d written, %d skipped, %d failed",
            self.pair_id,
            len(report.applied),
            len(report.skipped),
            len(report.failed),
        )
        return report
