"""Apply a caller-selected subset of a sync plan.

The applier never touches configuration files.  For each selected name it
converts the winning canonical entry into the target store's schema and
returns an ``EntryWrite`` for the persistence layer, then records the
entry as the new baseline.

Modes:

- **bidirectional** -- ``CREATED_IN_A``/``UPDATED_IN_A`` flow to B,
  ``CREATED_IN_B``/``UPDATED_IN_B`` flow to A.  Conflicts must be resolved
  first (see ``resolve_conflict``) or passed in ``resolutions``.
- **one-way** -- every selected name held by ``source`` overwrites
  ``destination`` regardless of its status.

Deletions (``DELETED_FROM_A``/``DELETED_FROM_B``) are informational and
are never written, even when selected.

Mode problems raise ``UnsupportedMode`` before anything is written.
Per-name problems are recorded in the report and never stop the run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

from mcp_sync.sync.baseline import BaselineStore
from mcp_sync.sync.errors import (
    ApplyFailure,
    MalformedEntry,
    SyncEngineError,
    UnsupportedMode,
)
from mcp_sync.sync.models import (
    ApplyAction,
    ApplyOutcome,
    ApplyReport,
    CanonicalEntry,
    EntryWrite,
    StoreId,
    SyncItem,
    SyncMode,
    SyncPlan,
    SyncStatus,
)
from mcp_sync.sync.normalizer import SchemaNormalizer
from mcp_sync.sync.planner import resolve_plan

logger = logging.getLogger(__name__)

_FLOWS_TO_B = (SyncStatus.CREATED_IN_A, SyncStatus.UPDATED_IN_A)
_FLOWS_TO_A = (SyncStatus.CREATED_IN_B, SyncStatus.UPDATED_IN_B)
_DELETIONS = (SyncStatus.DELETED_FROM_A, SyncStatus.DELETED_FROM_B)


class SyncApplier:
    """Convert selected plan items into store writes.

    Args:
        normalizer: Normalizer of the store pair.
        baseline: Baseline store updated after each successful name.
        pair_id: Store-pair identity used as the baseline key.
    """

    def __init__(
        self,
        normalizer: SchemaNormalizer,
        baseline: BaselineStore,
        pair_id: str,
    ) -> None:
        self.normalizer = normalizer
        self.baseline = baseline
        self.pair_id = pair_id

    # ------------------------------------------------------------------
    # Main entry point
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
        """Apply the selected names of *plan*.

        Args:
            plan: Plan produced by the analysis of the current snapshots.
            selected: Names chosen by the caller.
            mode: Direction policy.
            source: Authoritative store (one-way mode only).
            destination: Overwritten store (one-way mode only).
            resolutions: Per-name "keep" decision for conflicts
                (bidirectional mode only).

        Returns:
            An ``ApplyReport`` with one outcome per selected name.

        Raises:
            UnsupportedMode: If the mode or its arguments are invalid, or
                a selected conflict is unresolved in bidirectional mode.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        names = sorted(set(selected))

        if mode == SyncMode.BIDIRECTIONAL and resolutions:
            plan = resolve_plan(plan, resolutions)
        self._check_mode(plan, names, mode, source, destination)

        outcomes: list[ApplyOutcome] = []
        writes: list[EntryWrite] = []
        for name in names:
            item = plan.get(name)
            if item is None:
                outcomes.append(
                    ApplyOutcome(
                        name=name,
                        action=ApplyAction.SKIP,
                        success=False,
                        error=f"'{name}' is not part of the plan",
                    )
                )
                continue

            try:
                outcome, write = self._apply_item(
                    item, mode, source, destination
                )
            except (SyncEngineError, OSError) as exc:
                logger.error("Failed to apply '%s': %s", name, exc)
                outcomes.append(
                    ApplyOutcome(
                        name=name,
                        status=item.status,
                        action=ApplyAction.SKIP,
                        success=False,
                        error=str(exc),
                    )
                )
                continue

            outcomes.append(outcome)
            if write is not None:
                writes.append(write)

        return ApplyReport(
            pair_id=self.pair_id,
            mode=mode,
            source=source if mode == SyncMode.ONE_WAY else None,
            destination=destination if mode == SyncMode.ONE_WAY else None,
            outcomes=outcomes,
            writes=writes,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_mode(
        plan: SyncPlan,
        names: list[str],
        mode: SyncMode,
        source: StoreId | None,
        destination: StoreId | None,
    ) -> None:
        if mode in (SyncMode.MULTI_SOURCE, SyncMode.MULTI_TARGET):
            raise UnsupportedMode(
                f"Sync mode '{mode.value}' is not supported yet"
            )

        if mode == SyncMode.ONE_WAY:
            if source is None or destination is None:
                raise UnsupportedMode(
                    "One-way mode requires both a source and a destination"
                )
            if source == destination:
                raise UnsupportedMode(
                    "One-way mode requires source and destination to differ"
                )
            return

        unresolved = [
            name
            for name in names
            if (item := plan.get(name)) is not None
            and item.status == SyncStatus.CONFLICT
        ]
        if unresolved:
            raise UnsupportedMode(
                "Unresolved conflicts must be resolved before a "
                f"bidirectional apply: {', '.join(unresolved)}"
            )

    # ------------------------------------------------------------------
    # Per-name application
    # ------------------------------------------------------------------

    def _apply_item(
        self,
        item: SyncItem,
        mode: SyncMode,
        source: StoreId | None,
        destination: StoreId | None,
    ) -> tuple[ApplyOutcome, EntryWrite | None]:
        if item.status in _DELETIONS:
            logger.info(
                "Deletion of '%s' is not applied (%s)",
                item.name,
                item.status.value,
            )
            note = "deletions must be applied manually"
            return self._skip(item, note), None

        if mode == SyncMode.ONE_WAY:
            entry = item.entry_in(source)  # type: ignore[arg-type]
            if entry is None:
                return self._skip(item, "not present in source"), None
            target = destination
        elif item.status in _FLOWS_TO_B:
            entry, target = item.entry_a, StoreId.B
        elif item.status in _FLOWS_TO_A:
            entry, target = item.entry_b, StoreId.A
        else:
            entry, target = item.entry_a, None

        if entry is None:
            raise ApplyFailure(
                f"no value to apply for '{item.name}'", name=item.name
            )

        if target is None or item.entry_in(target) == entry:
            # Both sides already agree: only the baseline can be stale.
            self._record_baseline(item.name, entry)
            return self._skip(item, "already in sync"), None

        write = self._convert(item, target, entry)
        self._record_baseline(item.name, entry)
        logger.debug(
            "Prepared write of '%s' to store %s",
            item.name,
            target.value.upper(),
        )
        action = (
            ApplyAction.UPSERT_A
            if target == StoreId.A
            else ApplyAction.UPSERT_B
        )
        return (
            ApplyOutcome(
                name=item.name,
                status=item.status,
                action=action,
                success=True,
            ),
            write,
        )

    def _convert(
        self, item: SyncItem, target: StoreId, entry: CanonicalEntry
    ) -> EntryWrite:
        """Denormalize *entry* for *target* and verify it round-trips.

        Raises:
            ApplyFailure: If the target schema cannot hold the entry
                without loss.
        """
        schema = self.normalizer.schema(target)
        record = schema.denormalize(entry)
        try:
            restored = schema.normalize(record.key, record.body)
        except MalformedEntry as exc:
            raise ApplyFailure(
                f"{schema.label} cannot represent '{item.name}': {exc}",
                name=item.name,
            ) from exc
        if restored != entry:
            raise ApplyFailure(
                f"{schema.label} cannot represent '{item.name}' losslessly",
                name=item.name,
            )

        existing_key = item.key_in(target)
        return EntryWrite(
            store=target,
            name=item.name,
            record=record,
            replaces_key=(
                existing_key
                if existing_key is not None and existing_key != record.key
                else None
            ),
        )

    def _record_baseline(self, name: str, entry: CanonicalEntry) -> None:
        if self.baseline.get(self.pair_id, name) != entry:
            self.baseline.put(self.pair_id, name, entry)

    @staticmethod
    def _skip(item: SyncItem, note: str) -> ApplyOutcome:
        return ApplyOutcome(
            name=item.name,
            status=item.status,
            action=ApplyAction.SKIP,
            success=True,
            note=note,
        )
