"""Per-name change classification.

Classification happens in two steps:

1. ``compute_state`` reduces the current values and the baseline to a
   store-agnostic ``ChangeState`` (which stores hold the name, which of
   them changed since the baseline, whether they agree).  It works for
   any number of stores.
2. ``status_for`` maps a two-store ``ChangeState`` onto a named
   ``SyncStatus``:

   ============  ============  =============================  ==============
   present in    baseline      values                         status
   ============  ============  =============================  ==============
   A only        no            --                             CREATED_IN_A
   B only        no            --                             CREATED_IN_B
   A only        yes           A equals baseline              DELETED_FROM_B
   B only        yes           B equals baseline              DELETED_FROM_A
   A only        yes           A differs from baseline        CONFLICT
   B only        yes           B differs from baseline        CONFLICT
   A and B       --            equal                          SYNCED
   A and B       yes           only B differs from baseline   UPDATED_IN_B
   A and B       yes           only A differs from baseline   UPDATED_IN_A
   A and B       any           otherwise                      CONFLICT
   ============  ============  =============================  ==============

Without a baseline, two differing values are always a conflict: the engine
never guesses an authoritative side.  An edit on one side against a
deletion on the other is a conflict as well.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from mcp_sync.sync.models import (
    CanonicalEntry,
    ChangeState,
    StoreId,
    SyncStatus,
)

BaselineLookup = Callable[[str], CanonicalEntry | None]


def compute_state(
    values: Mapping[StoreId, CanonicalEntry | None],
    base: CanonicalEntry | None,
) -> ChangeState:
    """Reduce current values and the baseline to a ``ChangeState``.

    Args:
        values: Current value per store (``None`` when absent).
        base: Last synced value, or ``None`` if never synced.

    Returns:
        The store-agnostic classification facts.
    """
    present = {s: v for s, v in values.items() if v is not None}
    distinct = list(present.values())
    in_agreement = all(v == distinct[0] for v in distinct[1:])
    changed = frozenset(
        s for s, v in present.items() if base is None or v != base
    )
    return ChangeState(
        present_in=frozenset(present),
        changed_in=changed,
        has_baseline=base is not None,
        in_agreement=in_agreement,
    )


def status_for(state: ChangeState) -> SyncStatus:
    """Map a two-store ``ChangeState`` to its named ``SyncStatus``."""
    present = state.present_in

    if present == {StoreId.A}:
        if not state.has_baseline:
            return SyncStatus.CREATED_IN_A
        if not state.changed_in:
            return SyncStatus.DELETED_FROM_B
        return SyncStatus.CONFLICT

    if present == {StoreId.B}:
        if not state.has_baseline:
            return SyncStatus.CREATED_IN_B
        if not state.changed_in:
            return SyncStatus.DELETED_FROM_A
        return SyncStatus.CONFLICT

    if state.in_agreement:
        return SyncStatus.SYNCED

    if state.has_baseline:
        if state.changed_in == {StoreId.B}:
            return SyncStatus.UPDATED_IN_B
        if state.changed_in == {StoreId.A}:
            return SyncStatus.UPDATED_IN_A

    return SyncStatus.CONFLICT


def describe_status(status: SyncStatus, name: str) -> str:
    """Human text for the action a status proposes."""
    return {
        SyncStatus.SYNCED: f"{name} is in sync",
        SyncStatus.CREATED_IN_A: f"Create {name} in B (new in A)",
        SyncStatus.CREATED_IN_B: f"Create {name} in A (new in B)",
        SyncStatus.UPDATED_IN_A: f"Update {name} in B (changed in A)",
        SyncStatus.UPDATED_IN_B: f"Update {name} in A (changed in B)",
        SyncStatus.DELETED_FROM_A: (
            f"{name} was removed from A; remove it from B manually"
        ),
        SyncStatus.DELETED_FROM_B: (
            f"{name} was removed from B; remove it from A manually"
        ),
        SyncStatus.CONFLICT: f"Conflict in {name}: both sides differ",
    }[status]


class DiffClassifier:
    """Classify every name of two snapshots against the baseline.

    Args:
        baseline: Callable returning the baseline value for a name.
    """

    def __init__(self, baseline: BaselineLookup) -> None:
        self._baseline = baseline

    def classify(
        self,
        entries_a: Mapping[str, CanonicalEntry],
        entries_b: Mapping[str, CanonicalEntry],
    ) -> dict[str, ChangeState]:
        """Compute the ``ChangeState`` of every name in either snapshot.

        Returns:
            Mapping of name to state, ordered by name.
        """
        states: dict[str, ChangeState] = {}
        for name in sorted(set(entries_a) | set(entries_b)):
            states[name] = compute_state(
                {
                    StoreId.A: entries_a.get(name),
                    StoreId.B: entries_b.get(name),
                },
                self._baseline(name),
            )
        return states
