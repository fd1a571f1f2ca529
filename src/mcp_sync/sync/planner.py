"""Plan aggregation and conflict resolution.

``SyncPlanBuilder`` is pure aggregation: it orders items by name and
attaches the malformed-record report.  ``resolve_conflict`` turns a
``CONFLICT`` item into an explicit one-sided update chosen by the caller;
the engine itself never picks a side.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from mcp_sync.sync.classifier import describe_status
from mcp_sync.sync.models import (
    MalformedRecord,
    StoreId,
    SyncItem,
    SyncPlan,
    SyncStatus,
)


class SyncPlanBuilder:
    """Aggregate classified items into a ``SyncPlan``.

    Args:
        pair_id: Store-pair identity the plan belongs to.
    """

    def __init__(self, pair_id: str) -> None:
        self.pair_id = pair_id

    def build(
        self,
        items: Iterable[SyncItem],
        malformed: Iterable[MalformedRecord] = (),
    ) -> SyncPlan:
        """Return a plan with *items* stable-sorted by name."""
        ordered = sorted(items, key=lambda item: item.name)
        return SyncPlan(
            pair_id=self.pair_id,
            items=ordered,
            malformed=list(malformed),
        )


def resolve_conflict(item: SyncItem, keep: StoreId) -> SyncItem:
    """Re-submit a conflicting item as a one-sided update.

    Keeping A yields ``UPDATED_IN_A`` (A's value is written to B); keeping
    B yields ``UPDATED_IN_B``.

    Args:
        item: A ``CONFLICT`` item from a plan.
        keep: Store whose value wins.

    Returns:
        A copy of *item* with the resolved status.

    Raises:
        ValueError: If *item* is not a conflict.
    """
    if item.status != SyncStatus.CONFLICT:
        raise ValueError(
            f"'{item.name}' is {item.status.value}, not a conflict"
        )
    status = (
        SyncStatus.UPDATED_IN_A
        if keep == StoreId.A
        else SyncStatus.UPDATED_IN_B
    )
    return item.model_copy(
        update={
            "status": status,
            "action_description": (
                f"{describe_status(status, item.name)} "
                f"(conflict resolved, keep {keep.value.upper()})"
            ),
        }
    )


def resolve_plan(
    plan: SyncPlan, resolutions: Mapping[str, StoreId]
) -> SyncPlan:
    """Apply ``resolve_conflict`` to every conflict named in *resolutions*.

    Names that are not conflicts in *plan* are left untouched.
    """
    items = [
        resolve_conflict(item, resolutions[item.name])
        if item.status == SyncStatus.CONFLICT and item.name in resolutions
        else item
        for item in plan.items
    ]
    return plan.model_copy(update={"items": items})
