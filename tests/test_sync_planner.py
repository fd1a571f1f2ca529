"""Tests for plan aggregation and conflict resolution.

Covers:
- SyncPlanBuilder orders items by name and keeps malformed records
- SyncPlan query helpers (get, by_status, incoming, is_synced)
- resolve_conflict keeps the chosen side
- resolve_conflict rejects non-conflicts
- resolve_plan only touches named conflicts
"""

from __future__ import annotations

import pytest

from mcp_sync.sync.models import (
    ChangeState,
    MalformedRecord,
    StoreId,
    SyncItem,
    SyncStatus,
)
from mcp_sync.sync.planner import (
    SyncPlanBuilder,
    resolve_conflict,
    resolve_plan,
)


def make_item(name: str, status: SyncStatus) -> SyncItem:
    return SyncItem(
        name=name,
        status=status,
        state=ChangeState(present_in=frozenset({StoreId.A, StoreId.B})),
        action_description=f"{status.value} {name}",
    )


class TestSyncPlanBuilder:
    """Tests for SyncPlanBuilder.build()."""

    def test_orders_by_name(self):
        plan = SyncPlanBuilder("p").build(
            [
                make_item("zeta", SyncStatus.SYNCED),
                make_item("alpha", SyncStatus.CONFLICT),
                make_item("mid", SyncStatus.CREATED_IN_A),
            ]
        )
        assert plan.pair_id == "p"
        assert [i.name for i in plan.items] == ["alpha", "mid", "zeta"]

    def test_keeps_malformed(self):
        bad = MalformedRecord(store=StoreId.B, name="x", key="x", reason="r")
        plan = SyncPlanBuilder("p").build([], malformed=[bad])
        assert plan.malformed == [bad]
        assert plan.items == []


class TestSyncPlanQueries:
    """Tests for the SyncPlan helpers."""

    @pytest.fixture
    def plan(self):
        return SyncPlanBuilder("p").build(
            [
                make_item("a-new", SyncStatus.CREATED_IN_A),
                make_item("b-new", SyncStatus.CREATED_IN_B),
                make_item("b-upd", SyncStatus.UPDATED_IN_B),
                make_item("gone", SyncStatus.DELETED_FROM_A),
                make_item("both", SyncStatus.CONFLICT),
                make_item("same", SyncStatus.SYNCED),
            ]
        )

    def test_get(self, plan):
        assert plan.get("same").status == SyncStatus.SYNCED
        assert plan.get("missing") is None

    def test_incoming(self, plan):
        """Incoming lists name the store that would change."""
        assert [i.name for i in plan.incoming_a] == ["b-new", "b-upd"]
        assert [i.name for i in plan.incoming_b] == ["a-new", "gone"]

    def test_conflicts_and_synced(self, plan):
        assert [i.name for i in plan.conflicts] == ["both"]
        assert plan.is_synced is False

    def test_all_synced(self):
        plan = SyncPlanBuilder("p").build(
            [make_item("x", SyncStatus.SYNCED)]
        )
        assert plan.is_synced is True


class TestResolveConflict:
    """Tests for resolve_conflict() and resolve_plan()."""

    def test_keep_a(self):
        item = resolve_conflict(
            make_item("fs", SyncStatus.CONFLICT), StoreId.A
        )
        assert item.status == SyncStatus.UPDATED_IN_A
        assert item.action_description == (
            "Update fs in B (changed in A) (conflict resolved, keep A)"
        )

    def test_keep_b(self):
        item = resolve_conflict(
            make_item("fs", SyncStatus.CONFLICT), StoreId.B
        )
        assert item.status == SyncStatus.UPDATED_IN_B

    def test_original_is_untouched(self):
        original = make_item("fs", SyncStatus.CONFLICT)
        resolve_conflict(original, StoreId.A)
        assert original.status == SyncStatus.CONFLICT

    def test_rejects_non_conflict(self):
        with pytest.raises(ValueError, match="not a conflict"):
            resolve_conflict(make_item("fs", SyncStatus.SYNCED), StoreId.A)

    def test_resolve_plan(self):
        plan = SyncPlanBuilder("p").build(
            [
                make_item("one", SyncStatus.CONFLICT),
                make_item("two", SyncStatus.CONFLICT),
                make_item("three", SyncStatus.CREATED_IN_A),
            ]
        )
        resolved = resolve_plan(plan, {"one": StoreId.B, "three": StoreId.B})
        assert resolved.get("one").status == SyncStatus.UPDATED_IN_B
        assert resolved.get("two").status == SyncStatus.CONFLICT
        assert resolved.get("three").status == SyncStatus.CREATED_IN_A
        assert plan.get("one").status == SyncStatus.CONFLICT
