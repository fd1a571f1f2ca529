"""Tests for the SyncEngine facade.

Covers:
- schema_for builds schemas from store configuration
- from_pair wires a JSON baseline in the pair's state directory
- analyze classifies every name, ordered by name
- Malformed records are reported and their name is excluded on both sides
- Conflicts carry raw JSON, previews and diff stats
- Probable duplicates are listed and mentioned in the description
- Analysis never modifies the baseline
- compare delegates to the renderer
"""

from __future__ import annotations

from pathlib import Path

from conftest import claude_local, local_entry, opencode_local
from mcp_sync.config_schema import PairConfig, StoreConfig
from mcp_sync.sync.baseline import JsonBaselineStore
from mcp_sync.sync.engine import SyncEngine, schema_for
from mcp_sync.sync.models import ComparisonMode, StoreId, SyncStatus
from mcp_sync.sync.normalizer import ClaudeSchema, OpenCodeSchema

# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestSchemaFor:
    """Tests for schema_for()."""

    def test_claude_options(self):
        schema = schema_for(
            StoreConfig(
                format="claude",
                platform="windows",
                disabled_prefix="off_",
                prefix_disabling=True,
            )
        )
        assert isinstance(schema, ClaudeSchema)
        assert schema.platform == "windows"
        assert schema.disabled_prefix == "off_"
        assert schema.prefix_disabling is True
        assert schema.label == "Claude"

    def test_opencode_with_label(self):
        schema = schema_for(StoreConfig(format="opencode"), label="Work")
        assert isinstance(schema, OpenCodeSchema)
        assert schema.label == "Work"


class TestFromPair:
    """Tests for SyncEngine.from_pair()."""

    def test_uses_json_baseline_in_state_dir(self, tmp_path: Path):
        pair = PairConfig(pair_id="laptop", state_dir=str(tmp_path / "st"))
        engine = SyncEngine.from_pair(pair)
        assert engine.pair_id == "laptop"
        assert isinstance(engine.baseline, JsonBaselineStore)
        assert engine.baseline.state_path("laptop").parent == tmp_path / "st"

    def test_explicit_baseline_wins(self, baseline):
        engine = SyncEngine.from_pair(PairConfig(), baseline=baseline)
        assert engine.baseline is baseline
        assert engine.applier.baseline is baseline


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class TestAnalyze:
    """Tests for SyncEngine.analyze()."""

    def test_statuses_ordered_by_name(self, engine, baseline):
        baseline.put("test", "gone", local_entry("gone", "npx", "old"))
        plan = engine.analyze(
            {
                "zeta": claude_local("npx", "z"),
                "same": claude_local("uvx", "s"),
                "gone": claude_local("npx", "old"),
            },
            {
                "alpha": opencode_local("npx", "a"),
                "same": opencode_local("uvx", "s"),
            },
        )
        assert [(i.name, i.status) for i in plan.items] == [
            ("alpha", SyncStatus.CREATED_IN_B),
            ("gone", SyncStatus.DELETED_FROM_B),
            ("same", SyncStatus.SYNCED),
            ("zeta", SyncStatus.CREATED_IN_A),
        ]
        assert plan.pair_id == "test"

    def test_items_carry_keys_and_raw_json(self, engine):
        plan = engine.analyze({"_disabled_fs": claude_local("npx")}, {})
        item = plan.get("fs")
        assert item.key_a == "_disabled_fs"
        assert item.key_b is None
        assert item.entry_a.enabled is False
        assert '"command": "npx"' in item.raw_a_json
        assert item.raw_b_json is None
        assert item.unified_diff is None

    def test_malformed_excluded_from_both_sides(self, engine):
        """A bad record hides its name even when the other side is fine."""
        plan = engine.analyze(
            {"fs": {"type": "websocket"}, "ok": claude_local("npx")},
            {"fs": opencode_local("npx")},
        )
        assert plan.get("fs") is None
        assert [i.name for i in plan.items] == ["ok"]
        (bad,) = plan.malformed
        assert bad.store == StoreId.A
        assert bad.name == "fs"
        assert "unsupported type" in bad.reason

    def test_conflict_is_rendered(self, engine):
        plan = engine.analyze(
            {"fs": claude_local("npx", "one")},
            {"fs": opencode_local("npx", "two")},
        )
        item = plan.get("fs")
        assert item.status == SyncStatus.CONFLICT
        assert item.action_description == "Conflict in fs: both sides differ"
        assert item.unified_diff
        assert item.diff_lines
        assert item.additions > 0
        assert item.a_as_b_json is not None
        assert item.b_as_a_json is not None
        assert item.render_errors == []

    def test_duplicate_under_other_name(self, engine):
        plan = engine.analyze(
            {"filesystem": claude_local("npx", "fs-server")},
            {"fs": opencode_local("npx", "fs-server")},
        )
        item = plan.get("filesystem")
        assert item.status == SyncStatus.CREATED_IN_A
        assert item.content_matches == ["fs"]
        assert item.has_duplicates
        assert item.action_description == (
            "Create filesystem in B (new in A) -- same content as fs, "
            "possibly a duplicate under another name"
        )

    def test_analysis_is_read_only(self, engine, baseline):
        engine.analyze(
            {"fs": claude_local("npx")}, {"fs": opencode_local("npx")}
        )
        assert baseline.get("test", "fs") is None

    def test_empty_stores(self, engine):
        plan = engine.analyze(None, {})
        assert plan.items == []
        assert plan.is_synced


class TestCompare:
    """Tests for SyncEngine.compare()."""

    def test_as_b_shows_converted_differences(self, engine):
        """A's env is diffed under B's field name."""
        plan = engine.analyze(
            {"fs": claude_local("npx", "one", env={"A": "1"})},
            {"fs": opencode_local("npx", "two")},
        )
        lines = engine.compare(plan.get("fs"), ComparisonMode.AS_B)
        changed = [line for line in lines if line.tag.value != "equal"]
        assert any("one" in line.content for line in changed)
        assert any("environment" in line.content for line in changed)
