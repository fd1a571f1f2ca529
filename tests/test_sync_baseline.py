"""Tests for baseline persistence.

Covers:
- MemoryBaselineStore get/put/remove scoped by pair id
- JsonBaselineStore returns None for names never synced
- put persists immediately and atomically (no temp files left behind)
- Baselines survive a new store instance
- Distinct pair ids never share a baseline file
- Unreadable entries and corrupt files are ignored with a warning
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from conftest import local_entry, remote_entry
from mcp_sync.sync.baseline import JsonBaselineStore, MemoryBaselineStore

# ---------------------------------------------------------------------------
# MemoryBaselineStore
# ---------------------------------------------------------------------------


class TestMemoryBaselineStore:
    """Tests for the in-process baseline store."""

    def test_get_missing_returns_none(self):
        assert MemoryBaselineStore().get("p", "fs") is None

    def test_put_then_get(self):
        store = MemoryBaselineStore()
        entry = local_entry("fs", "npx", "x")
        store.put("p", "fs", entry)
        assert store.get("p", "fs") == entry

    def test_pairs_are_isolated(self):
        """A baseline recorded for one pair is invisible to another."""
        store = MemoryBaselineStore()
        store.put("laptop", "fs", local_entry("fs", "npx"))
        assert store.get("desktop", "fs") is None
        assert store.names("laptop") == ["fs"]
        assert store.names("desktop") == []

    def test_remove_is_noop_when_absent(self):
        store = MemoryBaselineStore()
        store.remove("p", "ghost")
        store.put("p", "fs", local_entry("fs", "npx"))
        store.remove("p", "fs")
        assert store.get("p", "fs") is None


# ---------------------------------------------------------------------------
# JsonBaselineStore
# ---------------------------------------------------------------------------


class TestJsonBaselineStore:
    """Tests for the file-backed baseline store."""

    def test_missing_file_means_no_baseline(self, tmp_path: Path):
        store = JsonBaselineStore(tmp_path / "state")
        assert store.get("default", "fs") is None
        assert store.names("default") == []

    def test_put_writes_file_immediately(self, tmp_path: Path):
        """put() flushes to disk without an explicit save."""
        state_dir = tmp_path / "nested" / ".mcp_sync"
        store = JsonBaselineStore(state_dir)
        store.put("default", "fs", local_entry("fs", "npx", "x"))

        path = store.state_path("default")
        assert path.exists()
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["pair_id"] == "default"
        assert data["entries"]["fs"]["entry"]["argv"] == ["npx", "x"]
        assert "T" in data["entries"]["fs"]["synced_at"]
        assert "T" in data["last_sync"]

    def test_no_temp_files_left(self, tmp_path: Path):
        store = JsonBaselineStore(tmp_path)
        store.put("default", "fs", local_entry("fs", "npx"))
        store.put("default", "api", remote_entry("api", "https://x"))
        assert list(tmp_path.glob("*.tmp")) == []

    def test_survives_new_instance(self, tmp_path: Path):
        """A fresh store reads what a previous instance committed."""
        entry = remote_entry("api", "https://x", headers={"K": "V"})
        JsonBaselineStore(tmp_path).put("default", "api", entry)

        reloaded = JsonBaselineStore(tmp_path)
        assert reloaded.get("default", "api") == entry
        assert reloaded.names("default") == ["api"]

    def test_remove_persists(self, tmp_path: Path):
        store = JsonBaselineStore(tmp_path)
        store.put("default", "fs", local_entry("fs", "npx"))
        store.remove("default", "fs")
        assert JsonBaselineStore(tmp_path).get("default", "fs") is None

    def test_distinct_pairs_use_distinct_files(self, tmp_path: Path):
        """Pair ids that slug identically still get separate files."""
        store = JsonBaselineStore(tmp_path)
        assert store.state_path("a/b") != store.state_path("a:b")
        assert store.state_path("a/b").name.startswith("baseline_a_b_")

    def test_empty_slug_falls_back(self, tmp_path: Path):
        store = JsonBaselineStore(tmp_path)
        assert store.state_path("///").name.startswith("baseline_pair_")

    def test_unreadable_entry_is_ignored(self, tmp_path: Path, caplog):
        store = JsonBaselineStore(tmp_path)
        path = store.state_path("default")
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "pair_id": "default",
                    "entries": {"fs": {"entry": {"name": "fs"}}},
                }
            ),
            encoding="utf-8",
        )
        with caplog.at_level(logging.WARNING):
            assert store.get("default", "fs") is None
        assert "unreadable baseline" in caplog.text

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[]", '{"entries": ["fs"]}', '"text"'],
    )
    def test_corrupt_file_is_ignored(self, tmp_path: Path, caplog, content):
        """A damaged baseline file reads as an empty baseline."""
        store = JsonBaselineStore(tmp_path)
        store.state_path("default").write_text(content, encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert store.get("default", "fs") is None
            assert store.names("default") == []
        assert "Ignoring" in caplog.text

    def test_corrupt_file_is_replaced_on_put(self, tmp_path: Path):
        store = JsonBaselineStore(tmp_path)
        path = store.state_path("default")
        path.write_text("{not json", encoding="utf-8")
        entry = local_entry("fs", "npx")
        store.put("default", "fs", entry)
        assert JsonBaselineStore(tmp_path).get("default", "fs") == entry
        assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
