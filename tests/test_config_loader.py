"""Tests for mcp_sync.config_loader: hierarchical YAML config loading.

Covers:
- ${VAR} / ${VAR:-default} interpolation, including nested values
- Discovery order: MCP_SYNC_CONFIG, project dir, XDG global
- Shallow "project wins" merge and explicit --config files
- ensure_config bootstrapping
"""

import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from mcp_sync.config_loader import (
    _STARTER_CONFIG,
    _interpolate_recursive,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Run in tmp_path with an empty fake HOME and no MCP_SYNC_CONFIG."""
    monkeypatch.delenv("MCP_SYNC_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def write_yaml(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text), encoding="utf-8")
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    """Tests for ${VAR} and ${VAR:-default} substitution."""

    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("SYNC_HOST", "laptop")
        assert interpolate_env_vars("${SYNC_HOST}") == "laptop"

    def test_unset_var_replaced_with_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        assert interpolate_env_vars("${UNSET_VAR_XYZ}") == ""

    def test_default_used_when_unset_or_empty(self, monkeypatch):
        monkeypatch.delenv("UNSET_VAR_XYZ", raising=False)
        monkeypatch.setenv("EMPTY_VAR", "")
        assert interpolate_env_vars("${UNSET_VAR_XYZ:-dflt}") == "dflt"
        assert interpolate_env_vars("${EMPTY_VAR:-dflt}") == "dflt"

    def test_default_ignored_when_set(self, monkeypatch):
        monkeypatch.setenv("SYNC_PAIR", "work")
        assert interpolate_env_vars("${SYNC_PAIR:-default}") == "work"

    def test_embedded_in_path(self, monkeypatch):
        monkeypatch.setenv("CFG_ROOT", "/etc/cfg")
        assert (
            interpolate_env_vars("${CFG_ROOT}/opencode.json")
            == "/etc/cfg/opencode.json"
        )

    def test_literal_dollar_brace_no_closing(self):
        assert interpolate_env_vars("${NO_CLOSE") == "${NO_CLOSE"

    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("CLAUDE_FILE", "/tmp/claude.json")
        data = {
            "pair": {"store_a": {"path": "${CLAUDE_FILE}", "n": 3}},
            "list": ["${CLAUDE_FILE}", True],
        }
        assert _interpolate_recursive(data) == {
            "pair": {"store_a": {"path": "/tmp/claude.json", "n": 3}},
            "list": ["/tmp/claude.json", True],
        }


# -------------------------------------------------------------------------
# Convention-based file discovery
# -------------------------------------------------------------------------


class TestDiscoverConfigFiles:
    """Tests for discover_config_files() precedence and filtering."""

    def test_env_var_takes_highest_precedence(self, isolated, monkeypatch):
        custom = write_yaml(isolated / "custom.yml", "pair: {}\n")
        write_yaml(isolated / ".mcp_sync" / "config.yml", "pair: {}\n")
        monkeypatch.setenv("MCP_SYNC_CONFIG", str(custom))
        assert discover_config_files()[0] == custom.resolve()

    def test_project_before_global(self, isolated):
        proj = write_yaml(isolated / ".mcp_sync" / "config.yml", "a: 1\n")
        alt = write_yaml(isolated / ".mcp_sync" / "config.yaml", "b: 1\n")
        xdg = write_yaml(
            isolated / "home" / ".config" / "mcp_sync" / "config.yml",
            "c: 1\n",
        )
        assert discover_config_files() == [proj, alt, xdg]

    def test_nothing_found(self, isolated):
        assert discover_config_files() == []


# -------------------------------------------------------------------------
# Hierarchical merge
# -------------------------------------------------------------------------


class TestLoadHierarchicalConfig:
    """Tests for load_hierarchical_config() merge and interpolation."""

    def test_zero_config_returns_empty_dict(self, isolated):
        assert load_hierarchical_config() == {}

    def test_project_replaces_global_sections(self, isolated):
        write_yaml(
            isolated / "home" / ".config" / "mcp_sync" / "config.yml",
            """\
            pair:
              pair_id: global
              state_dir: /var/state
            logging:
              level: DEBUG
            """,
        )
        write_yaml(
            isolated / ".mcp_sync" / "config.yml",
            """\
            pair:
              pair_id: project
            """,
        )
        result = load_hierarchical_config()
        # Shallow merge: the project pair section replaces the global one
        assert result["pair"] == {"pair_id": "project"}
        assert result["logging"]["level"] == "DEBUG"

    def test_interpolation_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("MY_PAIR", "desk")
        write_yaml(
            isolated / ".mcp_sync" / "config.yml",
            'pair:\n  pair_id: "${MY_PAIR}"\n',
        )
        assert load_hierarchical_config()["pair"]["pair_id"] == "desk"

    def test_extra_path_wins(self, isolated):
        write_yaml(isolated / ".mcp_sync" / "config.yml", "pair: {a: 1}\n")
        extra = write_yaml(isolated / "cli.yml", "pair: {b: 2}\n")
        assert load_hierarchical_config(extra)["pair"] == {"b": 2}

    def test_missing_extra_path_raises(self, isolated):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_hierarchical_config(isolated / "nope.yml")

    def test_non_dict_root_skipped(self, isolated, monkeypatch):
        bad = write_yaml(isolated / "bad.yml", "- item1\n- item2\n")
        monkeypatch.setenv("MCP_SYNC_CONFIG", str(bad))
        assert load_hierarchical_config() == {}

    def test_invalid_yaml_raises(self, isolated):
        write_yaml(isolated / ".mcp_sync" / "config.yml", "pair: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()

    def test_starter_config_loads_as_empty(self, isolated):
        """The generated starter file is entirely commented out."""
        target, _ = ensure_config()
        assert yaml.safe_load(target.read_text(encoding="utf-8")) is None
        assert load_hierarchical_config() == {}


# -------------------------------------------------------------------------
# Config bootstrapping
# -------------------------------------------------------------------------


class TestEnsureConfig:
    """Tests for ensure_config()."""

    def test_noop_when_discovered(self, tmp_path):
        existing = Path("/fake/existing/config.yml")
        with patch(
            "mcp_sync.config_loader.discover_config_files",
            return_value=[existing],
        ):
            assert ensure_config() == (existing, False)
        assert not (tmp_path / ".mcp_sync").exists()

    def test_creates_default(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with patch(
            "mcp_sync.config_loader.discover_config_files",
            return_value=[],
        ):
            path, created = ensure_config()
        assert created is True
        assert path == tmp_path / ".mcp_sync" / "config.yml"
        content = path.read_text(encoding="utf-8")
        assert content == _STARTER_CONFIG
        assert "# mcp-sync configuration" in content
        assert "# pair:" in content
        assert "# logging:" in content

    def test_explicit_target_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "my-config.yml"
        path, created = ensure_config(target=target)
        assert (path, created) == (target, True)
        assert target.is_file()

    def test_existing_target_untouched(self, tmp_path):
        target = write_yaml(tmp_path / "mine.yml", "pair: {}\n")
        assert ensure_config(target=target) == (target, False)
        assert target.read_text(encoding="utf-8") == "pair: {}\n"
