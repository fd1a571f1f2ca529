"""Shared pytest fixtures for mcp-sync tests."""

import json

import pytest
from dotenv import load_dotenv

from mcp_sync.sync.baseline import MemoryBaselineStore
from mcp_sync.sync.engine import SyncEngine
from mcp_sync.sync.models import CanonicalEntry, Transport

load_dotenv()

SYNC_ENV_VARS = (
    "MCP_SYNC_CONFIG",
    "MCP_SYNC_CLAUDE_PATH",
    "MCP_SYNC_OPENCODE_PATH",
    "MCP_SYNC_PAIR_ID",
    "MCP_SYNC_STATE_DIR",
    "MCP_SYNC_PLATFORM",
    "MCP_SYNC_DEBUG",
    "LOG_LEVEL",
    "LOG_FILE",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every mcp-sync environment variable for the test."""
    for var in SYNC_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def local_entry(name: str, *argv: str, **fields) -> CanonicalEntry:
    """Build a local canonical entry."""
    return CanonicalEntry(
        name=name, transport=Transport.LOCAL, argv=list(argv), **fields
    )


def remote_entry(name: str, url: str, **fields) -> CanonicalEntry:
    """Build a remote canonical entry."""
    return CanonicalEntry(
        name=name, transport=Transport.REMOTE, endpoint_url=url, **fields
    )


def claude_local(command: str, *args: str, **extra) -> dict:
    """Raw Claude stdio record."""
    return {"type": "stdio", "command": command, "args": list(args), **extra}


def opencode_local(*command: str, enabled: bool = True, **extra) -> dict:
    """Raw OpenCode local record."""
    return {
        "type": "local",
        "command": list(command),
        "enabled": enabled,
        **extra,
    }


def write_json(path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


@pytest.fixture
def baseline():
    """Empty in-memory baseline store."""
    return MemoryBaselineStore()


@pytest.fixture
def engine(baseline):
    """Engine for pair 'test' with default Claude/OpenCode schemas."""
    return SyncEngine("test", baseline=baseline)
