"""
Config file discovery and loading for mcp_sync.

Config files are plain YAML with two optional sections, ``pair`` and
``logging``.  Several files may exist at once; they are layered so that a
project file overrides the user's global file section by section.

Usage:
    from mcp_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MCP_SYNC_CONFIG"
PROJECT_DIR = ".mcp_sync"

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    no default is given.  An unterminated ``${`` is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["default"] or "", value
    )


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(val) for val in obj]
    return obj


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first.

    Candidates, in order:
        1. the file named by ``MCP_SYNC_CONFIG``
        2. ``./.mcp_sync/config.yml``
        3. ``./.mcp_sync/config.yaml``
        4. ``~/.config/mcp_sync/config.yml``
    """
    candidates: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())

    project = Path.cwd() / PROJECT_DIR
    candidates += [project / "config.yml", project / "config.yaml"]
    candidates.append(Path.home() / ".config" / "mcp_sync" / "config.yml")

    return [path for path in candidates if path.exists()]


def _read_yaml(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(
            "Ignoring config file %s: top level is a %s, not a mapping",
            path,
            type(data).__name__,
        )
        return {}
    return data


def load_hierarchical_config(
    extra_path: Path | None = None,
) -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Files are applied from lowest to highest precedence and each file's
    top-level sections replace earlier ones wholesale.  Environment
    references are expanded after merging.

    Args:
        extra_path: File given with ``--config``.  It outranks every
            discovered file and must exist.

    Returns:
        The merged sections, or ``{}`` when there is no config at all.

    Raises:
        FileNotFoundError: If *extra_path* does not exist.
        yaml.YAMLError: If a file is not valid YAML.
    """
    paths = discover_config_files()
    if extra_path is not None:
        if not extra_path.exists():
            raise FileNotFoundError(f"Config file not found: {extra_path}")
        paths.insert(0, extra_path.resolve())

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        merged.update(_read_yaml(path))
    return _interpolate_recursive(merged)


# ---------------------------------------------------------------------------
# Starter file
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# mcp-sync configuration
#
# Store locations can also be set via environment variables:
#   MCP_SYNC_CLAUDE_PATH, MCP_SYNC_OPENCODE_PATH, MCP_SYNC_PAIR_ID,
#   MCP_SYNC_STATE_DIR, MCP_SYNC_PLATFORM
#
# pair:
#   pair_id: ${HOSTNAME:-default}
#   state_dir: .mcp_sync
#   store_a:
#     format: claude
#     path: ~/.claude.json
#     platform: null
#     disabled_prefix: _disabled_
#     prefix_disabling: false
#   store_b:
#     format: opencode
#     path: ~/.config/opencode/opencode.json
#     platform: null
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> tuple[Path, bool]:
    """Write the commented starter config unless a config already exists.

    Without *target*, an already discovered config file is reported as is;
    otherwise the starter goes to ``./.mcp_sync/config.yml``.

    Returns:
        Tuple of (config path, whether it was created).
    """
    if target is None:
        existing = discover_config_files()
        if existing:
            return existing[0], False
        target = Path.cwd() / PROJECT_DIR / "config.yml"
    elif target.exists():
        return target, False

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", target)
    return target, True
