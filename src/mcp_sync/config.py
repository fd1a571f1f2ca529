"""Runtime configuration for the mcp-sync command line.

Reads store locations and pair settings from CLI args, environment
variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    MCP_SYNC_CLAUDE_PATH: Claude config file (default: ~/.claude.json)
    MCP_SYNC_OPENCODE_PATH: OpenCode config file
        (default: ~/.config/opencode/opencode.json)
    MCP_SYNC_PAIR_ID: Store-pair identity keying the baseline (default: default)
    MCP_SYNC_STATE_DIR: Directory for baseline files (default: .mcp_sync)
    MCP_SYNC_PLATFORM: Host platform of both stores (linux, macos, windows)
    MCP_SYNC_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass

from mcp_sync.config_schema import PLATFORMS, PairConfig, StoreConfig
from mcp_sync.file_handler import resolve_path
from mcp_sync.stores import DEFAULT_CLAUDE_PATH, DEFAULT_OPENCODE_PATH
from mcp_sync.sync.models import StoreId

logger = logging.getLogger(__name__)

_PATH_ENV = {
    "claude": "MCP_SYNC_CLAUDE_PATH",
    "opencode": "MCP_SYNC_OPENCODE_PATH",
}
_DEFAULT_PATHS = {
    "claude": DEFAULT_CLAUDE_PATH,
    "opencode": DEFAULT_OPENCODE_PATH,
}


@dataclass
class Config:
    store_a: StoreConfig
    store_b: StoreConfig
    pair_id: str = "default"
    state_dir: str = ".mcp_sync"
    debug: bool = False

    def store(self, store_id: StoreId) -> StoreConfig:
        return self.store_a if store_id == StoreId.A else self.store_b

    def pair(self) -> PairConfig:
        """Return the validated ``PairConfig`` for the engine."""
        return PairConfig(
            pair_id=self.pair_id,
            store_a=self.store_a,
            store_b=self.store_b,
            state_dir=self.state_dir,
        )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If both stores share a file, the pair id is empty, or
            a platform is unknown.
    """
    config.pair_id = config.pair_id.strip()
    if not config.pair_id:
        raise ValueError(
            "Pair id cannot be empty. Set MCP_SYNC_PAIR_ID environment "
            "variable or pass --pair-id."
        )

    if config.store_a.path == config.store_b.path:
        raise ValueError(
            f"Both stores point to the same file '{config.store_a.path}'. "
            "Set MCP_SYNC_CLAUDE_PATH and MCP_SYNC_OPENCODE_PATH to "
            "different files."
        )

    for store in (config.store_a, config.store_b):
        if store.platform is not None and store.platform not in PLATFORMS:
            raise ValueError(
                f"Invalid platform '{store.platform}': must be one of "
                f"{', '.join(PLATFORMS)}"
            )

    if config.store_a.format == config.store_b.format:
        logger.warning(
            "Both stores use the '%s' format", config.store_a.format
        )


def load_config(
    claude_path: str | None = None,
    opencode_path: str | None = None,
    pair_id: str | None = None,
    state_dir: str | None = None,
    platform: str | None = None,
    debug: bool = False,
    yaml_pair: PairConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_pair > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        claude_path: Override the Claude config file.
        opencode_path: Override the OpenCode config file.
        pair_id: Override the store-pair identity.
        state_dir: Override the baseline directory.
        platform: Override the platform of both stores.
        debug: Enable debug logging (CLI flag).
        yaml_pair: ``pair`` section of the YAML config file.  Used as
            fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    fb = yaml_pair or PairConfig()
    cli_paths = {"claude": claude_path, "opencode": opencode_path}
    final_platform = platform or os.getenv("MCP_SYNC_PLATFORM")

    def resolve_store(store: StoreConfig) -> StoreConfig:
        path = (
            cli_paths[store.format]
            or os.getenv(_PATH_ENV[store.format])
            or store.path
            or _DEFAULT_PATHS[store.format]
        )
        return store.model_copy(
            update={
                "path": str(resolve_path(path)),
                "platform": (
                    final_platform.strip().lower()
                    if final_platform
                    else store.platform
                ),
            }
        )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("MCP_SYNC_DEBUG")
        final_debug = env_debug is not None and env_debug.lower() in (
            "true",
            "1",
            "yes",
            "on",
        )

    config = Config(
        store_a=resolve_store(fb.store_a),
        store_b=resolve_store(fb.store_b),
        pair_id=pair_id or os.getenv("MCP_SYNC_PAIR_ID") or fb.pair_id,
        state_dir=state_dir or os.getenv("MCP_SYNC_STATE_DIR") or fb.state_dir,
        debug=final_debug,
    )

    validate_config(config)

    return config
