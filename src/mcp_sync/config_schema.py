"""Unified configuration schema for mcp_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the synchronized store pair and logging.

Usage:
    from mcp_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

PLATFORMS = ("linux", "macos", "windows")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StoreConfig(BaseModel):
    """One configuration store of the pair.

    Attributes:
        format: Native schema of the store.
        path: Location of the store's config file (``~`` is expanded).
        platform: Host platform the store's commands run on.  ``windows``
            enables ``cmd /c`` wrapping; ``None`` leaves commands untouched.
        disabled_prefix: Key prefix marking a disabled Claude entry.
        prefix_disabling: Write disabled Claude entries under the prefixed
            key instead of ``"isActive": false``.
    """

    format: Literal["claude", "opencode"]
    path: str | None = Field(default=None, description="Config file path")
    platform: Literal["linux", "macos", "windows"] | None = None
    disabled_prefix: str = Field(default="_disabled_", min_length=1)
    prefix_disabling: bool = False

    model_config = {"frozen": True}


class PairConfig(BaseModel):
    """The synchronized store pair.

    ``pair_id`` keys the baseline, so two machines or profiles syncing
    different files must use different ids.
    """

    pair_id: str = Field(default="default", min_length=1)
    store_a: StoreConfig = Field(
        default_factory=lambda: StoreConfig(format="claude")
    )
    store_b: StoreConfig = Field(
        default_factory=lambda: StoreConfig(format="opencode")
    )
    state_dir: str = Field(
        default=".mcp_sync",
        description="Directory for baseline state files",
    )

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_distinct_paths(self) -> PairConfig:
        if (
            self.store_a.path is not None
            and self.store_a.path == self.store_b.path
        ):
            raise ValueError("store_a and store_b must use different paths")
        return self

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    pair: PairConfig = Field(default_factory=PairConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
