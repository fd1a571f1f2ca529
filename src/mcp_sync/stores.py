"""Configuration document layer.

Reads and writes whole Claude (``mcpServers``) and OpenCode (``mcp``)
configuration files and applies engine output to them.  Everything the
document contains besides the server records is preserved untouched.

Per-entry operations (enable, disable, delete) go through the store's
schema, so a Claude store configured for prefix disabling renames
``name`` to ``_disabled_name`` while a flag-based store flips
``isActive``.

Every save copies the previous file to ``<path>.bak`` first.  Records
rewritten through a schema carry only the fields the canonical model
tracks.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from mcp_sync.file_handler import (
    backup_file,
    read_file_with_encoding,
    write_file,
)
from mcp_sync.sync.errors import MalformedEntry
from mcp_sync.sync.models import EntryWrite, RawRecord
from mcp_sync.sync.normalizer import StoreSchema

logger = logging.getLogger(__name__)

DEFAULT_CLAUDE_PATH = "~/.claude.json"
DEFAULT_OPENCODE_PATH = "~/.config/opencode/opencode.json"

SERVERS_KEY = {
    "claude": "mcpServers",
    "opencode": "mcp",
}


class DocumentError(ValueError):
    """A configuration document cannot be read, parsed or updated."""


class ConfigDocument:
    """One parsed configuration file.

    Args:
        path: Location of the file.
        fmt: Store format, ``claude`` or ``opencode``.
        data: Parsed JSON object of the whole document.
        encoding: Encoding used to write the file back.
    """

    def __init__(
        self,
        path: Path,
        fmt: str,
        data: dict[str, Any] | None = None,
        encoding: str = "utf-8",
    ) -> None:
        if fmt not in SERVERS_KEY:
            raise DocumentError(
                f"Unknown store format '{fmt}': expected one of "
                f"{', '.join(sorted(SERVERS_KEY))}"
            )
        self.path = path
        self.format = fmt
        self.data: dict[str, Any] = data if data is not None else {}
        self.encoding = encoding

    @classmethod
    def load(cls, path: Path, fmt: str) -> ConfigDocument:
        """Read and parse *path*.  A missing file yields an empty document.

        Raises:
            DocumentError: If the file is not a JSON object.
        """
        if not path.exists():
            logger.info("Config file %s does not exist, starting empty", path)
            return cls(path, fmt)

        content, encoding = read_file_with_encoding(path)
        if not content.strip():
            return cls(path, fmt, encoding=encoding)
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise DocumentError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise DocumentError(
                f"Config file {path} must contain a JSON object, "
                f"got {type(data).__name__}"
            )
        return cls(path, fmt, data, encoding=encoding)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    @property
    def servers_key(self) -> str:
        return SERVERS_KEY[self.format]

    @property
    def records(self) -> dict[str, Any]:
        """Raw server records keyed by native key (a live view)."""
        servers = self.data.get(self.servers_key)
        if servers is None:
            servers = self.data[self.servers_key] = {}
        if not isinstance(servers, dict):
            raise DocumentError(
                f"'{self.servers_key}' in {self.path} must be an object"
            )
        return servers

    def find_key(self, schema: StoreSchema, name: str) -> str | None:
        """Return the native key holding canonical *name*, if any."""
        for key in self.records:
            if schema.canonical_name(key) == name:
                return key
        return None

    def _put(self, record: RawRecord, replaces_key: str | None) -> None:
        """Insert *record*, taking the position of *replaces_key*."""
        records = self.records
        if replaces_key is None or replaces_key not in records:
            records[record.key] = record.body
            return
        rebuilt: dict[str, Any] = {}
        for key, body in records.items():
            if key == replaces_key:
                rebuilt[record.key] = record.body
            elif key != record.key:
                rebuilt[key] = body
        records.clear()
        records.update(rebuilt)

    def apply_writes(self, writes: Iterable[EntryWrite]) -> int:
        """Upsert engine writes into this document.

        Returns:
            Number of records written.
        """
        count = 0
        for write in writes:
            self._put(write.record, write.replaces_key)
            logger.debug(
                "Wrote '%s' to %s as '%s'",
                write.name,
                self.path,
                write.record.key,
            )
            count += 1
        return count

    def set_enabled(
        self, schema: StoreSchema, name: str, enabled: bool
    ) -> bool:
        """Enable or disable one server using the store's convention.

        Returns:
            ``True`` if the document changed.

        Raises:
            DocumentError: If *name* does not exist or is malformed.
        """
        key = self.find_key(schema, name)
        if key is None:
            raise DocumentError(f"Server '{name}' not found in {self.path}")
        try:
            entry = schema.normalize(key, self.records[key])
        except MalformedEntry as exc:
            raise DocumentError(str(exc)) from exc

        record = schema.denormalize(
            entry.model_copy(update={"enabled": enabled})
        )
        if record.key == key and record.body == self.records[key]:
            return False
        self._put(record, key)
        logger.info(
            "%s '%s' in %s",
            "Enabled" if enabled else "Disabled",
            name,
            self.path,
        )
        return True

    def delete(self, schema: StoreSchema, name: str) -> bool:
        """Remove every record of canonical *name* (plain or prefixed).

        Returns:
            ``True`` if anything was removed.
        """
        doomed = [
            key for key in self.records if schema.canonical_name(key) == name
        ]
        for key in doomed:
            del self.records[key]
        if doomed:
            logger.info("Deleted '%s' from %s", name, self.path)
        return bool(doomed)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        return json.dumps(self.data, indent=2, ensure_ascii=False) + "\n"

    def save(self, backup: bool = True) -> Path | None:
        """Write the document back, copying the old file to ``.bak`` first.

        Returns:
            Path of the backup file, or ``None`` if none was made.
        """
        backup_path = backup_file(self.path) if backup else None
        write_file(self.path, self.to_json(), self.encoding)
        logger.debug("Saved %s (backup: %s)", self.path, backup_path)
        return backup_path
