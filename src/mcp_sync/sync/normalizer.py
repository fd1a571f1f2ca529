"""Store schemas and the canonical normalizer.

Each configuration store describes MCP servers in its own shape:

- **Claude** (``mcpServers``) -- keyed records with ``command`` string plus
  ``args`` list, ``env`` map, ``type`` of ``stdio``/``sse``/``http``, and
  two ways to disable an entry: ``"isActive": false`` or a reserved key
  prefix (``_disabled_``).
- **OpenCode** (``mcp``) -- keyed records with a ``command`` array, an
  ``environment`` map, ``type`` of ``local``/``remote`` and an explicit
  ``enabled`` flag.

A ``StoreSchema`` converts one raw record into a ``CanonicalEntry`` and
back.  Store-specific conventions (the disabled prefix, ``cmd /c``
wrapping on Windows hosts) live entirely inside the schema so the
classifier never special-cases a store.

Round-trip law: for every entry ``e`` produced by ``schema.normalize``,
``schema.normalize(*schema.denormalize(e))`` equals ``e``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from mcp_sync.sync.errors import MalformedEntry
from mcp_sync.sync.models import (
    CanonicalEntry,
    MalformedRecord,
    RawRecord,
    StoreId,
    Transport,
)

logger = logging.getLogger(__name__)

DEFAULT_DISABLED_PREFIX = "_disabled_"

# Commands that need a cmd.exe shim to resolve on Windows hosts.
_WINDOWS_SHIMMED = ("npx", "uvx", "npm")

_CLAUDE_LOCAL_TYPES = (None, "stdio")
_CLAUDE_REMOTE_TYPES = ("sse", "http", "streamable-http")


# ---------------------------------------------------------------------------
# Platform command adaptation
# ---------------------------------------------------------------------------


def wrap_command(argv: list[str], platform: str | None) -> list[str]:
    """Adapt a canonical command for a store on *platform*.

    On ``windows`` hosts, ``npx``/``uvx``/``npm`` are prefixed with
    ``cmd /c``.  Other platforms get the command unchanged.
    """
    if platform == "windows" and argv and argv[0] in _WINDOWS_SHIMMED:
        return ["cmd", "/c", *argv]
    return list(argv)


def unwrap_command(argv: list[str], platform: str | None) -> list[str]:
    """Strip ``cmd /c`` wrappers from a command read from a store.

    Only applies when the store declares a platform.  Wrappers are removed
    repeatedly so that canonical commands never start with ``cmd /c``.
    """
    if platform is None:
        return list(argv)
    result = list(argv)
    while len(result) >= 3 and result[0] == "cmd" and result[1] == "/c":
        result = result[2:]
    return result


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _string_map(value: Any, field_name: str, key: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise MalformedEntry(
            f"'{field_name}' of '{key}' must map strings to strings",
            name=key,
        )
    return dict(value)


def _string_list(value: Any, field_name: str, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(
        isinstance(v, str) for v in value
    ):
        raise MalformedEntry(
            f"'{field_name}' of '{key}' must be a list of strings",
            name=key,
        )
    return list(value)


def _flag(value: Any, field_name: str, key: str) -> bool:
    if value is None:
        return True
    if not isinstance(value, bool):
        raise MalformedEntry(
            f"'{field_name}' of '{key}' must be a boolean", name=key
        )
    return value


def _build_entry(key: str, **fields: Any) -> CanonicalEntry:
    try:
        return CanonicalEntry(**fields)
    except ValidationError as exc:
        raise MalformedEntry(
            f"record '{key}' is not a valid server: "
            f"{exc.errors()[0]['msg']}",
            name=key,
        ) from exc


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class StoreSchema(Protocol):
    """Protocol that every store schema must satisfy."""

    label: str

    def canonical_name(self, key: str) -> str:
        """Return the canonical entry name for a raw record key."""
        ...  # pragma: no cover

    def normalize(self, key: str, body: Any) -> CanonicalEntry:
        """Convert a raw record into a canonical entry.

        Raises:
            MalformedEntry: If the record is neither local nor remote.
        """
        ...  # pragma: no cover

    def denormalize(self, entry: CanonicalEntry) -> RawRecord:
        """Convert a canonical entry into this store's native record."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Claude
# ---------------------------------------------------------------------------


class ClaudeSchema:
    """Keyed/flat schema: ``command`` + ``args``, ``isActive`` or prefix.

    Args:
        disabled_prefix: Reserved key prefix marking a disabled entry.
        prefix_disabling: When ``True``, disabled entries are written under
            the prefixed key; otherwise ``"isActive": false`` is written.
        platform: Host platform of the store (``linux``, ``windows`` or
            ``None`` to leave commands untouched).
    """

    def __init__(
        self,
        disabled_prefix: str = DEFAULT_DISABLED_PREFIX,
        prefix_disabling: bool = False,
        platform: str | None = None,
        label: str = "Claude",
    ) -> None:
        self.disabled_prefix = disabled_prefix
        self.prefix_disabling = prefix_disabling
        self.platform = platform
        self.label = label

    def canonical_name(self, key: str) -> str:
        name = key
        while self.disabled_prefix and name.startswith(self.disabled_prefix):
            name = name[len(self.disabled_prefix) :]
        return name

    def normalize(self, key: str, body: Any) -> CanonicalEntry:
        if not isinstance(body, dict):
            raise MalformedEntry(
                f"record '{key}' is not an object", name=key
            )

        name = self.canonical_name(key)
        if not name:
            raise MalformedEntry(
                f"record '{key}' has an empty name", name=key
            )
        enabled = _flag(body.get("isActive"), "isActive", key) and (
            name == key
        )
        environment = _string_map(body.get("env"), "env", key)
        headers = _string_map(body.get("headers"), "headers", key)

        if self._transport(key, body) == Transport.LOCAL:
            command = body.get("command")
            if not isinstance(command, str) or not command:
                raise MalformedEntry(
                    f"'command' of '{key}' must be a non-empty string",
                    name=key,
                )
            args = _string_list(body.get("args"), "args", key)
            return _build_entry(
                key,
                name=name,
                enabled=enabled,
                transport=Transport.LOCAL,
                argv=unwrap_command([command, *args], self.platform),
                environment=environment,
                headers=headers,
            )

        url = body.get("url")
        if not isinstance(url, str) or not url:
            raise MalformedEntry(
                f"'url' of '{key}' must be a non-empty string", name=key
            )
        return _build_entry(
            key,
            name=name,
            enabled=enabled,
            transport=Transport.REMOTE,
            endpoint_url=url,
            environment=environment,
            headers=headers,
        )

    def denormalize(self, entry: CanonicalEntry) -> RawRecord:
        body: dict[str, Any] = {}
        key = entry.name
        if not entry.enabled:
            if self.prefix_disabling:
                key = f"{self.disabled_prefix}{entry.name}"
            else:
                body["isActive"] = False

        if entry.transport == Transport.LOCAL:
            argv = wrap_command(entry.argv, self.platform)
            body["type"] = "stdio"
            body["command"] = argv[0]
            body["args"] = argv[1:]
        else:
            body["type"] = "http"
            body["url"] = entry.endpoint_url

        if entry.environment:
            body["env"] = dict(entry.environment)
        if entry.headers:
            body["headers"] = dict(entry.headers)
        return RawRecord(key=key, body=body)

    def _transport(self, key: str, body: dict) -> Transport:
        server_type = body.get("type")
        if server_type in _CLAUDE_REMOTE_TYPES:
            return Transport.REMOTE
        if server_type in _CLAUDE_LOCAL_TYPES:
            if body.get("command") is not None:
                return Transport.LOCAL
            if server_type is None and body.get("url") is not None:
                return Transport.REMOTE
            raise MalformedEntry(
                f"record '{key}' has neither a command nor a url",
                name=key,
            )
        raise MalformedEntry(
            f"record '{key}' has unsupported type {server_type!r}",
            name=key,
        )


# ---------------------------------------------------------------------------
# OpenCode
# ---------------------------------------------------------------------------


class OpenCodeSchema:
    """Array-based schema: ``command`` list plus explicit ``enabled`` flag.

    Args:
        platform: Host platform of the store (``linux``, ``windows`` or
            ``None`` to leave commands untouched).
    """

    def __init__(
        self, platform: str | None = None, label: str = "OpenCode"
    ) -> None:
        self.platform = platform
        self.label = label

    def canonical_name(self, key: str) -> str:
        return key

    def normalize(self, key: str, body: Any) -> CanonicalEntry:
        if not isinstance(body, dict):
            raise MalformedEntry(
                f"record '{key}' is not an object", name=key
            )
        if not key:
            raise MalformedEntry("record has an empty name", name=key)

        enabled = _flag(body.get("enabled"), "enabled", key)
        environment = _string_map(
            body.get("environment"), "environment", key
        )
        headers = _string_map(body.get("headers"), "headers", key)
        server_type = body.get("type")

        if server_type == "local" or (
            server_type is None and body.get("command") is not None
        ):
            command = _string_list(body.get("command"), "command", key)
            if not command or not command[0]:
                raise MalformedEntry(
                    f"'command' of '{key}' must not be empty", name=key
                )
            return _build_entry(
                key,
                name=key,
                enabled=enabled,
                transport=Transport.LOCAL,
                argv=unwrap_command(command, self.platform),
                environment=environment,
                headers=headers,
            )

        if server_type == "remote" or (
            server_type is None and body.get("url") is not None
        ):
            url = body.get("url")
            if not isinstance(url, str) or not url:
                raise MalformedEntry(
                    f"'url' of '{key}' must be a non-empty string",
                    name=key,
                )
            return _build_entry(
                key,
                name=key,
                enabled=enabled,
                transport=Transport.REMOTE,
                endpoint_url=url,
                environment=environment,
                headers=headers,
            )

        if server_type is None:
            raise MalformedEntry(
                f"record '{key}' has neither a command nor a url",
                name=key,
            )
        raise MalformedEntry(
            f"record '{key}' has unsupported type {server_type!r}",
            name=key,
        )

    def denormalize(self, entry: CanonicalEntry) -> RawRecord:
        body: dict[str, Any]
        if entry.transport == Transport.LOCAL:
            body = {
                "type": "local",
                "command": wrap_command(entry.argv, self.platform),
            }
        else:
            body = {"type": "remote", "url": entry.endpoint_url}
        body["enabled"] = entry.enabled
        if entry.environment:
            body["environment"] = dict(entry.environment)
        if entry.headers:
            body["headers"] = dict(entry.headers)
        return RawRecord(key=entry.name, body=body)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


@dataclass
class Snapshot:
    """One store's state after normalization.

    Attributes:
        store: Which side of the pair this snapshot describes.
        entries: Canonical entries keyed by canonical name.
        keys: Raw record key for each canonical name.
        raw: Raw record body for each canonical name.
        malformed: Records that failed normalization.
    """

    store: StoreId
    entries: dict[str, CanonicalEntry] = field(default_factory=dict)
    keys: dict[str, str] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)
    malformed: list[MalformedRecord] = field(default_factory=list)

    @property
    def malformed_names(self) -> set[str]:
        return {m.name for m in self.malformed if m.name is not None}


class SchemaNormalizer:
    """Normalize and denormalize entries for one store pair.

    Args:
        schema_a: Schema of store A (defaults to ``ClaudeSchema``).
        schema_b: Schema of store B (defaults to ``OpenCodeSchema``).
    """

    def __init__(
        self,
        schema_a: StoreSchema | None = None,
        schema_b: StoreSchema | None = None,
    ) -> None:
        self.schema_a = schema_a or ClaudeSchema()
        self.schema_b = schema_b or OpenCodeSchema()

    def schema(self, store: StoreId) -> StoreSchema:
        return self.schema_a if store == StoreId.A else self.schema_b

    def normalize_a(self, key: str, body: Any) -> CanonicalEntry:
        return self.schema_a.normalize(key, body)

    def normalize_b(self, key: str, body: Any) -> CanonicalEntry:
        return self.schema_b.normalize(key, body)

    def denormalize_a(self, entry: CanonicalEntry) -> RawRecord:
        return self.schema_a.denormalize(entry)

    def denormalize_b(self, entry: CanonicalEntry) -> RawRecord:
        return self.schema_b.denormalize(entry)

    def normalize(
        self, store: StoreId, key: str, body: Any
    ) -> CanonicalEntry:
        return self.schema(store).normalize(key, body)

    def denormalize(
        self, store: StoreId, entry: CanonicalEntry
    ) -> RawRecord:
        return self.schema(store).denormalize(entry)

    def normalize_snapshot(
        self, store: StoreId, records: Mapping[str, Any] | None
    ) -> Snapshot:
        """Normalize every raw record of one store.

        Malformed records never abort the snapshot: they are collected in
        ``Snapshot.malformed`` under their canonical name.  When two raw
        keys collapse to the same canonical name (``x`` and
        ``_disabled_x``), the later key in sorted order is reported as
        malformed and the name is excluded from the entries.

        Args:
            store: Which side of the pair *records* belong to.
            records: Raw records keyed by store-native key.

        Returns:
            The normalized ``Snapshot``.
        """
        schema = self.schema(store)
        snapshot = Snapshot(store=store)
        for key in sorted(records or {}):
            body = records[key]  # type: ignore[index]
            name = schema.canonical_name(key)
            if name in snapshot.keys:
                reason = (
                    f"'{key}' and '{snapshot.keys[name]}' both define "
                    f"server '{name}'"
                )
                self._reject(snapshot, schema, name, key, reason)
                continue
            try:
                entry = schema.normalize(key, body)
            except MalformedEntry as exc:
                self._reject(snapshot, schema, name, key, str(exc))
                continue
            snapshot.entries[name] = entry
            snapshot.keys[name] = key
            snapshot.raw[name] = body

        # A rejected name never stays half-present.
        for name in snapshot.malformed_names:
            snapshot.entries.pop(name, None)
            snapshot.raw.pop(name, None)
            snapshot.keys.pop(name, None)
        return snapshot

    @staticmethod
    def _reject(
        snapshot: Snapshot,
        schema: StoreSchema,
        name: str,
        key: str,
        reason: str,
    ) -> None:
        logger.warning(
            "Skipping malformed %s record '%s': %s",
            schema.label,
            key,
            reason,
        )
        snapshot.malformed.append(
            MalformedRecord(
                store=snapshot.store, name=name, key=key, reason=reason
            )
        )
