"""Baseline persistence layer.

The baseline is the canonical value of each entry as it was last known to
be identical on both sides of a store pair.  It is what lets the
classifier tell "changed on one side" from "changed on both sides".

Entries are keyed by an explicit store-pair identity plus entry name so
that different machines or profiles never share a baseline.

Key design choices:

* **Atomic writes** -- ``JsonBaselineStore`` writes to a temp file then
  calls ``os.replace()`` so readers never see partial data.
* **Per-entry persistence** -- every ``put``/``remove`` is flushed
  immediately, so a crash mid-apply leaves the baseline consistent with
  whatever was committed before it.
* **Absence is normal** -- ``get`` returns ``None`` for names never synced.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from mcp_sync.sync.models import CanonicalEntry

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


class BaselineStore(Protocol):
    """Protocol that all baseline stores must satisfy."""

    def get(self, pair_id: str, name: str) -> CanonicalEntry | None:
        """Return the last synced value for *name*, or ``None``."""
        ...  # pragma: no cover

    def put(self, pair_id: str, name: str, entry: CanonicalEntry) -> None:
        """Record *entry* as the synced value for *name*."""
        ...  # pragma: no cover

    def remove(self, pair_id: str, name: str) -> None:
        """Forget *name*.  No-op if absent."""
        ...  # pragma: no cover


class MemoryBaselineStore:
    """In-process baseline store, mostly for tests and embedding."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], CanonicalEntry] = {}

    def get(self, pair_id: str, name: str) -> CanonicalEntry | None:
        return self._entries.get((pair_id, name))

    def put(self, pair_id: str, name: str, entry: CanonicalEntry) -> None:
        self._entries[(pair_id, name)] = entry

    def remove(self, pair_id: str, name: str) -> None:
        self._entries.pop((pair_id, name), None)

    def names(self, pair_id: str) -> list[str]:
        """Names with a baseline for *pair_id*, sorted."""
        return sorted(n for p, n in self._entries if p == pair_id)


class JsonBaselineStore:
    """Baseline store backed by one JSON file per store pair.

    Args:
        state_dir: Directory where baseline files are stored
            (typically ``.mcp_sync/``).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._cache: dict[str, dict] = {}

    # ------------------------------------------------------------------
    # BaselineStore protocol
    # ------------------------------------------------------------------

    def get(self, pair_id: str, name: str) -> CanonicalEntry | None:
        record = self._load(pair_id)["entries"].get(name)
        if record is None:
            return None
        try:
            return CanonicalEntry.model_validate(record["entry"])
        except (KeyError, TypeError, ValidationError) as exc:
            logger.warning(
                "Ignoring unreadable baseline for '%s' in pair '%s': %s",
                name,
                pair_id,
                exc,
            )
            return None

    def put(self, pair_id: str, name: str, entry: CanonicalEntry) -> None:
        state = self._load(pair_id)
        state["entries"][name] = {
            "entry": entry.model_dump(mode="json"),
            "synced_at": datetime.now(timezone.utc).isoformat(),
        }
        self._save(pair_id, state)

    def remove(self, pair_id: str, name: str) -> None:
        state = self._load(pair_id)
        if state["entries"].pop(name, None) is not None:
            self._save(pair_id, state)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def names(self, pair_id: str) -> list[str]:
        """Names with a baseline for *pair_id*, sorted."""
        return sorted(self._load(pair_id)["entries"])

    def state_path(self, pair_id: str) -> Path:
        """Return the path to the baseline file for *pair_id*.

        The file name keeps a readable slug of the pair id and appends a
        short digest so distinct ids never collide after slugging.
        """
        slug = _UNSAFE_CHARS.sub("_", pair_id).strip("_") or "pair"
        digest = hashlib.sha256(pair_id.encode("utf-8")).hexdigest()[:8]
        return self._state_dir / f"baseline_{slug}_{digest}.json"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self, pair_id: str) -> dict:
        if pair_id in self._cache:
            return self._cache[pair_id]

        path = self.state_path(pair_id)
        state = None
        if path.exists():
            state = self._read(path)
        if state is None:
            state = {
                "version": 1,
                "pair_id": pair_id,
                "last_sync": None,
                "entries": {},
            }
        self._cache[pair_id] = state
        return state

    @staticmethod
    def _read(path: Path) -> dict | None:
        """Parse a baseline file, or ``None`` if it is unusable."""
        try:
            with open(path, encoding="utf-8") as fh:
                state = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Ignoring unreadable baseline file %s: %s", path, exc
            )
            return None
        if not isinstance(state, dict) or not isinstance(
            state.setdefault("entries", {}), dict
        ):
            logger.warning(
                "Ignoring baseline file %s: unexpected structure", path
            )
            return None
        return state

    def _save(self, pair_id: str, state: dict) -> None:
        """Persist *state* atomically, creating ``state_dir`` if needed."""
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state["last_sync"] = datetime.now(timezone.utc).isoformat()

        target = self.state_path(pair_id)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state, fh, indent=2, sort_keys=True)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
